"""Import all table modules so Base.metadata knows about them."""

from yield_core.db.tables.activity import CrawlLogRow
from yield_core.db.tables.snapshots import SnapshotRow

__all__ = ["CrawlLogRow", "SnapshotRow"]
