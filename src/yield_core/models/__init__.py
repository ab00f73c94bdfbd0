"""Pydantic domain models."""

from yield_core.models.activity import ActivityRecord, IngestionOutcome
from yield_core.models.meta import AssetMeta, CategoryMeta, NetworkMeta
from yield_core.models.query import HistoryFilter, LatestFilter, SortField
from yield_core.models.snapshot import CrawlResult, Snapshot

__all__ = [
    "ActivityRecord",
    "AssetMeta",
    "CategoryMeta",
    "CrawlResult",
    "HistoryFilter",
    "IngestionOutcome",
    "LatestFilter",
    "NetworkMeta",
    "Snapshot",
    "SortField",
]
