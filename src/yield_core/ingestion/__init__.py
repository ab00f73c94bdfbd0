"""Ingestion — day-bucketed upsert of adapter output plus activity reporting."""

from yield_core.ingestion.activity import (
    ActivityLogFile,
    ActivitySink,
    DatabaseActivitySink,
)
from yield_core.ingestion.persistence import row_to_snapshot, upsert_snapshot
from yield_core.ingestion.service import IngestionService

__all__ = [
    "ActivityLogFile",
    "ActivitySink",
    "DatabaseActivitySink",
    "IngestionService",
    "row_to_snapshot",
    "upsert_snapshot",
]
