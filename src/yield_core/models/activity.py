"""Crawl activity models — audit records and ingestion outcomes."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ActivityRecord(BaseModel):
    """One audit entry per ingestion run. Never mutated after creation."""

    source: str
    network: str
    category: str
    items_found: int
    duration_ms: int
    success: bool
    error_message: str | None = None
    occurred_at: datetime


class IngestionOutcome(BaseModel):
    """What IngestionService.run() reports back to its caller."""

    source: str
    network: str
    category: str
    success: bool
    items_found: int = 0
    items_written: int = 0
    items_failed: int = 0
    duration_ms: int = 0
    error_message: str | None = None

    @property
    def label(self) -> str:
        return f"{self.source}/{self.network}/{self.category}"
