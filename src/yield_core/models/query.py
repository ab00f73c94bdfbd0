"""Read-side filters for latest and history queries."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_LIMIT = 200
DEFAULT_LIMIT = 50


class SortField(str, Enum):
    TOTAL_RATE = "total_rate"
    SUPPLY_RATE = "supply_rate"
    BORROW_RATE = "borrow_rate"
    REWARD_RATE = "reward_rate"
    TVL = "total_value_locked_usd"
    UTILIZATION = "utilization_ratio"
    CAPTURED_AT = "captured_at"


class _BaseFilter(BaseModel):
    source: str | None = None
    asset: str | None = None
    category: str | None = None
    network: str | None = None
    # Applied to total_rate.
    min_rate: float | None = Field(default=None, ge=0)


class LatestFilter(_BaseFilter):
    sort_field: SortField = SortField.TOTAL_RATE
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)


class HistoryFilter(_BaseFilter):
    from_time: datetime | None = None
    to_time: datetime | None = None

    @field_validator("from_time", "to_time")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "HistoryFilter":
        if self.from_time and self.to_time and self.from_time > self.to_time:
            raise ValueError("from_time must not be after to_time")
        return self
