"""Read side — latest/history queries and cached distinct listings."""

from yield_core.query.cache import TTLCache
from yield_core.query.service import (
    QueryService,
    dedupe_latest,
    invalidate_meta_cache,
    sort_and_limit,
)

__all__ = ["QueryService", "TTLCache", "dedupe_latest", "invalidate_meta_cache", "sort_and_limit"]
