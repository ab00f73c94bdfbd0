"""Source adapters — pull raw items from one upstream and normalize them."""

from yield_core.sources.base import (
    BaseAdapter,
    DirectFetchAdapter,
    RenderExhaustedError,
    SourceAdapter,
    SourceFetchError,
)
from yield_core.sources.registry import KNOWN_SOURCES, build_adapters

__all__ = [
    "BaseAdapter",
    "DirectFetchAdapter",
    "KNOWN_SOURCES",
    "RenderExhaustedError",
    "SourceAdapter",
    "SourceFetchError",
    "build_adapters",
]
