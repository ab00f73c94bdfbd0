"""Configuration system."""

from yield_core.config.loader import load_config
from yield_core.config.schema import AppConfig, PoolConfig, PoolNotConfiguredError

__all__ = ["AppConfig", "PoolConfig", "PoolNotConfiguredError", "load_config"]
