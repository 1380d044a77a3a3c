"""Core types and configuration for minidb."""

from .config import Settings, StoreConfig, get_settings, reset_settings
from .types import Classification, Value

__all__ = [
    "Classification",
    "Value",
    "Settings",
    "StoreConfig",
    "get_settings",
    "reset_settings",
]
