"""Layered configuration loading."""

from .manager import ConfigManager, DEFAULT_CONFIG, deep_update

__all__ = ["ConfigManager", "DEFAULT_CONFIG", "deep_update"]
