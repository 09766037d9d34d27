"""Destination webform stores."""

from .base import BaseWebformStore
from .config_directory import ConfigDirectoryStore
from .memory_store import MemoryWebformStore

__all__ = [
    "BaseWebformStore",
    "ConfigDirectoryStore",
    "MemoryWebformStore",
]
