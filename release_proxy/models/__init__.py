"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the service, such as the downloads catalog and configuration.
"""

from .catalog import AppEntry, DownloadsCatalog, PlatformSource, default_entries
from .config import ServiceConfig

__all__ = [
    "AppEntry",
    "DownloadsCatalog",
    "PlatformSource",
    "ServiceConfig",
    "default_entries",
]
