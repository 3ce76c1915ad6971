"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures: the release catalog, installed versions, and configuration.
"""

from .config import AppConfig
from .installed import InstalledVersion
from .progress import NullProgress, ProgressSink
from .release import ArchiveFormat, Catalog, Channel, Download, Release

__all__ = [
    "AppConfig",
    "ArchiveFormat",
    "Catalog",
    "Channel",
    "Download",
    "InstalledVersion",
    "NullProgress",
    "ProgressSink",
    "Release",
]
