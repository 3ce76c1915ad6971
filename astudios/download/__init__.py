"""
Download Layer.

This package is responsible for acquiring release archives: backend selection,
the transfer itself, and integrity verification.
"""

from .backends import Aria2Backend, DownloadBackend, NativeBackend
from .coordinator import DownloadCoordinator, find_aria2, select_backend
from .integrity import FileIntegrityChecker

__all__ = [
    "Aria2Backend",
    "DownloadBackend",
    "DownloadCoordinator",
    "FileIntegrityChecker",
    "NativeBackend",
    "find_aria2",
    "select_backend",
]
