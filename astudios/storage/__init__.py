"""
Storage Layer.

This package handles all data persistence: the configuration file and the
cached release catalog.
"""

from .cache import CatalogCache
from .config_manager import ConfigManager

__all__ = ["CatalogCache", "ConfigManager"]
