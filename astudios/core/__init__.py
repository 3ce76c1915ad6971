"""
Core application engine for installing and switching versions.

The `InstallEngine` takes a resolved release from archive to a complete
version directory, delegating unpacking to the format-specific extractors.
The `VersionSwitch` decides which installed version the alias points at.
"""

from .install_engine import InstallEngine, InstallState
from .version_switch import VersionSwitch

__all__ = ["InstallEngine", "InstallState", "VersionSwitch"]
