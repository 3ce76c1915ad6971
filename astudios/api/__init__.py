"""
Release Feed Layer.

This package is responsible for all communication with the vendor's release
feed.
"""

from .client import FeedClient

__all__ = ["FeedClient"]
