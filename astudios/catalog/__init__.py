"""
Catalog Layer.

Resolves version specifiers ('latest', '2024.2.1', 'ladybug patch 2', ...)
against the cached or freshly fetched release catalog.
"""

from .resolver import (
    LATEST,
    LATEST_PRERELEASE,
    CatalogResolver,
    filter_releases,
    match_release,
)

__all__ = [
    "LATEST",
    "LATEST_PRERELEASE",
    "CatalogResolver",
    "filter_releases",
    "match_release",
]
