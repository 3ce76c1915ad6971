"""
Turns human-given version specifiers into releases from the catalog.
"""

import logging
from collections.abc import Iterable

from astudios.api.client import FeedClient
from astudios.exceptions import AmbiguousVersionError, VersionNotFoundError
from astudios.models.release import Catalog, Channel, Release
from astudios.storage.cache import CatalogCache

log = logging.getLogger(__name__)

LATEST = "latest"
LATEST_PRERELEASE = "latest-prerelease"

_BUILD_PREFIX = "ai-"


def _exact_keys(release: Release) -> set[str]:
    """All strings that identify a release exactly, lowercased."""
    build = release.build.lower()
    keys = {
        release.version.lower(),
        build,
        release.display_version.lower(),
    }
    if build.startswith(_BUILD_PREFIX):
        keys.add(build[len(_BUILD_PREFIX) :])
    if release.name:
        keys.add(release.name.lower())
    return keys


def _searchable_text(release: Release) -> str:
    return " ".join(
        (release.name, release.version, release.build, release.channel.label)
    ).lower()


def _candidate_label(release: Release) -> str:
    return f"{release.display_name} [{release.version}, {release.build}]"


def match_release(specifier: str, catalog: Catalog) -> Release:
    """
    Resolves `specifier` against an already loaded catalog.

    Exact matches on version, build, name or display version win over fuzzy
    matches, where every token of the specifier must appear somewhere in the
    release's name, version, build or channel. More than one match in the
    winning tier is an error.

    Raises:
        VersionNotFoundError: Nothing matches.
        AmbiguousVersionError: More than one release matches.
    """
    query = " ".join(specifier.split()).lower()
    if not query:
        raise VersionNotFoundError(specifier, "An empty version was given.")

    if query == LATEST:
        for release in catalog.releases:
            if release.channel is Channel.STABLE:
                return release
        raise VersionNotFoundError(specifier, "The catalog contains no stable release.")

    if query == LATEST_PRERELEASE:
        for release in catalog.releases:
            if release.is_prerelease:
                return release
        raise VersionNotFoundError(specifier, "The catalog contains no prerelease.")

    exact = [r for r in catalog.releases if query in _exact_keys(r)]
    if exact:
        matches = exact
    else:
        tokens = query.split()
        matches = [
            r
            for r in catalog.releases
            if all(token in _searchable_text(r) for token in tokens)
        ]

    if not matches:
        raise VersionNotFoundError(
            specifier, "Run 'astudios list' to see the available versions."
        )
    if len(matches) > 1:
        raise AmbiguousVersionError(specifier, [_candidate_label(r) for r in matches])

    log.debug(f"Resolved '{specifier}' to {matches[0].version} ({matches[0].build}).")
    return matches[0]


def filter_releases(
    catalog: Catalog,
    channels: Iterable[Channel] | None = None,
    limit: int | None = None,
) -> list[Release]:
    """Returns the newest releases of the given channels, all channels if none."""
    wanted = set(channels or ())
    releases = [r for r in catalog.releases if not wanted or r.channel in wanted]
    if limit is not None and limit > 0:
        releases = releases[:limit]
    return releases


class CatalogResolver:
    """
    Cache-first access to the release catalog.

    A fresh cached catalog is served without touching the network. A stale or
    unusable cache triggers exactly one fetch, and the cache is only
    overwritten once that fetch has succeeded.
    """

    def __init__(self, client: FeedClient, cache: CatalogCache):
        self.client = client
        self.cache = cache

    async def fetch(self) -> Catalog:
        """Retrieves and parses the feed, bypassing the cache entirely."""
        releases = await self.client.fetch_releases()
        return Catalog(releases=releases, ttl_seconds=self.cache.ttl_seconds)

    async def get_catalog(self, force_refresh: bool = False) -> Catalog:
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                log.debug(
                    f"Using cached catalog with {len(cached.releases)} releases."
                )
                return cached
        else:
            log.debug("Refreshing catalog, ignoring cache.")

        catalog = await self.fetch()
        self.cache.set(catalog)
        return catalog

    async def resolve(self, specifier: str, catalog: Catalog | None = None) -> Release:
        if catalog is None:
            catalog = await self.get_catalog()
        return match_release(specifier, catalog)

    def filter(
        self,
        catalog: Catalog,
        channels: Iterable[Channel] | None = None,
        limit: int | None = None,
    ) -> list[Release]:
        return filter_releases(catalog, channels, limit)
