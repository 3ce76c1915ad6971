"""
A file-based JSON cache for the release catalog with a time-to-live (TTL).
Enhanced with statistics tracking for cache hits and misses.
"""

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from astudios.models.release import DEFAULT_TTL_SECONDS, Catalog

log = logging.getLogger(__name__)


class CatalogCache:
    """
    Persists the catalog together with its fetch timestamp. Unreadable or
    outdated-schema content is reported as a miss and never raises.
    """

    SCHEMA_VERSION = 1
    FILENAME = "releases.json"

    def __init__(
        self,
        cache_dir_path: Path,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        stats_callback: Callable[[bool], None] | None = None,
    ):
        """
        Initializes the cache.

        Args:
            cache_dir_path: The directory where the cache file is stored.
            ttl_seconds: How long a fetched catalog stays fresh.
            stats_callback: Optional callback to report cache hits (True) or misses
            (False).
        """
        self.cache_dir = cache_dir_path
        self.ttl_seconds = ttl_seconds
        self._stats_callback = stats_callback

    @property
    def path(self) -> Path:
        return self.cache_dir / self.FILENAME

    def _record(self, hit: bool) -> None:
        if self._stats_callback:
            self._stats_callback(hit)

    def read(self) -> Catalog | None:
        """
        Returns the cached catalog regardless of its age, or None if there is no
        usable cache file.
        """
        if not self.path.is_file():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                payload = json.load(f)
            if not isinstance(payload, dict):
                raise ValueError("cache payload is not an object")
            if payload.get("schema_version") != self.SCHEMA_VERSION:
                log.debug(
                    f"Ignoring cache with schema {payload.get('schema_version')!r}."
                )
                return None
            catalog = Catalog.model_validate(
                {
                    "releases": payload["releases"],
                    "fetched_at": payload["fetched_at"],
                    "ttl_seconds": self.ttl_seconds,
                }
            )
        except (json.JSONDecodeError, OSError, KeyError, ValueError, ValidationError) as e:
            log.debug(f"Cache read failed for '{self.path}': {e}")
            return None
        return catalog

    def get(self, now: float | None = None) -> Catalog | None:
        """Returns the cached catalog only if it is still within its TTL."""
        catalog = self.read()
        if catalog is None or not catalog.is_fresh(now):
            self._record(False)
            return None
        self._record(True)
        return catalog

    def set(self, catalog: Catalog) -> bool:
        """
        Saves a catalog. The file is written to a temporary name and renamed into
        place, so readers never observe a half-written cache.
        """
        payload = {
            "schema_version": self.SCHEMA_VERSION,
            "fetched_at": catalog.fetched_at,
            "ttl_seconds": catalog.ttl_seconds,
            "releases": [r.model_dump(mode="json") for r in catalog.releases],
        }
        tmp_name = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.cache_dir,
                prefix=".releases-",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(payload, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            return True
        except (TypeError, OSError) as e:
            log.warning(f"Cache write failed for '{self.path}': {e}")
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            return False

    def age(self) -> float | None:
        """Seconds since the cached catalog was fetched, if there is one."""
        catalog = self.read()
        return None if catalog is None else time.time() - catalog.fetched_at

    def clear(self) -> bool:
        """Removes the cache file."""
        log.debug("Clearing catalog cache...")
        try:
            self.path.unlink(missing_ok=True)
            return True
        except OSError as e:
            log.error(f"Failed to clear cache: {e}")
            return False
