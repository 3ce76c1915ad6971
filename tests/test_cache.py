"""
Tests for the on-disk catalog cache.
"""

import json
import time

from astudios.models.release import Catalog
from astudios.storage.cache import CatalogCache


def test_round_trip(tmp_path, scenario_catalog):
    cache = CatalogCache(tmp_path / "cache", ttl_seconds=3600)

    assert cache.set(scenario_catalog)
    cached = cache.get()

    assert cached is not None
    assert cached.identifiers == scenario_catalog.identifiers
    assert cached.releases[0].channel == scenario_catalog.releases[0].channel
    assert cached.fetched_at == scenario_catalog.fetched_at
    assert not list((tmp_path / "cache").glob(".releases-*"))


def test_missing_cache_is_a_miss(tmp_path):
    cache = CatalogCache(tmp_path)
    assert cache.read() is None
    assert cache.get() is None
    assert cache.age() is None


def test_expired_cache_is_a_miss_but_still_readable(tmp_path, scenario_catalog):
    cache = CatalogCache(tmp_path, ttl_seconds=60)
    cache.set(
        Catalog(releases=scenario_catalog.releases, fetched_at=time.time() - 120)
    )

    assert cache.get() is None
    assert cache.read() is not None
    assert cache.age() >= 120


def test_ttl_is_taken_from_the_cache_not_the_file(tmp_path, scenario_catalog):
    now = time.time()
    CatalogCache(tmp_path, ttl_seconds=10).set(
        Catalog(releases=scenario_catalog.releases, fetched_at=now - 30)
    )

    assert CatalogCache(tmp_path, ttl_seconds=10).get(now=now) is None
    assert CatalogCache(tmp_path, ttl_seconds=3600).get(now=now) is not None


def test_corrupt_cache_is_a_miss(tmp_path):
    cache = CatalogCache(tmp_path)
    cache.path.write_text("{\"schema_version\": 1, \"releases\": [")
    assert cache.get() is None

    cache.path.write_text("[]")
    assert cache.get() is None


def test_invalid_release_payload_is_a_miss(tmp_path):
    cache = CatalogCache(tmp_path)
    cache.path.write_text(
        json.dumps(
            {
                "schema_version": CatalogCache.SCHEMA_VERSION,
                "fetched_at": time.time(),
                "releases": [{"name": "no version or build"}],
            }
        )
    )
    assert cache.get() is None


def test_schema_mismatch_is_a_miss(tmp_path, scenario_catalog):
    cache = CatalogCache(tmp_path)
    cache.set(scenario_catalog)
    payload = json.loads(cache.path.read_text())
    payload["schema_version"] = CatalogCache.SCHEMA_VERSION + 1
    cache.path.write_text(json.dumps(payload))

    assert cache.get() is None


def test_stats_callback_records_hits_and_misses(tmp_path, scenario_catalog):
    events = []
    cache = CatalogCache(tmp_path, stats_callback=events.append)

    cache.get()
    cache.set(scenario_catalog)
    cache.get()

    assert events == [False, True]


def test_clear(tmp_path, scenario_catalog):
    cache = CatalogCache(tmp_path)
    cache.set(scenario_catalog)

    assert cache.clear()
    assert not cache.path.exists()
    assert cache.clear()
