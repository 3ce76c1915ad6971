"""
Tests for uninstalling versions and cleaning downloads and caches.
"""

import sys

import pytest

from astudios.core.housekeeping import clean, clean_targets, reclaimable_bytes, uninstall
from astudios.core.version_switch import VersionSwitch
from astudios.exceptions import TargetNotInstalledError

from conftest import make_installed


@pytest.fixture
def switch(tmp_path):
    install_root = tmp_path / "versions"
    make_installed(install_root, "2024.1.1")
    make_installed(install_root, "2024.2.1")
    return VersionSwitch(install_root, tmp_path / "android-studio")


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
def test_uninstall_inactive_version_keeps_alias(switch):
    switch.use("2024.2.1")

    removed = uninstall("2024.1.1", switch)

    assert not removed.path.exists()
    assert switch.active().identifier == "2024.2.1"


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
def test_uninstall_active_version_removes_alias(switch):
    switch.use("2024.2.1")

    uninstall("2024.2.1", switch)

    assert not switch.alias_path.is_symlink()
    assert [v.identifier for v in switch.installed()] == ["2024.1.1"]


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
def test_uninstall_dry_run_changes_nothing(switch):
    switch.use("2024.2.1")

    version = uninstall("2024.2.1", switch, dry_run=True)

    assert version.path.is_dir()
    assert switch.active().identifier == "2024.2.1"


def test_uninstall_unknown_version(switch):
    with pytest.raises(TargetNotInstalledError):
        uninstall("2023.3.1", switch)


def test_clean_removes_downloads_cache_and_work_dirs(tmp_path):
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    (downloads / "android-studio-2024.1.1-linux.tar.gz").write_bytes(b"x" * 100)
    (downloads / "android-studio-2024.2.1-linux.tar.gz.part").write_bytes(b"x" * 20)
    cache_file = tmp_path / "cache" / "releases.json"
    cache_file.parent.mkdir()
    cache_file.write_text("{}")
    install_root = tmp_path / "versions"
    make_installed(install_root, "2024.1.1")
    (install_root / ".work-1234" / "extracted").mkdir(parents=True)

    targets = clean_targets(downloads, cache_file, install_root)

    assert len(targets) == 4
    assert reclaimable_bytes(targets) == 122

    assert clean(targets, dry_run=True) == targets
    assert all(path.exists() for path in targets)

    assert clean(targets) == targets
    assert not any(path.exists() for path in targets)
    assert (install_root / "2024.1.1" / "bin" / "studio.sh").is_file()


def test_clean_with_nothing_to_do(tmp_path):
    targets = clean_targets(tmp_path / "downloads", tmp_path / "releases.json")
    assert targets == []
    assert clean(targets) == []
