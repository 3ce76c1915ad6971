"""
Tests for switching the active version through the alias symlink.
"""

import os
import sys

import pytest

from astudios.core.version_switch import VersionSwitch
from astudios.exceptions import (
    AliasUpdateError,
    AmbiguousVersionError,
    TargetNotInstalledError,
)
from astudios.models.release import Catalog

from conftest import make_installed, make_release

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="symlinks need privileges on Windows"
)


@pytest.fixture
def switch(tmp_path):
    install_root = tmp_path / "versions"
    for identifier in ("2024.1.1", "2024.2.1", "2024.3.2"):
        make_installed(install_root, identifier)
    return VersionSwitch(install_root, tmp_path / "bin" / "android-studio")


def test_installed_lists_newest_first_and_skips_work_dirs(switch):
    (switch.install_root / ".work-abc").mkdir()
    (switch.install_root / "notes.txt").write_text("")

    assert [v.identifier for v in switch.installed()] == [
        "2024.3.2",
        "2024.2.1",
        "2024.1.1",
    ]


def test_first_switch_creates_alias(switch):
    assert switch.active() is None

    version = switch.use("2024.2.1")

    assert switch.alias_path.is_symlink()
    assert switch.alias_path.resolve() == version.path.resolve()
    assert switch.active().identifier == "2024.2.1"
    assert not [p for p in switch.alias_path.parent.iterdir() if p.name.endswith(".tmp")]


def test_switching_again_is_a_no_op(switch):
    switch.use("2024.2.1")
    before = os.lstat(switch.alias_path)

    assert switch.point_alias(switch.find_installed("2024.2.1")) is False
    switch.use("2024.2.1")

    after = os.lstat(switch.alias_path)
    assert (after.st_ino, after.st_mtime_ns) == (before.st_ino, before.st_mtime_ns)


def test_switch_replaces_existing_alias(switch):
    switch.use("2024.1.1")
    switch.use("2024.3.2")
    assert switch.active().identifier == "2024.3.2"


def test_active_is_read_from_disk(switch):
    switch.use("2024.1.1")
    other = VersionSwitch(switch.install_root, switch.alias_path)
    other.use("2024.3.2")

    assert switch.active().identifier == "2024.3.2"

    switch.alias_path.unlink()
    assert switch.active() is None


def test_refuses_to_replace_a_real_directory(switch):
    switch.alias_path.mkdir(parents=True)
    (switch.alias_path / "keep.txt").write_text("mine")

    with pytest.raises(AliasUpdateError, match="not a symlink"):
        switch.use("2024.1.1")

    assert (switch.alias_path / "keep.txt").read_text() == "mine"


def test_target_not_installed(switch):
    with pytest.raises(TargetNotInstalledError):
        switch.use("2023.3.1")
    assert not switch.alias_path.exists()


def test_nothing_installed(tmp_path):
    switch = VersionSwitch(tmp_path / "versions", tmp_path / "alias")
    with pytest.raises(TargetNotInstalledError, match="No versions are installed"):
        switch.use("2024.1.1")


def test_prefix_match_without_catalog(switch):
    assert switch.find_installed("2024.3").identifier == "2024.3.2"
    with pytest.raises(AmbiguousVersionError):
        switch.find_installed("2024")


def test_codename_resolved_against_installed_versions(switch, scenario_catalog):
    assert switch.find_installed("ladybug", scenario_catalog).identifier == "2024.2.1"
    assert switch.find_installed("latest", scenario_catalog).identifier == "2024.1.1"


def test_catalog_matches_are_restricted_to_installed_versions(switch):
    catalog = Catalog(
        releases=[
            make_release("2024.1.1", name="Android Studio Koala | 2024.1.1"),
            make_release("2024.1.2", name="Android Studio Koala Feature Drop | 2024.1.2"),
        ]
    )
    assert switch.find_installed("koala", catalog).identifier == "2024.1.1"
    with pytest.raises(TargetNotInstalledError):
        switch.find_installed("hedgehog", catalog)


def test_path_inside_an_installation(switch, tmp_path):
    script = switch.install_root / "2024.2.1" / "bin" / "studio.sh"
    assert switch.find_installed(str(script)).identifier == "2024.2.1"

    with pytest.raises(TargetNotInstalledError):
        switch.find_installed(str(tmp_path))


def test_chooser_is_used_without_target(switch):
    offered = []

    def choose(versions):
        offered.extend(v.identifier for v in versions)
        return versions[-1]

    version = switch.use(chooser=choose)

    assert offered == ["2024.3.2", "2024.2.1", "2024.1.1"]
    assert version.identifier == "2024.1.1"
    assert switch.active().identifier == "2024.1.1"


def test_incomplete_installation_is_not_activated(switch):
    (switch.install_root / "2024.4.1").mkdir()
    with pytest.raises(TargetNotInstalledError, match="empty or incomplete"):
        switch.use("2024.4.1")
    assert switch.active() is None
