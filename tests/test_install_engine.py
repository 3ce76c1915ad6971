"""
Tests for the install engine: state transitions, atomic placement and failure
cleanup.
"""

import asyncio
import errno
import sys

import pytest

from astudios.core.install_engine import (
    InstallEngine,
    InstallState,
    InstallStateMachine,
    map_os_error,
)
from astudios.core.version_switch import VersionSwitch
from astudios.download.coordinator import DownloadCoordinator
from astudios.exceptions import (
    AlreadyInstalledError,
    ExtractionError,
    InstallationError,
    InstallPermissionError,
    InsufficientSpaceError,
    PlatformNotAvailableError,
    UnsupportedFormatError,
)
from astudios.models.installed import InstalledVersion
from astudios.models.progress import NullProgress

from conftest import build_tar_gz, make_installed, make_release

LINUX_URL = "https://example.test/android-studio-2024.1.1-linux.tar.gz"


@pytest.fixture
def release():
    return make_release("2024.1.1", downloads=[{"url": LINUX_URL, "size": 1024}])


@pytest.fixture
def install_root(tmp_path):
    return tmp_path / "versions"


def _engine(install_root, coordinator=None):
    return InstallEngine(install_root, coordinator=coordinator, keys=["linux"])


@pytest.mark.asyncio
async def test_install_from_local_archive(release, install_root, studio_tarball):
    engine = _engine(install_root)

    installed = await engine.install(release, archive=studio_tarball)

    assert installed.identifier == "2024.1.1"
    assert installed.path == install_root / "2024.1.1"
    assert (installed.path / "bin" / "studio.sh").is_file()
    assert installed.build == "AI-241.15989.150"
    assert engine.last_run.history == [
        InstallState.PENDING,
        InstallState.EXTRACTING,
        InstallState.PLACING,
        InstallState.VERIFYING,
        InstallState.INSTALLED,
    ]
    assert list(install_root.iterdir()) == [installed.path]
    assert studio_tarball.exists()


@pytest.mark.asyncio
async def test_install_downloads_through_coordinator(
    release, install_root, studio_tarball, tmp_path
):
    class CopyBackend:
        description = "fake"

        def __init__(self):
            self.urls = []

        async def download(self, url, destination, progress, expected_size=None):
            self.urls.append(url)
            destination.write_bytes(studio_tarball.read_bytes())
            return destination

    backend = CopyBackend()
    coordinator = DownloadCoordinator(backend, tmp_path / "downloads")
    engine = _engine(install_root, coordinator)

    installed = await engine.install(release)

    assert backend.urls == [LINUX_URL]
    assert installed.is_valid()
    assert engine.last_run.history[:3] == [
        InstallState.PENDING,
        InstallState.DOWNLOADING,
        InstallState.EXTRACTING,
    ]
    assert list(install_root.iterdir()) == [installed.path]


@pytest.mark.asyncio
async def test_already_installed(release, install_root, studio_tarball):
    (install_root / "2024.1.1").mkdir(parents=True)
    engine = _engine(install_root)

    with pytest.raises(AlreadyInstalledError):
        await engine.install(release, archive=studio_tarball)

    assert engine.last_run.state is InstallState.FAILED


@pytest.mark.asyncio
async def test_force_replaces_existing_installation(
    release, install_root, studio_tarball
):
    old = install_root / "2024.1.1"
    old.mkdir(parents=True)
    (old / "stale.txt").write_text("old")

    installed = await _engine(install_root).install(
        release, force=True, archive=studio_tarball
    )

    assert not (installed.path / "stale.txt").exists()
    assert (installed.path / "bin" / "studio.sh").is_file()
    assert list(install_root.iterdir()) == [installed.path]


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
@pytest.mark.asyncio
async def test_force_reinstall_under_new_name_moves_active_alias(
    release, install_root, studio_tarball, tmp_path
):
    old = make_installed(install_root, "2024.1.1.app")
    alias = tmp_path / "bin" / "android-studio"
    switch = VersionSwitch(install_root, alias)
    switch.point_alias(InstalledVersion.from_path(old))
    engine = InstallEngine(install_root, keys=["linux"], switch=switch)

    installed = await engine.install(release, force=True, archive=studio_tarball)

    assert installed.path == install_root / "2024.1.1"
    assert not old.exists()
    assert alias.resolve() == installed.path.resolve()
    assert switch.active() == installed


@pytest.mark.asyncio
async def test_disk_full_during_placement_leaves_nothing(
    release, install_root, studio_tarball, monkeypatch
):
    def full_disk(src, dst):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr("astudios.core.install_engine.shutil.move", full_disk)
    engine = _engine(install_root)

    with pytest.raises(InsufficientSpaceError):
        await engine.install(release, archive=studio_tarball)

    assert list(install_root.iterdir()) == []
    assert engine.last_run.history[-1] is InstallState.FAILED


@pytest.mark.asyncio
async def test_disk_full_during_download_is_an_installation_error(
    release, install_root, tmp_path
):
    class FullDiskBackend:
        description = "fake"

        async def download(self, url, destination, progress, expected_size=None):
            destination.write_bytes(b"x")
            raise OSError(errno.ENOSPC, "No space left on device")

    coordinator = DownloadCoordinator(FullDiskBackend(), tmp_path / "downloads")
    engine = _engine(install_root, coordinator)

    with pytest.raises(InsufficientSpaceError):
        await engine.install(release)

    assert list(install_root.iterdir()) == []
    assert engine.last_run.history[-2:] == [
        InstallState.DOWNLOADING,
        InstallState.FAILED,
    ]


@pytest.mark.asyncio
async def test_cancelled_install_removes_work_directory(
    release, install_root, tmp_path
):
    started = asyncio.Event()

    class StallingBackend:
        description = "fake"

        async def download(self, url, destination, progress, expected_size=None):
            destination.write_bytes(b"partial")
            started.set()
            await asyncio.sleep(30)
            return destination

    coordinator = DownloadCoordinator(StallingBackend(), tmp_path / "downloads")
    engine = _engine(install_root, coordinator)

    task = asyncio.create_task(engine.install(release))
    await asyncio.wait_for(started.wait(), timeout=5)
    assert any(p.name.startswith(".work-") for p in install_root.iterdir())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert list(install_root.iterdir()) == []
    assert engine.last_run.state is InstallState.FAILED


@pytest.mark.asyncio
async def test_unknown_archive_format_fails_cleanly(release, install_root, tmp_path):
    archive = tmp_path / "android-studio-2024.1.1-linux.bin"
    archive.write_bytes(b"\x7fELF" + b"\0" * 600)

    with pytest.raises(UnsupportedFormatError) as exc_info:
        await _engine(install_root).install(release, archive=archive)

    assert "not a zip, tar.gz or dmg" in str(exc_info.value)
    assert list(install_root.iterdir()) == []


@pytest.mark.asyncio
async def test_empty_bundle_is_rejected(release, install_root, tmp_path):
    archive = build_tar_gz(tmp_path / "empty.tar.gz", {})

    with pytest.raises(ExtractionError, match="empty"):
        await _engine(install_root).install(release, archive=archive)

    assert list(install_root.iterdir()) == []


@pytest.mark.asyncio
async def test_platform_not_available(install_root):
    release = make_release(
        "2024.1.1",
        downloads=[{"url": "https://example.test/android-studio-2024.1.1-windows.zip"}],
    )
    engine = _engine(install_root)

    with pytest.raises(PlatformNotAvailableError, match="windows"):
        await engine.install(release)

    assert not install_root.exists()


def test_illegal_transition():
    machine = InstallStateMachine("2024.1.1", NullProgress())
    machine.transition(InstallState.EXTRACTING)

    with pytest.raises(InstallationError, match="extracting -> installed"):
        machine.transition(InstallState.INSTALLED)

    machine.transition(InstallState.FAILED)
    assert machine.is_terminal
    with pytest.raises(InstallationError):
        machine.transition(InstallState.PLACING)


def test_map_os_error(tmp_path):
    assert isinstance(
        map_os_error(OSError(errno.ENOSPC, "full"), tmp_path), InsufficientSpaceError
    )
    assert isinstance(
        map_os_error(OSError(errno.EACCES, "denied"), tmp_path), InstallPermissionError
    )
    assert type(map_os_error(OSError(errno.EIO, "io"), tmp_path)) is InstallationError


def test_place_without_force_keeps_existing_target(tmp_path):
    bundle = tmp_path / "bundle"
    (bundle / "bin").mkdir(parents=True)
    target = tmp_path / "root" / "2024.1.1"
    (target / "bin").mkdir(parents=True)

    with pytest.raises(AlreadyInstalledError):
        _engine(tmp_path / "root").place(bundle, target)

    assert target.is_dir()
    assert list((tmp_path / "root").iterdir()) == [target]
