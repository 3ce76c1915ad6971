"""
The Install Engine: takes a resolved release from archive to a complete,
version-keyed directory under the install root.

A version directory only ever appears through a single rename of a fully
extracted and verified bundle, so other components never observe a partially
written installation. All intermediate files live in a hidden work directory
under the install root, which is removed however the install ends.
"""

import errno
import logging
import os
import shutil
import tempfile
import uuid
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from astudios.core.extractors import detect_format, extract
from astudios.core.version_switch import VersionSwitch
from astudios.download.coordinator import DownloadCoordinator
from astudios.exceptions import (
    AlreadyInstalledError,
    InstallationError,
    InstallPermissionError,
    InsufficientSpaceError,
    PlatformNotAvailableError,
)
from astudios.models.installed import (
    BUNDLE_SUFFIX,
    InstalledVersion,
    candidate_paths,
    is_macos_bundle,
)
from astudios.models.progress import NullProgress, ProgressSink
from astudios.models.release import Release
from astudios.utils.formatting import format_size
from astudios.utils.path import create_dir, remove_path, version_dir_name
from astudios.utils.platform import platform_keys

log = logging.getLogger(__name__)

FREE_SPACE_FACTOR = 2


class InstallState(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    PLACING = "placing"
    VERIFYING = "verifying"
    INSTALLED = "installed"
    FAILED = "failed"


_TRANSITIONS: dict[InstallState, frozenset[InstallState]] = {
    InstallState.PENDING: frozenset(
        {InstallState.DOWNLOADING, InstallState.EXTRACTING, InstallState.FAILED}
    ),
    InstallState.DOWNLOADING: frozenset(
        {InstallState.EXTRACTING, InstallState.FAILED}
    ),
    InstallState.EXTRACTING: frozenset({InstallState.PLACING, InstallState.FAILED}),
    InstallState.PLACING: frozenset({InstallState.VERIFYING, InstallState.FAILED}),
    InstallState.VERIFYING: frozenset({InstallState.INSTALLED, InstallState.FAILED}),
    InstallState.INSTALLED: frozenset(),
    InstallState.FAILED: frozenset(),
}

_STAGE_MESSAGES = {
    InstallState.DOWNLOADING: "Downloading archive",
    InstallState.EXTRACTING: "Extracting archive",
    InstallState.PLACING: "Placing bundle",
    InstallState.VERIFYING: "Verifying installation",
    InstallState.INSTALLED: "Installed",
    InstallState.FAILED: "Installation failed",
}


class InstallStateMachine:
    """Tracks one install's lifecycle and reports every transition."""

    def __init__(self, version: str, progress: ProgressSink):
        self.version = version
        self.progress = progress
        self.state = InstallState.PENDING
        self.history: list[InstallState] = [InstallState.PENDING]

    def transition(self, new_state: InstallState, message: str = "") -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InstallationError(
                f"Illegal install state transition: {self.state.value} -> "
                f"{new_state.value}."
            )
        log.debug(f"[{self.version}] {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        self.progress.stage(new_state.value, message or _STAGE_MESSAGES[new_state])

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]


def map_os_error(error: OSError, path: Path) -> InstallationError:
    """Translates filesystem failures into installation errors."""
    if error.errno == errno.ENOSPC:
        return InsufficientSpaceError(f"Not enough disk space to write '{path}': {error}")
    if error.errno in (errno.EACCES, errno.EPERM):
        return InstallPermissionError(
            f"Permission denied writing '{path}': {error}. "
            "Choose a writable install directory with --directory."
        )
    return InstallationError(f"Failed to write '{path}': {error}")


def verify_bundle(bundle: Path) -> None:
    """
    Checks a staged bundle before it is committed.

    Raises:
        InstallationError: The bundle is empty.
    """
    if not bundle.is_dir() or not any(bundle.iterdir()):
        raise InstallationError(f"The extracted bundle at '{bundle}' is empty.")
    if is_macos_bundle(bundle) or (bundle / "bin").is_dir():
        return
    log.warning(
        "[yellow]The installed bundle has an unexpected layout (no "
        "'Contents/Info.plist' or 'bin/'); it may not launch.[/yellow]"
    )


class InstallEngine:
    """
    Installs releases under `install_root`.

    Args:
        install_root: Directory holding one subdirectory per installed version.
        coordinator: Downloads archives; only needed when no local archive is
            passed to `install`.
        progress: Receives stage changes and transfer progress.
        keys: Download platform keys in order of preference.
        switch: When given, an alias pointing at a replaced installation is
            moved to its replacement.
    """

    def __init__(
        self,
        install_root: Path,
        coordinator: DownloadCoordinator | None = None,
        progress: ProgressSink | None = None,
        keys: list[str] | None = None,
        switch: VersionSwitch | None = None,
    ):
        self.install_root = install_root
        self.coordinator = coordinator
        self.progress = progress or NullProgress()
        self.keys = keys or platform_keys()
        self.switch = switch
        self.last_run: InstallStateMachine | None = None

    def existing_installation(self, identifier: str) -> Path | None:
        for path in candidate_paths(self.install_root, identifier):
            if path.exists() or path.is_symlink():
                return path
        return None

    def check_free_space(self, required_bytes: int) -> None:
        """
        Raises:
            InsufficientSpaceError: The install root's filesystem has less than
            `FREE_SPACE_FACTOR` times `required_bytes` free.
        """
        if required_bytes <= 0:
            return
        needed = required_bytes * FREE_SPACE_FACTOR
        free = shutil.disk_usage(self.install_root).free
        if free < needed:
            raise InsufficientSpaceError(
                f"Installing needs about {format_size(needed)} free in "
                f"'{self.install_root}', but only {format_size(free)} is available."
            )

    async def install(
        self,
        release: Release,
        *,
        force: bool = False,
        archive: Path | None = None,
    ) -> InstalledVersion:
        """
        Downloads (unless `archive` is given), extracts and places a release.

        Raises:
            PlatformNotAvailableError: The release has no download for this platform.
            AlreadyInstalledError: The version is installed and `force` is not set.
            InstallationError: Placement failed; nothing new is left behind.
        """
        machine = InstallStateMachine(release.identifier, self.progress)
        self.last_run = machine
        try:
            return await self._run(machine, release, force, archive)
        except BaseException:
            if not machine.is_terminal:
                machine.transition(InstallState.FAILED)
            raise

    async def _run(
        self,
        machine: InstallStateMachine,
        release: Release,
        force: bool,
        archive: Path | None,
    ) -> InstalledVersion:
        download = release.download_for(self.keys)
        if archive is None and download is None:
            available = ", ".join(sorted(release.downloads)) or "none"
            raise PlatformNotAvailableError(
                f"{release.display_name} has no download for this platform "
                f"({', '.join(self.keys)}). Available: {available}."
            )

        existing = self.existing_installation(release.identifier)
        if existing is not None and not force:
            raise AlreadyInstalledError(release.identifier, existing)
        was_active = (
            existing is not None
            and self.switch is not None
            and self.switch.is_active(InstalledVersion(release.identifier, existing))
        )

        try:
            create_dir(self.install_root)
        except OSError as e:
            raise map_os_error(e, self.install_root) from e

        if archive is not None:
            self.check_free_space(archive.stat().st_size)
        elif download is not None:
            self.check_free_space(download.size)

        work_dir = Path(tempfile.mkdtemp(prefix=".work-", dir=self.install_root))
        try:
            if archive is None:
                if self.coordinator is None:
                    raise InstallationError("No downloader configured for install.")
                machine.transition(InstallState.DOWNLOADING)
                try:
                    archive = await self.coordinator.download(download, work_dir)
                except OSError as e:
                    raise map_os_error(e, work_dir) from e

            machine.transition(InstallState.EXTRACTING, f"Extracting {archive.name}")
            try:
                bundle = await extract(
                    archive, work_dir / "extracted", detect_format(archive)
                )
            except OSError as e:
                raise map_os_error(e, work_dir) from e

            machine.transition(InstallState.PLACING)
            name = version_dir_name(release.identifier)
            if is_macos_bundle(bundle):
                name += BUNDLE_SUFFIX
            target_dir = self.install_root / name

            def verify(staged: Path) -> None:
                machine.transition(InstallState.VERIFYING)
                verify_bundle(staged)

            placed = self.place(bundle, target_dir, force=force, verify=verify)
            if existing is not None and existing != placed:
                if was_active:
                    self.switch.point_alias(
                        InstalledVersion(identifier=release.identifier, path=placed)
                    )
                remove_path(existing)
        finally:
            remove_path(work_dir)

        machine.transition(InstallState.INSTALLED)
        log.info(f"[green]Installed {release.display_name} to '{placed}'.[/green]")
        return InstalledVersion(identifier=release.identifier, path=placed)

    def place(
        self,
        bundle: Path,
        target_dir: Path,
        force: bool = False,
        verify: Callable[[Path], None] | None = None,
    ) -> Path:
        """
        Moves `bundle` into `target_dir` with a single rename.

        The bundle is first moved into a hidden staging directory next to the
        target, verified there and then renamed into place. With `force` an
        existing target is moved aside first and restored if the commit fails.

        Raises:
            AlreadyInstalledError: `target_dir` exists and `force` is not set.
            InsufficientSpaceError: The filesystem ran out of space.
            InstallPermissionError: The install root is not writable.
            InstallationError: Any other placement failure.
        """
        parent = target_dir.parent
        token = uuid.uuid4().hex[:8]
        staging = parent / f".staging-{target_dir.name}-{token}"
        aside: Path | None = None
        try:
            create_dir(parent)
            shutil.move(str(bundle), str(staging))
            if verify is not None:
                verify(staging)

            if target_dir.exists() or target_dir.is_symlink():
                if not force:
                    raise AlreadyInstalledError(target_dir.name, target_dir)
                aside = parent / f".previous-{target_dir.name}-{token}"
                os.rename(target_dir, aside)

            try:
                os.rename(staging, target_dir)
            except OSError:
                if aside is not None:
                    os.rename(aside, target_dir)
                    aside = None
                raise
        except OSError as e:
            raise map_os_error(e, target_dir) from e
        finally:
            if staging.exists() or staging.is_symlink():
                remove_path(staging)

        if aside is not None:
            log.debug(f"Removing previous installation moved to '{aside}'.")
            remove_path(aside)
        log.debug(f"Placed bundle at '{target_dir}'.")
        return target_dir
