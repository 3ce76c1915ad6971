"""
Archive extraction.

Each supported `ArchiveFormat` maps to one extractor coroutine that unpacks an
archive into a destination directory. Blocking work runs in a thread so the
event loop stays responsive; disk images are mounted with `hdiutil` for exactly
as long as it takes to copy the application bundle out.
"""

import asyncio
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from astudios.exceptions import ExtractionError, MountError, UnsupportedFormatError
from astudios.models.release import ArchiveFormat

log = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
GZIP_MAGIC = b"\x1f\x8b"
UDIF_TRAILER_MAGIC = b"koly"
UDIF_TRAILER_SIZE = 512

HDIUTIL = "hdiutil"
PREFERRED_APP_NAMES = ("Android Studio.app", "Android Studio Preview.app")
IGNORED_ENTRIES = {"__MACOSX"}


def detect_format(archive: Path) -> ArchiveFormat:
    """
    Determines an archive's format from its name, falling back to its magic
    bytes for files with an unknown or missing suffix.

    Raises:
        UnsupportedFormatError: The file is none of zip, tar.gz or dmg.
    """
    by_name = ArchiveFormat.from_filename(archive.name)
    if by_name is not None:
        return by_name

    try:
        with open(archive, "rb") as f:
            head = f.read(4)
            size = f.seek(0, os.SEEK_END)
            trailer = b""
            if size >= UDIF_TRAILER_SIZE:
                f.seek(size - UDIF_TRAILER_SIZE)
                trailer = f.read(4)
    except OSError as e:
        raise ExtractionError(f"Cannot read archive '{archive}': {e}") from e

    if head == ZIP_MAGIC:
        return ArchiveFormat.ZIP
    if head[:2] == GZIP_MAGIC:
        return ArchiveFormat.TAR_GZ
    if trailer == UDIF_TRAILER_MAGIC:
        return ArchiveFormat.DMG
    raise UnsupportedFormatError(
        f"'{archive.name}' is not a zip, tar.gz or dmg archive."
    )


def _safe_target(destination: Path, member_name: str) -> Path:
    """Joins a member name onto the destination, rejecting escapes."""
    target = Path(os.path.normpath(destination / member_name))
    if os.path.commonpath([destination, target]) != str(destination):
        raise ExtractionError(
            f"Archive member '{member_name}' would be written outside the "
            "extraction directory."
        )
    return target


def _extract_zip_sync(archive: Path, destination: Path) -> None:
    destination = Path(os.path.abspath(destination))
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = _safe_target(destination, info.filename)
            mode = info.external_attr >> 16

            if stat.S_ISLNK(mode):
                link = zf.read(info).decode("utf-8")
                _safe_target(destination, str(Path(info.filename).parent / link))
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.is_symlink() or target.exists():
                    target.unlink()
                os.symlink(link, target)
                continue

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, open(target, "wb") as sink:
                shutil.copyfileobj(source, sink)
            permissions = stat.S_IMODE(mode)
            if permissions:
                os.chmod(target, permissions)


async def extract_zip(archive: Path, destination: Path) -> None:
    """Unpacks a zip archive, keeping Unix permission bits and symlinks."""
    try:
        await asyncio.to_thread(_extract_zip_sync, archive, destination)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise ExtractionError(f"Corrupt zip archive '{archive.name}': {e}") from e


def _extract_tar_sync(archive: Path, destination: Path) -> None:
    with tarfile.open(archive, "r:*") as tar:
        tar.extractall(destination, filter="data")


async def extract_tar_gz(archive: Path, destination: Path) -> None:
    """Unpacks a gzip-compressed tarball with the safe 'data' filter."""
    try:
        await asyncio.to_thread(_extract_tar_sync, archive, destination)
    except tarfile.FilterError as e:
        raise ExtractionError(
            f"Unsafe member in '{archive.name}' was rejected: {e}"
        ) from e
    except (tarfile.TarError, EOFError) as e:
        raise ExtractionError(f"Corrupt tar archive '{archive.name}': {e}") from e


async def run_hdiutil(*args: str) -> tuple[int, str]:
    """Runs `hdiutil` and returns its exit code and combined output."""
    log.debug(f"Running: {HDIUTIL} {' '.join(args)}")
    try:
        process = await asyncio.create_subprocess_exec(
            HDIUTIL,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise MountError(
            "hdiutil is not available; disk images can only be installed on macOS."
        ) from e
    output, _ = await process.communicate()
    return process.returncode, output.decode(errors="replace").strip()


@asynccontextmanager
async def mounted_image(image: Path, mount_point: Path) -> AsyncIterator[Path]:
    """
    Attaches a disk image read-only at `mount_point` and detaches it again on
    every way out of the block, including errors and cancellation.
    """
    code, output = await run_hdiutil(
        "attach",
        str(image),
        "-nobrowse",
        "-readonly",
        "-noautoopen",
        "-mountpoint",
        str(mount_point),
    )
    if code != 0:
        raise MountError(f"Failed to mount '{image.name}': {output or f'exit {code}'}")
    log.debug(f"Mounted '{image.name}' at '{mount_point}'.")
    try:
        yield mount_point
    finally:
        await _detach(mount_point)


async def _detach(mount_point: Path) -> None:
    code, output = await run_hdiutil("detach", str(mount_point), "-quiet")
    if code == 0:
        log.debug(f"Detached '{mount_point}'.")
        return
    log.debug(f"Detach failed ({output}), retrying with -force.")
    code, output = await run_hdiutil("detach", str(mount_point), "-force", "-quiet")
    if code != 0:
        log.error(
            f"[red]Could not detach '{mount_point}': {output}. "
            f"Eject it manually with 'hdiutil detach {mount_point}'.[/red]"
        )


def find_app_bundle(volume: Path) -> Path:
    """Picks the application bundle at the top of a mounted volume."""
    apps = sorted(
        entry
        for entry in volume.iterdir()
        if entry.name.endswith(".app") and entry.is_dir() and not entry.is_symlink()
    )
    if not apps:
        raise ExtractionError(f"No .app bundle found in disk image at '{volume}'.")
    for name in PREFERRED_APP_NAMES:
        for app in apps:
            if app.name == name:
                return app
    return apps[0]


async def extract_dmg(image: Path, destination: Path) -> None:
    """Copies the application bundle out of a disk image."""
    mount_point = Path(tempfile.mkdtemp(prefix=".mount-", dir=destination.parent))
    try:
        async with mounted_image(image, mount_point) as volume:
            app = find_app_bundle(volume)
            log.debug(f"Copying '{app.name}' out of the disk image...")
            await asyncio.to_thread(
                shutil.copytree, app, destination / app.name, symlinks=True
            )
    finally:
        if mount_point.is_dir() and not os.path.ismount(mount_point):
            mount_point.rmdir()


Extractor = Callable[[Path, Path], Awaitable[None]]

EXTRACTORS: dict[ArchiveFormat, Extractor] = {
    ArchiveFormat.ZIP: extract_zip,
    ArchiveFormat.TAR_GZ: extract_tar_gz,
    ArchiveFormat.DMG: extract_dmg,
}


def find_bundle_root(extracted: Path) -> Path:
    """
    A single top-level directory in an extracted archive is the bundle;
    otherwise the extraction directory itself is.
    """
    entries = [
        entry
        for entry in extracted.iterdir()
        if entry.name not in IGNORED_ENTRIES and not entry.name.startswith(".")
    ]
    if not entries:
        raise ExtractionError("The archive is empty.")
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        return entries[0]
    return extracted


async def extract(
    archive: Path, destination: Path, archive_format: ArchiveFormat | None = None
) -> Path:
    """
    Unpacks `archive` into `destination` and returns the bundle directory.

    Raises:
        UnsupportedFormatError: No extractor exists for the archive's format.
        ExtractionError: The archive is corrupt, unsafe or empty.
    """
    archive_format = archive_format or detect_format(archive)
    extractor = EXTRACTORS.get(archive_format)
    if extractor is None:
        raise UnsupportedFormatError(f"No extractor for format '{archive_format}'.")

    destination.mkdir(parents=True, exist_ok=True)
    log.debug(f"Extracting '{archive.name}' ({archive_format.value}) to '{destination}'")
    await extractor(archive, destination)
    return find_bundle_root(destination)
