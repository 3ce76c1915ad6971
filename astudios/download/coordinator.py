"""
Chooses a download backend and drives a single archive download from the
catalog to a verified file on disk.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path

from astudios.download.backends import Aria2Backend, DownloadBackend, NativeBackend
from astudios.download.integrity import FileIntegrityChecker
from astudios.exceptions import ConfigurationError, DownloaderNotFoundError
from astudios.models.config import AppConfig
from astudios.models.progress import NullProgress, ProgressSink
from astudios.models.release import Download
from astudios.utils.formatting import format_size
from astudios.utils.path import create_dir

log = logging.getLogger(__name__)

ARIA2_SEARCH_PATHS = (
    Path("/usr/local/bin/aria2c"),
    Path("/opt/homebrew/bin/aria2c"),
    Path("/usr/bin/aria2c"),
    Path("/bin/aria2c"),
)
PART_SUFFIX = ".part"


def find_aria2(search_paths: tuple[Path, ...] = ARIA2_SEARCH_PATHS) -> Path | None:
    """Looks for an executable `aria2c` in well-known locations, then on PATH."""
    for candidate in search_paths:
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
    found = shutil.which("aria2c")
    return Path(found) if found else None


def select_backend(
    override: str | None = None,
    aria2_path: Path | None = None,
    config: AppConfig | None = None,
) -> DownloadBackend:
    """
    Picks the download backend.

    Without an override aria2 is preferred whenever it can be found; an
    explicit override always wins.

    Args:
        override: 'auto', 'native' or 'aria2'.
        aria2_path: A known `aria2c` location; probed for when omitted.
        config: Supplies retry and timeout settings.

    Raises:
        DownloaderNotFoundError: 'aria2' was requested but is not installed.
    """
    config = config or AppConfig()
    choice = (override or "auto").lower()

    native = NativeBackend(
        max_attempts=config.max_attempts,
        base_delay=config.retry_base_delay,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )
    if choice == "native":
        return native
    if choice not in ("auto", "aria2"):
        raise ConfigurationError(
            f"Unknown download backend '{override}'. Use 'native' or 'aria2'."
        )

    executable = aria2_path or find_aria2()
    if executable is None:
        if choice == "aria2":
            raise DownloaderNotFoundError(
                "aria2c was requested but could not be found. Install it "
                "(e.g. 'brew install aria2') or use '--backend native'."
            )
        log.debug("aria2c not found, using the native downloader.")
        return native

    log.debug(f"Using aria2c at '{executable}'.")
    return Aria2Backend(
        executable,
        connections=config.aria2_connections,
        max_tries=config.max_attempts,
        retry_wait=config.retry_base_delay,
    )


class DownloadCoordinator:
    """
    Downloads archives into a directory through the selected backend.

    Bytes land in a `.part` file that is renamed to the final name only after
    its checksum has been verified. The `.part` file never survives a failure
    or a cancellation.
    """

    def __init__(
        self,
        backend: DownloadBackend,
        downloads_dir: Path,
        progress: ProgressSink | None = None,
    ):
        self.backend = backend
        self.downloads_dir = downloads_dir
        self.progress = progress or NullProgress()

    async def download(
        self, download: Download, destination_dir: Path | None = None
    ) -> Path:
        destination_dir = destination_dir or self.downloads_dir
        create_dir(destination_dir)
        final_path = destination_dir / download.filename
        part_path = final_path.with_name(final_path.name + PART_SUFFIX)

        if await self._is_reusable(final_path, download):
            log.info(f"Using previously downloaded [cyan]{final_path.name}[/cyan].")
            return final_path

        size_text = f" ({format_size(download.size)})" if download.size else ""
        self.progress.stage(
            "download",
            f"Downloading {final_path.name}{size_text} via {self.backend.description}",
        )

        committed = False
        try:
            await self.backend.download(
                download.url, part_path, self.progress, download.size or None
            )
            if download.checksum:
                self.progress.stage("verify", f"Verifying {final_path.name}")
                await FileIntegrityChecker.verify(
                    part_path, download.checksum, download.checksum_algorithm
                )
            else:
                log.debug(f"No checksum published for '{final_path.name}'.")
            os.replace(part_path, final_path)
            committed = True
        finally:
            if not committed:
                self._discard(part_path)

        log.debug(f"Downloaded '{final_path}'.")
        return final_path

    async def _is_reusable(self, path: Path, download: Download) -> bool:
        """An earlier complete download can be reused if it still checks out."""
        if not path.is_file():
            return False
        if download.checksum:
            actual = await asyncio.to_thread(
                FileIntegrityChecker.compute_checksum,
                path,
                download.checksum_algorithm,
            )
            return actual == download.checksum
        return download.size > 0 and path.stat().st_size == download.size

    @staticmethod
    def _discard(part_path: Path) -> None:
        for leftover in (part_path, part_path.with_name(part_path.name + ".aria2")):
            if leftover.exists():
                log.debug(f"Removing incomplete download '{leftover}'.")
                leftover.unlink(missing_ok=True)
