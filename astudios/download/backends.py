"""
Download backends: a native streaming HTTP client and a wrapper around the
external `aria2c` downloader.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Protocol

import aiofiles
import aiohttp

from astudios import __version__
from astudios.exceptions import DownloadError, NetworkError
from astudios.models.progress import ProgressSink

log = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429})


class DownloadBackend(Protocol):
    """Transfers one URL to a local file."""

    description: str

    async def download(
        self,
        url: str,
        destination: Path,
        progress: ProgressSink,
        expected_size: int | None = None,
    ) -> Path: ...


def _is_retryable_status(status: int) -> bool:
    return status >= 500 or status in RETRYABLE_STATUSES


class NativeBackend:
    """
    Streams a single HTTP response to disk with aiohttp and aiofiles.

    Timeouts, dropped connections, truncated payloads, 5xx and 429 responses
    are retried with exponential backoff; any other 4xx fails immediately.
    """

    description = "native HTTP"
    CHUNK_SIZE = 1024 * 1024

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        connect_timeout: float = 15,
        read_timeout: float = 90,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )

    async def download(
        self,
        url: str,
        destination: Path,
        progress: ProgressSink,
        expected_size: int | None = None,
    ) -> Path:
        last_exception: Exception | None = None
        async with aiohttp.ClientSession(
            timeout=self._timeout,
            headers={"User-Agent": f"astudios/{__version__}"},
        ) as session:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    await self._attempt(
                        session, url, destination, progress, expected_size
                    )
                    return destination
                except aiohttp.ClientResponseError as e:
                    if not _is_retryable_status(e.status):
                        raise DownloadError(
                            f"Server answered HTTP {e.status} ({e.message}) for {url}",
                            url=url,
                            status=e.status,
                        ) from e
                    last_exception = e
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    last_exception = e

                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{destination.name}' failed: {last_exception!r}."
                )
                if attempt < self.max_attempts:
                    delay = self.base_delay * (2 ** (attempt - 1))
                    log.warning(
                        f"[yellow]Download interrupted, retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_attempts})...[/yellow]"
                    )
                    await asyncio.sleep(delay)

        raise NetworkError(
            f"Download failed after {self.max_attempts} attempts: "
            f"{last_exception or 'unknown error'}",
            url=url,
        ) from last_exception

    async def _attempt(
        self,
        session: aiohttp.ClientSession,
        url: str,
        destination: Path,
        progress: ProgressSink,
        expected_size: int | None,
    ) -> None:
        handle = progress.start_transfer(destination.name, expected_size or None)
        success = False
        try:
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                total = response.content_length or expected_size or None
                progress.set_total(handle, total)

                async with aiofiles.open(destination, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        progress.advance(handle, len(chunk))
            success = True
        finally:
            progress.finish_transfer(handle, success=success)


class Aria2Backend:
    """
    Delegates the transfer to `aria2c`, which opens several connections per
    server. The subprocess never outlives the coroutine awaiting it.
    """

    description = "aria2"
    TERMINATE_GRACE_SECONDS = 5.0

    def __init__(
        self,
        executable: Path,
        connections: int = 16,
        max_tries: int = 3,
        retry_wait: float = 1.5,
    ):
        self.executable = executable
        self.connections = connections
        self.max_tries = max_tries
        self.retry_wait = retry_wait

    def build_command(self, url: str, destination: Path) -> list[str]:
        return [
            str(self.executable),
            url,
            f"--dir={destination.parent}",
            f"--out={destination.name}",
            f"--max-connection-per-server={self.connections}",
            f"--split={self.connections}",
            "--min-split-size=1M",
            "--continue=true",
            f"--max-tries={self.max_tries}",
            f"--retry-wait={math.ceil(self.retry_wait)}",
            "--console-log-level=error",
            "--summary-interval=0",
            "--auto-file-renaming=false",
            "--allow-overwrite=true",
        ]

    async def download(
        self,
        url: str,
        destination: Path,
        progress: ProgressSink,
        expected_size: int | None = None,
    ) -> Path:
        command = self.build_command(url, destination)
        log.debug(f"Running: {' '.join(command)}")

        handle = progress.start_transfer(destination.name, expected_size or None)
        success = False
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout, stderr = await process.communicate()
            except asyncio.CancelledError:
                await self._terminate(process)
                raise

            if process.returncode != 0:
                diagnostic = (stderr or stdout).decode(errors="replace").strip()
                raise DownloadError(
                    f"aria2c exited with code {process.returncode} for {url}",
                    url=url,
                    diagnostic=diagnostic,
                )
            if not destination.is_file():
                raise DownloadError(
                    f"aria2c reported success but '{destination.name}' is missing.",
                    url=url,
                )

            size = destination.stat().st_size
            progress.set_total(handle, size)
            progress.advance(handle, size)
            success = True
            return destination
        finally:
            progress.finish_transfer(handle, success=success)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stops the subprocess, escalating to SIGKILL after a grace period."""
        if process.returncode is not None:
            return
        log.debug(f"Terminating aria2c (pid {process.pid})...")
        try:
            process.terminate()
            try:
                await asyncio.wait_for(
                    process.wait(), timeout=self.TERMINATE_GRACE_SECONDS
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass
