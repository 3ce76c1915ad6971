"""
Manages a Rich progress display for downloads and install stages.
"""

import asyncio
import logging
from datetime import datetime

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

log = logging.getLogger("astudios")

_STAGE_STYLES = {
    "download": "cyan",
    "downloading": "cyan",
    "verify": "blue",
    "extracting": "magenta",
    "placing": "magenta",
    "verifying": "blue",
    "installed": "green",
    "failed": "red",
}


class ProgressManager:
    """
    Renders transfer progress bars and stage messages on the console. Implements
    the core's `ProgressSink` interface.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )

        self._started = False
        self._stats = {
            "start_time": None,
            "transfers": 0,
            "failed_transfers": 0,
            "downloaded_size": 0,
            "cache_hits": 0,
            "cache_misses": 0,
        }

    def stage(self, label: str, message: str) -> None:
        if self.quiet:
            return
        style = _STAGE_STYLES.get(label, "white")
        suffix = "" if label in ("installed", "failed") else "..."
        log.info(f"[{style}]{message}{suffix}[/{style}]")

    def start_transfer(self, description: str, total: int | None) -> int:
        if len(description) > 50:
            description = description[:24] + "…" + description[-24:]
        self._stats["transfers"] += 1
        if self.quiet:
            return 0
        if not self._started:
            self.progress.start()
            self._started = True
        return int(self.progress.add_task(description, total=total, start=True))

    def set_total(self, handle: int, total: int | None) -> None:
        if not self.quiet:
            self.progress.update(TaskID(handle), total=total)

    def advance(self, handle: int, amount: int) -> None:
        self._stats["downloaded_size"] += amount
        if not self.quiet:
            self.progress.advance(TaskID(handle), amount)

    def finish_transfer(self, handle: int, success: bool = True) -> None:
        if not success:
            self._stats["failed_transfers"] += 1
        if self.quiet:
            return
        task_id = TaskID(handle)
        if success:
            task = next((t for t in self.progress.tasks if t.id == task_id), None)
            if task is not None and task.total is None:
                self.progress.update(task_id, total=task.completed)
            self.progress.stop_task(task_id)
        else:
            self.progress.remove_task(task_id)

    def record_cache(self, hit: bool) -> None:
        key = "cache_hits" if hit else "cache_misses"
        self._stats[key] += 1

    def get_statistics(self) -> dict:
        return self._stats.copy()

    async def __aenter__(self):
        self._stats["start_time"] = datetime.now()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._started:
            await asyncio.sleep(0.1)
            self.progress.stop()
            self._started = False
