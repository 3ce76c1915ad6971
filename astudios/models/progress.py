"""
The interface through which the core reports lifecycle events.

The console progress display lives in `astudios.cli.progress_manager`; the core
only depends on this protocol and falls back to `NullProgress`.
"""

from typing import Protocol


class ProgressSink(Protocol):
    """Receives stage changes and byte-level transfer progress."""

    def stage(self, label: str, message: str) -> None: ...

    def start_transfer(self, description: str, total: int | None) -> int: ...

    def set_total(self, handle: int, total: int | None) -> None: ...

    def advance(self, handle: int, amount: int) -> None: ...

    def finish_transfer(self, handle: int, success: bool = True) -> None: ...


class NullProgress:
    """A sink that ignores every event."""

    def stage(self, label: str, message: str) -> None:
        pass

    def start_transfer(self, description: str, total: int | None) -> int:
        return 0

    def set_total(self, handle: int, total: int | None) -> None:
        pass

    def advance(self, handle: int, amount: int) -> None:
        pass

    def finish_transfer(self, handle: int, success: bool = True) -> None:
        pass
