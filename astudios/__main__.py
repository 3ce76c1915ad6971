"""
Console entry point for astudios.

Runs the Typer app and turns whatever escapes a command into a message and an
exit code: 1 for errors, 130 for cancellation.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from astudios.cli.app import EXIT_CANCELLED, app
from astudios.cli.formatters import format_error_with_suggestions
from astudios.exceptions import AstudiosError

EXIT_FAILURE = 1

log = logging.getLogger("astudios")


def _fail(console: Console, error: Exception, context: dict | None = None) -> None:
    console.print(f"\n{format_error_with_suggestions(error, context)}")
    log.debug("Full traceback:", exc_info=True)
    sys.exit(EXIT_FAILURE)


def main() -> None:
    if os.name == "nt":
        # The default Windows console encoding cannot print the status symbols.
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(EXIT_CANCELLED)
    except AstudiosError as e:
        _fail(console, e)
    except Exception as e:
        _fail(console, e, {"type": "Unexpected"})


if __name__ == "__main__":
    main()
