"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from astudios.models.installed import InstalledVersion
from astudios.models.release import Channel, Release
from astudios.utils.formatting import format_duration, format_size

_CHANNEL_STYLES = {
    Channel.STABLE: "green",
    Channel.PATCH: "green",
    Channel.RELEASE_CANDIDATE: "cyan",
    Channel.BETA: "yellow",
    Channel.CANARY: "magenta",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NetworkError": [
            "• Check your internet connection.",
            "• The download server might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "DownloadError": [
            "• The release may have been withdrawn; run `astudios list --refresh`.",
            "• Try the other downloader with `--backend native` or `--backend aria2`.",
        ],
        "FeedParseError": [
            "• The release feed may be temporarily broken.",
            "• Try again later, or check `feed_url` in the configuration file.",
        ],
        "VersionNotFoundError": [
            "• Run `astudios list` to see the available versions.",
            "• Run `astudios list --refresh` if the version was released recently.",
        ],
        "AmbiguousVersionError": [
            "• Use one of the exact versions or builds listed above.",
        ],
        "PlatformNotAvailableError": [
            "• This release was not published for your platform.",
            "• Pick another version with `astudios list`.",
        ],
        "VerificationError": [
            "• The download was corrupted and has been deleted.",
            "• Run the command again to download a fresh copy.",
        ],
        "ExtractionError": [
            "• The archive may be corrupt; run `astudios clean` and try again.",
        ],
        "UnsupportedFormatError": [
            "• Only .zip, .tar.gz and .dmg archives can be installed.",
        ],
        "MountError": [
            "• Make sure no other copy of the disk image is mounted.",
            "• Disk images can only be installed on macOS.",
        ],
        "AlreadyInstalledError": [
            "• Use `--force` to reinstall.",
            "• Use `astudios use <version>` to switch to it.",
        ],
        "InsufficientSpaceError": [
            "• Free up disk space, e.g. with `astudios clean`.",
            "• Uninstall versions you no longer need with `astudios uninstall`.",
        ],
        "InstallPermissionError": [
            "• Choose a writable install directory with `--directory`.",
            "• Check the permissions of `install_root` in the configuration file.",
        ],
        "TargetNotInstalledError": [
            "• Run `astudios installed` to see what is installed.",
            "• Install it first with `astudios install <version>`.",
        ],
        "AliasUpdateError": [
            "• Move the existing application out of the way, or",
            "• configure a different `alias_path` in the configuration file.",
        ],
        "DownloaderNotFoundError": [
            "• Install aria2 (e.g. `brew install aria2`).",
            "• Or use the built-in downloader with `--backend native`.",
        ],
        "ConfigurationError": [
            "• Check the configuration file for typos.",
            "• Delete it to fall back to the default settings.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_release_table(
    releases: list[Release],
    installed_ids: set[str] | None = None,
    active_id: str | None = None,
    catalog_age: str | None = None,
):
    """Displays the release catalog, marking installed and active versions."""
    console = Console()
    installed_ids = installed_ids or set()

    if not releases:
        console.print("[dim]No releases match.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("Version", style="bold")
    table.add_column("Codename")
    table.add_column("Release")
    table.add_column("Channel")
    table.add_column("Build", style="dim")
    table.add_column("Date", style="dim")
    table.add_column("", justify="center")

    for release in releases:
        style = _CHANNEL_STYLES.get(release.channel, "white")
        if release.identifier == active_id:
            marker = "[bold green]● active[/bold green]"
        elif release.identifier in installed_ids:
            marker = "[green]✓ installed[/green]"
        else:
            marker = ""
        table.add_row(
            release.version,
            release.codename or "-",
            release.display_version,
            f"[{style}]{release.channel.label}[/{style}]",
            release.build,
            release.date,
            marker,
        )

    console.print(table)
    if catalog_age:
        console.print(f"[dim]Catalog fetched {catalog_age}.[/dim]")


def print_installed_table(
    versions: list[InstalledVersion], active: InstalledVersion | None = None
):
    """Displays the installed versions."""
    console = Console()
    if not versions:
        console.print(
            "[dim]No versions installed. Use `astudios install <version>`.[/dim]"
        )
        return

    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("", justify="center", width=2)
    table.add_column("Version", style="bold")
    table.add_column("Build", style="dim")
    table.add_column("Path", style="dim")

    active_path = active.path.resolve() if active else None
    for version in versions:
        is_active = active_path is not None and version.path.resolve() == active_path
        table.add_row(
            "[bold green]●[/bold green]" if is_active else "",
            version.identifier,
            version.build or "",
            str(version.path),
        )
    console.print(table)


def print_install_summary(
    version: InstalledVersion,
    duration_s: float,
    progress_stats: dict | None = None,
    activated: bool = False,
):
    """Displays a summary after a successful install."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=14)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Version:", f"[bold green]{version.identifier}[/bold green]")
    stats_table.add_row("Location:", f"[dim]{version.path}[/dim]")
    if progress_stats and progress_stats.get("downloaded_size"):
        downloaded = progress_stats["downloaded_size"]
        stats_table.add_row("Downloaded:", f"[cyan]{format_size(downloaded)}[/cyan]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    stats_table.add_row(
        "Active:", "[green]✓ Yes[/green]" if activated else "[dim]No[/dim]"
    )

    console.print()
    console.print(
        Panel(
            stats_table,
            title="[bold]Install Complete![/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    if not activated:
        console.print(
            f"[dim]Run `astudios use {version.identifier}` to make it active.[/dim]"
        )
