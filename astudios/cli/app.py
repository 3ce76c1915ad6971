"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from astudios import __version__
from astudios.api.client import FeedClient
from astudios.catalog.resolver import LATEST, LATEST_PRERELEASE, CatalogResolver
from astudios.core.housekeeping import (
    clean,
    clean_targets,
    reclaimable_bytes,
    uninstall,
)
from astudios.core.install_engine import InstallEngine, map_os_error
from astudios.core.version_switch import VersionSwitch
from astudios.download.coordinator import DownloadCoordinator, select_backend
from astudios.exceptions import PlatformNotAvailableError, VersionNotFoundError
from astudios.models.config import AppConfig
from astudios.models.installed import InstalledVersion
from astudios.models.release import Catalog, Channel
from astudios.storage.cache import CatalogCache
from astudios.storage.config_manager import ConfigManager
from astudios.utils.formatting import format_age, format_size
from astudios.utils.platform import platform_keys

from .formatters import (
    print_config,
    print_install_summary,
    print_installed_table,
    print_release_table,
)
from .progress_manager import ProgressManager

EXIT_CANCELLED = 130

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("astudios")

app = typer.Typer(
    name="astudios",
    help=(
        "Install, manage and switch between Android Studio versions. Use"
        " 'astudios <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "astudios"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a command's coroutine, turning Ctrl-C into exit code 130."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        raise typer.Exit(code=EXIT_CANCELLED) from None


def _load_config(**cli_options: Any) -> AppConfig:
    config_manager = ConfigManager(CONFIG_FILE)
    return config_manager.load_config(
        {key: value for key, value in cli_options.items() if value is not None}
    )


def _build_resolver(
    config: AppConfig, progress_manager: ProgressManager | None = None
) -> CatalogResolver:
    client = FeedClient(
        config.feed_url,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )
    cache = CatalogCache(
        config.cache_dir,
        ttl_seconds=config.cache_ttl_seconds,
        stats_callback=progress_manager.record_cache if progress_manager else None,
    )
    return CatalogResolver(client, cache)


def _version_specifier(
    version: str | None, latest: bool, latest_prerelease: bool
) -> str:
    """Combines the positional version and the --latest flags into one specifier."""
    given = [
        specifier
        for specifier in (
            version,
            LATEST if latest else None,
            LATEST_PRERELEASE if latest_prerelease else None,
        )
        if specifier
    ]
    if len(given) != 1:
        console.print(
            "[red]✗ Give exactly one of a version, --latest or"
            " --latest-prerelease.[/red]"
        )
        raise typer.Exit(code=1)
    return given[0]


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Show debug logging.",
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    init_config: bool = typer.Option(
        False,
        "--init-config",
        help="Write a configuration file with the default settings and exit.",
    ),
):
    """Android Studio version manager"""
    if verbose >= 1:
        logging.getLogger("astudios").setLevel("DEBUG")

    if init_config:
        if CONFIG_FILE.exists() and not typer.confirm(
            f"'{CONFIG_FILE}' already exists. Overwrite it with the defaults?"
        ):
            raise typer.Abort()
        ConfigManager(CONFIG_FILE).save_new_config()
        console.print(f"[green]✓ Configuration saved to '{CONFIG_FILE}'.[/green]")
        raise typer.Exit()

    if show_config:
        config = _load_config()
        print_config(
            CONFIG_FILE, config.model_dump(exclude={"config_path"}, mode="json")
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="list")
def list_command(
    release: bool = typer.Option(False, "--release", help="Show only releases."),
    beta: bool = typer.Option(
        False, "--beta", help="Show only betas and release candidates."
    ),
    canary: bool = typer.Option(False, "--canary", help="Show only canaries."),
    limit: int | None = typer.Option(
        None, "--limit", "-n", help="Show at most this many versions."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Fetch the release list even if the cache is fresh."
    ),
):
    """List available Android Studio versions."""
    channels: set[Channel] = set()
    if release:
        channels |= {Channel.STABLE, Channel.PATCH}
    if beta:
        channels |= {Channel.BETA, Channel.RELEASE_CANDIDATE}
    if canary:
        channels.add(Channel.CANARY)

    async def _list_async():
        config = _load_config()
        resolver = _build_resolver(config)
        catalog = await resolver.get_catalog(force_refresh=refresh)
        releases = resolver.filter(catalog, channels, limit)

        switch = VersionSwitch(config.install_root, config.alias_path)
        active = switch.active()
        print_release_table(
            releases,
            installed_ids={v.identifier for v in switch.installed()},
            active_id=active.identifier if active else None,
            catalog_age=format_age(catalog.age()),
        )

    _run(_list_async())


@app.command(name="download")
def download_command(
    version: str | None = typer.Argument(
        None, help="Version, build or name, e.g. '2024.2.1.12' or 'ladybug patch 2'."
    ),
    latest: bool = typer.Option(False, "--latest", help="The newest release."),
    latest_prerelease: bool = typer.Option(
        False, "--latest-prerelease", help="The newest beta, RC or canary."
    ),
    directory: Path | None = typer.Option(
        None, "--directory", "-d", help="Where to save the archive."
    ),
    backend: str | None = typer.Option(
        None, "--backend", help="Downloader to use: native or aria2."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Refresh the release list first."
    ),
):
    """Download an Android Studio archive without installing it."""
    specifier = _version_specifier(version, latest, latest_prerelease)

    async def _download_async():
        config = _load_config(backend=backend)
        async with ProgressManager(console=console) as progress_manager:
            resolver = _build_resolver(config, progress_manager)
            catalog = await resolver.get_catalog(force_refresh=refresh)
            resolved = await resolver.resolve(specifier, catalog)

            keys = platform_keys()
            download = resolved.download_for(keys)
            if download is None:
                raise PlatformNotAvailableError(
                    f"{resolved.display_name} has no download for this platform "
                    f"({', '.join(keys)})."
                )

            coordinator = DownloadCoordinator(
                select_backend(config.backend, config=config),
                directory.expanduser() if directory else config.downloads_dir,
                progress_manager,
            )
            try:
                path = await coordinator.download(download)
            except OSError as e:
                raise map_os_error(e, coordinator.downloads_dir) from e
        console.print(f"[green]✓ Saved {resolved.display_name} to '{path}'.[/green]")

    _run(_download_async())


@app.command()
def install(
    version: str | None = typer.Argument(
        None, help="Version, build or name, e.g. '2024.2.1.12' or 'ladybug patch 2'."
    ),
    latest: bool = typer.Option(False, "--latest", help="Install the newest release."),
    latest_prerelease: bool = typer.Option(
        False, "--latest-prerelease", help="Install the newest beta, RC or canary."
    ),
    directory: Path | None = typer.Option(
        None, "--directory", "-d", help="Install root to use instead of the default."
    ),
    backend: str | None = typer.Option(
        None, "--backend", help="Downloader to use: native or aria2."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Reinstall if the version is already installed."
    ),
    select: bool = typer.Option(
        False, "--select", help="Make the version active after installing it."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Refresh the release list first."
    ),
):
    """Install an Android Studio version."""
    specifier = _version_specifier(version, latest, latest_prerelease)

    async def _install_async():
        config = _load_config(install_root=directory, backend=backend)
        async with ProgressManager(console=console) as progress_manager:
            resolver = _build_resolver(config, progress_manager)
            catalog = await resolver.get_catalog(force_refresh=refresh)
            resolved = await resolver.resolve(specifier, catalog)
            console.print(
                f"[bold cyan]Installing {resolved.display_name}...[/bold cyan]"
            )

            coordinator = DownloadCoordinator(
                select_backend(config.backend, config=config),
                config.downloads_dir,
                progress_manager,
            )
            switch = VersionSwitch(config.install_root, config.alias_path)
            engine = InstallEngine(
                config.install_root, coordinator, progress_manager, switch=switch
            )

            start_time = time.monotonic()
            installed = await engine.install(resolved, force=force)
            duration = time.monotonic() - start_time
            progress_stats = progress_manager.get_statistics()

        if select:
            switch.use(installed.identifier)
        print_install_summary(installed, duration, progress_stats, activated=select)

    _run(_install_async())


async def _catalog_for_target(
    target: str, switch: VersionSwitch, resolver: CatalogResolver
) -> Catalog | None:
    """
    Loads the catalog only when the target is not already an installed directory
    name or a path, so plain switches work offline.
    """
    for version in switch.installed():
        if target in (version.identifier, version.path.name):
            return None
    if Path(target).expanduser().exists():
        return None
    log.debug(f"Resolving '{target}' against the release catalog.")
    return resolver.cache.read() or await resolver.get_catalog()


def _prompt_for_version(versions: list[InstalledVersion]) -> InstalledVersion:
    console.print("[bold]Installed versions:[/bold]")
    for index, version in enumerate(versions, start=1):
        console.print(f"  [cyan]{index}[/cyan]. {version.display_name}")
    choice = typer.prompt("Select a version", type=int)
    if not 1 <= choice <= len(versions):
        raise typer.BadParameter(f"Choose a number between 1 and {len(versions)}.")
    return versions[choice - 1]


@app.command()
def use(
    version: str | None = typer.Argument(
        None, help="Installed version, name or path. Prompts if omitted."
    ),
):
    """Switch the active Android Studio version."""

    async def _use_async():
        config = _load_config()
        switch = VersionSwitch(config.install_root, config.alias_path)
        catalog = None
        if version is not None:
            catalog = await _catalog_for_target(
                version, switch, _build_resolver(config)
            )
        active = switch.use(version, catalog=catalog, chooser=_prompt_for_version)
        console.print(f"[dim]{config.alias_path} → {active.path}[/dim]")

    _run(_use_async())


@app.command(name="uninstall")
def uninstall_command(
    version: str = typer.Argument(..., help="Installed version to remove."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be removed."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Uninstall an Android Studio version."""

    async def _uninstall_async():
        config = _load_config()
        switch = VersionSwitch(config.install_root, config.alias_path)
        target = switch.find_installed(
            version, await _catalog_for_target(version, switch, _build_resolver(config))
        )
        if not dry_run and not force and not typer.confirm(
            f"Remove {target.display_name} from '{target.path}'?"
        ):
            console.print("[yellow]Operation cancelled.[/yellow]")
            raise typer.Abort()
        uninstall(target.path.name, switch, dry_run=dry_run)

    _run(_uninstall_async())


@app.command()
def installed():
    """Show installed versions."""
    config = _load_config()
    switch = VersionSwitch(config.install_root, config.alias_path)
    print_installed_table(switch.installed(), switch.active())


@app.command()
def which():
    """Show the active version."""
    config = _load_config()
    switch = VersionSwitch(config.install_root, config.alias_path)
    active = switch.active()
    if active is None:
        console.print(
            "[yellow]No version is active. Use `astudios use <version>`.[/yellow]"
        )
        return
    console.print(f"[bold green]{active.display_name}[/bold green]")
    console.print(f"[dim]{config.alias_path} → {active.path}[/dim]")


@app.command(name="clean")
def clean_command(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be removed."
    ),
):
    """Remove downloaded archives, the release cache and leftover work files."""
    config = _load_config()
    cache = CatalogCache(config.cache_dir)
    targets = clean_targets(config.downloads_dir, cache.path, config.install_root)
    size = reclaimable_bytes(targets)

    removed = clean(targets, dry_run=dry_run)
    if not removed:
        console.print("[green]✓ Nothing to clean.[/green]")
    elif dry_run:
        console.print(
            f"[cyan]Would remove {len(removed)} item(s), {format_size(size)}.[/cyan]"
        )
    else:
        console.print(
            f"[green]✓ Removed {len(removed)} item(s), freed {format_size(size)}."
            "[/green]"
        )


@app.command()
def update():
    """Update the local release cache."""

    async def _update_async():
        config = _load_config()
        resolver = _build_resolver(config)
        console.print("[cyan]Fetching the release list...[/cyan]")
        catalog = await resolver.get_catalog(force_refresh=True)
        console.print(
            f"[green]✓ Release cache updated ({len(catalog.releases)} versions).[/green]"
        )
        newest_of = (("release", LATEST), ("prerelease", LATEST_PRERELEASE))
        for label, specifier in newest_of:
            try:
                newest = await resolver.resolve(specifier, catalog)
            except VersionNotFoundError:
                continue
            console.print(f"  Latest {label}: [bold]{newest.display_name}[/bold]")

    _run(_update_async())


@app.command()
def version():
    """Show the version and exit."""
    console.print(f"[bold]astudios[/bold] version [cyan]{__version__}[/cyan]")
