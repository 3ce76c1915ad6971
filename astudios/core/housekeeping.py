"""
Deletion helpers behind the `uninstall` and `clean` commands.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from astudios.core.install_engine import map_os_error
from astudios.core.version_switch import VersionSwitch
from astudios.models.installed import InstalledVersion
from astudios.models.release import Catalog
from astudios.utils.path import dir_size, is_hidden, remove_path

log = logging.getLogger(__name__)


def uninstall(
    version: str,
    switch: VersionSwitch,
    dry_run: bool = False,
    catalog: Catalog | None = None,
) -> InstalledVersion:
    """
    Removes an installed version. If the alias points at it, the alias is
    removed first so it never dangles.

    Raises:
        TargetNotInstalledError: `version` is not installed.
    """
    installed = switch.find_installed(version, catalog)
    was_active = switch.is_active(installed)

    if dry_run:
        log.info(f"Would remove '{installed.path}'.")
        if was_active:
            log.info(f"Would remove the alias '{switch.alias_path}'.")
        return installed

    if was_active:
        switch.remove_alias()
        log.info(f"Removed the alias '{switch.alias_path}'.")
    try:
        remove_path(installed.path)
    except OSError as e:
        raise map_os_error(e, installed.path) from e
    log.info(f"[green]Uninstalled {installed.identifier}.[/green]")
    return installed


def clean_targets(
    downloads_dir: Path, cache_file: Path, install_root: Path | None = None
) -> list[Path]:
    """
    Everything `clean` removes: downloaded archives, the catalog cache, and
    work areas left under the install root by interrupted installs.
    """
    targets: list[Path] = []
    if downloads_dir.is_dir():
        targets.extend(sorted(downloads_dir.iterdir()))
    if cache_file.exists():
        targets.append(cache_file)
    if install_root is not None and install_root.is_dir():
        targets.extend(
            sorted(entry for entry in install_root.iterdir() if is_hidden(entry))
        )
    return targets


def reclaimable_bytes(paths: Iterable[Path]) -> int:
    total = 0
    for path in paths:
        if path.is_dir() and not path.is_symlink():
            total += dir_size(path)
        elif path.is_file():
            total += path.stat().st_size
    return total


def clean(paths: Iterable[Path], dry_run: bool = False) -> list[Path]:
    """Removes the given paths and returns those that were (or would be) removed."""
    removed: list[Path] = []
    for path in paths:
        if not (path.exists() or path.is_symlink()):
            continue
        if dry_run:
            log.info(f"Would remove '{path}'.")
        else:
            log.debug(f"Removing '{path}'.")
            remove_path(path)
        removed.append(path)
    return removed
