"""
Switching the active version.

The active version is whatever the alias symlink points at. It is read from
disk on every query and only ever changed by renaming a freshly created
symlink over the old one.
"""

import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path

from astudios.catalog.resolver import match_release
from astudios.exceptions import (
    AliasUpdateError,
    AmbiguousVersionError,
    TargetNotInstalledError,
    VersionNotFoundError,
)
from astudios.models.installed import InstalledVersion
from astudios.models.release import Catalog
from astudios.utils.path import create_dir, is_hidden, is_within

log = logging.getLogger(__name__)

Chooser = Callable[[list[InstalledVersion]], InstalledVersion]


class VersionSwitch:
    """Lists installed versions and repoints the active alias."""

    def __init__(self, install_root: Path, alias_path: Path):
        self.install_root = install_root
        self.alias_path = alias_path

    def installed(self) -> list[InstalledVersion]:
        """All installed versions, newest first."""
        if not self.install_root.is_dir():
            return []
        versions = [
            InstalledVersion.from_path(entry)
            for entry in self.install_root.iterdir()
            if entry.is_dir() and not entry.is_symlink() and not is_hidden(entry)
        ]
        return sorted(
            versions, key=lambda v: (v.version_key, v.identifier), reverse=True
        )

    def _alias_target(self) -> Path | None:
        if not self.alias_path.is_symlink():
            return None
        target = Path(os.readlink(self.alias_path))
        if not target.is_absolute():
            target = self.alias_path.parent / target
        return target

    def active(self) -> InstalledVersion | None:
        """The version the alias currently points at, if it points at one."""
        target = self._alias_target()
        if target is None or not target.is_dir():
            return None
        resolved = target.resolve()
        for version in self.installed():
            if version.path.resolve() == resolved:
                return version
        return None

    def is_active(self, version: InstalledVersion) -> bool:
        active = self.active()
        return active is not None and active.path.resolve() == version.path.resolve()

    def find_installed(
        self, target: str, catalog: Catalog | None = None
    ) -> InstalledVersion:
        """
        Resolves a version specifier or path to an installed version.

        Tried in order: an installed directory name, a filesystem path inside
        the install root, then the specifier resolved against the catalog
        restricted to installed versions. Without a catalog a unique prefix
        of an installed version is accepted.

        Raises:
            TargetNotInstalledError: Nothing installed matches.
            AmbiguousVersionError: More than one installed version matches.
        """
        installed = self.installed()
        if not installed:
            raise TargetNotInstalledError(
                "No versions are installed. Install one with 'astudios install'."
            )

        for version in installed:
            if target in (version.identifier, version.path.name):
                return version

        candidate = Path(target).expanduser()
        if candidate.exists():
            for version in installed:
                if is_within(candidate, version.path):
                    return version
            raise TargetNotInstalledError(
                f"'{candidate}' is not an installation under '{self.install_root}'."
            )

        by_identifier = {version.identifier: version for version in installed}
        if catalog is not None:
            restricted = catalog.restricted_to(set(by_identifier))
            try:
                release = match_release(target, restricted)
            except VersionNotFoundError as e:
                raise TargetNotInstalledError(
                    f"No installed version matches '{target}'."
                ) from e
            return by_identifier[release.identifier]

        matches = [v for v in installed if v.identifier.startswith(target)]
        if len(matches) > 1:
            raise AmbiguousVersionError(target, [v.identifier for v in matches])
        if not matches:
            raise TargetNotInstalledError(f"No installed version matches '{target}'.")
        return matches[0]

    def use(
        self,
        target: str | None = None,
        catalog: Catalog | None = None,
        chooser: Chooser | None = None,
    ) -> InstalledVersion:
        """
        Makes an installed version the active one.

        Args:
            target: Version specifier or path. When omitted, `chooser` picks one
                of the installed versions.
            catalog: Enables codenames, builds and 'latest' as specifiers.
            chooser: Interactive selection used when no target is given.
        """
        if target is None:
            installed = self.installed()
            if not installed:
                raise TargetNotInstalledError(
                    "No versions are installed. Install one with 'astudios install'."
                )
            if chooser is None:
                raise TargetNotInstalledError("No version was given to switch to.")
            version = chooser(installed)
        else:
            version = self.find_installed(target, catalog)

        if not version.is_valid():
            raise TargetNotInstalledError(
                f"The installation at '{version.path}' is empty or incomplete."
            )

        if self.point_alias(version):
            log.info(f"[green]Switched to {version.display_name}.[/green]")
        else:
            log.info(f"{version.display_name} is already active.")
        return version

    def point_alias(self, version: InstalledVersion) -> bool:
        """
        Atomically points the alias at `version`.

        Returns:
            False if the alias already pointed there and nothing was changed.

        Raises:
            AliasUpdateError: The alias location holds a real file or directory,
            or the symlink could not be written.
        """
        alias = self.alias_path
        current = self._alias_target()
        if current is not None:
            if current.resolve() == version.path.resolve():
                return False
        elif alias.exists():
            raise AliasUpdateError(
                f"'{alias}' exists and is not a symlink; refusing to replace it. "
                "Move it away or configure a different alias_path."
            )

        temp_link = alias.parent / f".{alias.name}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            create_dir(alias.parent)
            temp_link.symlink_to(version.path.absolute(), target_is_directory=True)
            os.replace(temp_link, alias)
        except OSError as e:
            if temp_link.is_symlink():
                temp_link.unlink()
            raise AliasUpdateError(f"Could not update '{alias}': {e}") from e

        log.debug(f"'{alias}' -> '{version.path}'")
        return True

    def remove_alias(self) -> bool:
        """Removes the alias symlink; a real file at its location is left alone."""
        if not self.alias_path.is_symlink():
            return False
        try:
            self.alias_path.unlink()
        except OSError as e:
            raise AliasUpdateError(f"Could not remove '{self.alias_path}': {e}") from e
        return True
