"""
Model for a version that has been placed under the install root.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from astudios.models.release import numeric_key
from astudios.utils.path import version_dir_name

log = logging.getLogger(__name__)

# macOS only treats a directory as an application if its name ends in '.app'.
BUNDLE_SUFFIX = ".app"

PRODUCT_INFO_LOCATIONS = (
    Path("Contents") / "Resources" / "product-info.json",
    Path("product-info.json"),
)


def candidate_paths(install_root: Path, identifier: str) -> list[Path]:
    """The directories a version may be installed under."""
    name = version_dir_name(identifier)
    return [install_root / name, install_root / f"{name}{BUNDLE_SUFFIX}"]


def is_macos_bundle(path: Path) -> bool:
    return (path / "Contents" / "Info.plist").is_file()


@dataclass(frozen=True)
class InstalledVersion:
    """A complete, version-keyed directory under the install root."""

    identifier: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> "InstalledVersion":
        name = path.name
        if name.endswith(BUNDLE_SUFFIX):
            name = name[: -len(BUNDLE_SUFFIX)]
        return cls(identifier=name, path=path)

    @property
    def version_key(self) -> tuple[int, ...]:
        return numeric_key(self.identifier)

    @property
    def is_macos_bundle(self) -> bool:
        return is_macos_bundle(self.path)

    def is_valid(self) -> bool:
        """A valid installation is an existing, non-empty directory."""
        return self.path.is_dir() and any(self.path.iterdir())

    def product_info(self) -> dict[str, Any]:
        """
        Reads the bundle's `product-info.json`, which carries the product name
        and full build number. Returns an empty dict if it is missing or invalid.
        """
        for relative in PRODUCT_INFO_LOCATIONS:
            info_path = self.path / relative
            if not info_path.is_file():
                continue
            try:
                with open(info_path, encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                log.debug(f"Could not read '{info_path}': {e}")
                return {}
            return data if isinstance(data, dict) else {}
        return {}

    @property
    def build(self) -> str | None:
        return self.product_info().get("buildNumber")

    @property
    def display_name(self) -> str:
        info = self.product_info()
        product = info.get("name", "Android Studio")
        build = info.get("buildNumber")
        if build:
            return f"{product} {self.identifier} ({build})"
        return f"{product} {self.identifier}"
