"""
Utilities for handling file paths, version-keyed directory names and URLs.
"""

import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

from pathvalidate import sanitize_filename

ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".zip", ".dmg", ".exe", ".deb", ".tar")


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def version_dir_name(identifier: str) -> str:
    """Turns a version identifier into a safe, non-hidden directory name."""
    name = sanitize_filename(identifier.strip(), platform="auto")
    return name.lstrip(".") or "unknown"


def filename_from_url(url: str, default: str = "android-studio.zip") -> str:
    """Extracts a sanitized file name from the last segment of a URL."""
    name = unquote(Path(urlparse(url).path).name)
    return sanitize_filename(name, platform="auto") or default


def strip_archive_suffix(filename: str) -> str:
    """Removes a known archive suffix ('.tar.gz', '.zip', ...) from a file name."""
    lowered = filename.lower()
    for suffix in ARCHIVE_SUFFIXES:
        if lowered.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


def is_hidden(path: Path) -> bool:
    """Hidden entries under the install root are staging and work areas."""
    return path.name.startswith(".")


def is_within(path: Path, root: Path) -> bool:
    """Checks whether `path` resolves to a location inside `root`."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def remove_path(path: Path) -> None:
    """Removes a file, symlink or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.is_dir():
        shutil.rmtree(path)


def dir_size(path: Path) -> int:
    """Returns the total size in bytes of all regular files below `path`."""
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            file_path = Path(root) / name
            if not file_path.is_symlink():
                total += file_path.stat().st_size
    return total
