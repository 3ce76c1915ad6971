"""
Pytest configuration and fixtures
"""

import io
import stat
import tarfile
import zipfile
from pathlib import Path

import pytest

from astudios.models.release import Catalog, Release

FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<content version="1">
  <item>
    <name>Android Studio Meerkat | 2024.3.2 Canary 3</name>
    <build>AI-243.21565.23.2432.12800000</build>
    <version>2024.3.2</version>
    <channel>Canary</channel>
    <platformBuild>243.21565.23</platformBuild>
    <platformVersion>2024.3</platformVersion>
    <date>2025-1-20</date>
    <download>
      <link>https://example.test/android-studio-2024.3.2-linux.tar.gz</link>
      <size>1.2 GB</size>
      <checksum>aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa</checksum>
    </download>
    <download>
      <link>https://example.test/android-studio-2024.3.2-mac_arm.dmg</link>
      <size>1288490188</size>
    </download>
  </item>
  <item>
    <name>Android Studio Ladybug | 2024.2.1 Beta 1</name>
    <build>AI-242.20224.300.2421.12000000</build>
    <version>2024.2.1</version>
    <channel>Beta</channel>
    <date>2024-8-5</date>
    <download>
      <link>https://example.test/android-studio-2024.2.1-linux.tar.gz</link>
      <size>1100000000</size>
    </download>
  </item>
  <item>
    <name>Android Studio Koala | 2024.1.1</name>
    <build>AI-241.15989.150.2411.11948838</build>
    <version>2024.1.1</version>
    <channel>Release</channel>
    <date>2024-6-18</date>
    <download>
      <link>https://example.test/android-studio-2024.1.1-linux.tar.gz</link>
      <size>1050000000</size>
    </download>
    <download>
      <link>https://example.test/android-studio-2024.1.1-windows.zip</link>
      <size>1060000000</size>
    </download>
  </item>
</content>
"""


def make_release(
    version: str,
    channel: str = "Release",
    name: str | None = None,
    build: str | None = None,
    downloads: list[dict] | None = None,
) -> Release:
    return Release(
        name=name or f"Android Studio Koala | {version}",
        build=build or f"AI-241.{version.replace('.', '')}.1",
        version=version,
        channel=channel,
        downloads=downloads or [],
    )


@pytest.fixture
def feed_xml() -> str:
    return FEED_XML


@pytest.fixture
def scenario_catalog() -> Catalog:
    """2024.1.1 stable, 2024.2.1 Beta 1 and 2024.3.2 Canary 3."""
    return Catalog(
        releases=[
            make_release("2024.1.1", "Release", "Android Studio Koala | 2024.1.1"),
            make_release(
                "2024.2.1", "Beta", "Android Studio Ladybug | 2024.2.1 Beta 1"
            ),
            make_release(
                "2024.3.2", "Canary", "Android Studio Meerkat | 2024.3.2 Canary 3"
            ),
        ]
    )


def build_zip(
    path: Path,
    files: dict[str, bytes],
    modes: dict[str, int] | None = None,
    symlinks: dict[str, str] | None = None,
) -> Path:
    modes = modes or {}
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFREG | modes.get(name, 0o644)) << 16
            zf.writestr(info, data)
        for name, target in (symlinks or {}).items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, target)
    return path


def build_tar_gz(
    path: Path, files: dict[str, bytes], modes: dict[str, int] | None = None
) -> Path:
    modes = modes or {}
    with tarfile.open(path, "w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def studio_tarball(tmp_path) -> Path:
    """A Linux-style archive with a single top-level directory."""
    return build_tar_gz(
        tmp_path / "android-studio-2024.1.1-linux.tar.gz",
        {
            "android-studio/bin/studio.sh": b"#!/bin/sh\necho studio\n",
            "android-studio/product-info.json": (
                b'{"name": "Android Studio", "buildNumber": "AI-241.15989.150"}'
            ),
            "android-studio/lib/app.jar": b"jar",
        },
        modes={"android-studio/bin/studio.sh": 0o755},
    )


def make_installed(install_root: Path, identifier: str) -> Path:
    """Creates a minimal installed version directory."""
    version_dir = install_root / identifier
    (version_dir / "bin").mkdir(parents=True)
    (version_dir / "bin" / "studio.sh").write_text("#!/bin/sh\n")
    return version_dir
