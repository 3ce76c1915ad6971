"""
Pydantic models for the release catalog: releases, their downloads, and the
catalog as fetched from the vendor feed.
"""

import datetime
import re
import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from astudios.utils.formatting import parse_size
from astudios.utils.path import filename_from_url, strip_archive_suffix

DEFAULT_TTL_SECONDS = 24 * 60 * 60

_NUMBER_REGEX = re.compile(r"\d+")
_CHECKSUM_ALGORITHMS = {64: "sha256", 40: "sha1", 32: "md5", 128: "sha512"}


class Channel(str, Enum):
    """A release's maturity tier."""

    STABLE = "stable"
    BETA = "beta"
    CANARY = "canary"
    RELEASE_CANDIDATE = "release-candidate"
    PATCH = "patch"

    @classmethod
    def from_feed(cls, value: str) -> "Channel":
        """Maps the feed's channel labels ('Release', 'RC', ...) to a channel."""
        aliases = {
            "release": cls.STABLE,
            "stable": cls.STABLE,
            "beta": cls.BETA,
            "canary": cls.CANARY,
            "rc": cls.RELEASE_CANDIDATE,
            "release-candidate": cls.RELEASE_CANDIDATE,
            "patch": cls.PATCH,
        }
        # Unknown labels are treated as stable releases.
        return aliases.get(value.strip().lower(), cls.STABLE)

    @property
    def label(self) -> str:
        return {
            Channel.STABLE: "Release",
            Channel.BETA: "Beta",
            Channel.CANARY: "Canary",
            Channel.RELEASE_CANDIDATE: "RC",
            Channel.PATCH: "Patch",
        }[self]


PRERELEASE_CHANNELS = frozenset(
    {Channel.BETA, Channel.CANARY, Channel.RELEASE_CANDIDATE}
)


class ArchiveFormat(str, Enum):
    """Archive formats the install engine knows how to unpack."""

    ZIP = "zip"
    TAR_GZ = "tar.gz"
    DMG = "dmg"

    @classmethod
    def from_filename(cls, filename: str) -> "ArchiveFormat | None":
        lowered = filename.lower()
        if lowered.endswith((".tar.gz", ".tgz")):
            return cls.TAR_GZ
        if lowered.endswith(".zip"):
            return cls.ZIP
        if lowered.endswith(".dmg"):
            return cls.DMG
        return None


def numeric_key(value: str) -> tuple[int, ...]:
    """Sort key made of every number in a version or build string."""
    return tuple(int(part) for part in _NUMBER_REGEX.findall(value))


class Download(BaseModel):
    """A single downloadable archive of a release."""

    url: str
    size: int = 0
    checksum: str | None = None

    @field_validator("size", mode="before")
    @classmethod
    def parse_feed_size(cls, v: Any) -> int:
        return parse_size(v)

    @field_validator("checksum", mode="before")
    @classmethod
    def normalize_checksum(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip().lower()
        return v or None

    @property
    def filename(self) -> str:
        return filename_from_url(self.url)

    @property
    def platform(self) -> str:
        """The platform key encoded in the file name, e.g. 'mac_arm' or 'linux'."""
        stem = strip_archive_suffix(self.filename)
        return stem.rsplit("-", 1)[-1].lower()

    @property
    def archive_format(self) -> ArchiveFormat | None:
        return ArchiveFormat.from_filename(self.filename)

    @property
    def checksum_algorithm(self) -> str | None:
        if not self.checksum:
            return None
        return _CHECKSUM_ALGORITHMS.get(len(self.checksum), "sha256")


class Release(BaseModel):
    """One entry of the vendor feed."""

    name: str = ""
    build: str
    version: str
    channel: Channel = Channel.STABLE
    date: str = ""
    platform_build: str = ""
    platform_version: str = ""
    downloads: dict[str, Download] = Field(default_factory=dict)

    @field_validator("version", "build")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("channel", mode="before")
    @classmethod
    def parse_channel(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Channel.from_feed(v)
        return v

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> str:
        """Normalizes 'YYYY-M-D' feed dates to ISO format when possible."""
        if v is None:
            return ""
        parts = numeric_key(str(v))
        if len(parts) == 3:
            try:
                return datetime.date(*parts).isoformat()
            except ValueError:
                pass
        return str(v).strip()

    @field_validator("downloads", mode="before")
    @classmethod
    def key_downloads_by_platform(cls, v: Any) -> Any:
        """
        Accepts the feed's list of downloads and keys it by platform. When two
        downloads share a platform, the one with a supported archive format wins.
        """
        if not isinstance(v, list):
            return v
        keyed: dict[str, Download] = {}
        for item in v:
            download = item if isinstance(item, Download) else Download.model_validate(item)
            current = keyed.get(download.platform)
            if current is None or (
                current.archive_format is None and download.archive_format is not None
            ):
                keyed[download.platform] = download
        return keyed

    @property
    def identifier(self) -> str:
        return self.version

    @property
    def codename(self) -> str:
        """The product codename, e.g. 'Ladybug' or 'Koala Feature Drop'."""
        head = self.name.split("|", 1)[0].strip()
        for prefix in ("Android Studio", "android studio"):
            if head.startswith(prefix):
                head = head[len(prefix) :].strip()
        return head

    @property
    def display_version(self) -> str:
        """The marketing version after the '|' in the name, e.g. '2024.2.1 Beta 1'."""
        if "|" in self.name:
            return self.name.split("|", 1)[1].strip()
        return self.version

    @property
    def version_key(self) -> tuple[tuple[int, ...], tuple[int, ...]]:
        return numeric_key(self.version), numeric_key(self.build)

    @property
    def is_prerelease(self) -> bool:
        return self.channel in PRERELEASE_CHANNELS

    @property
    def display_name(self) -> str:
        if self.channel is Channel.STABLE:
            return self.name or self.version
        return f"{self.name or self.version} ({self.channel.label})"

    def download_for(self, keys: list[str]) -> Download | None:
        """Returns the first download matching the preferred platform keys."""
        for key in keys:
            if key in self.downloads:
                return self.downloads[key]
        return None


class Catalog(BaseModel):
    """The parsed set of known releases, newest first."""

    releases: list[Release] = Field(default_factory=list)
    fetched_at: float = Field(default_factory=time.time)
    ttl_seconds: int = DEFAULT_TTL_SECONDS

    @model_validator(mode="after")
    def dedupe_and_sort(self) -> "Catalog":
        """Keeps the first release for each identifier, ordered by descending version."""
        unique: dict[str, Release] = {}
        for release in self.releases:
            unique.setdefault(release.identifier, release)
        self.releases = sorted(
            unique.values(), key=lambda r: r.version_key, reverse=True
        )
        return self

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.fetched_at

    def is_fresh(self, now: float | None = None) -> bool:
        return 0 <= self.age(now) < self.ttl_seconds

    @property
    def identifiers(self) -> list[str]:
        return [release.identifier for release in self.releases]

    def restricted_to(self, identifiers: set[str]) -> "Catalog":
        """Returns a catalog containing only the given identifiers."""
        return Catalog(
            releases=[r for r in self.releases if r.identifier in identifiers],
            fetched_at=self.fetched_at,
            ttl_seconds=self.ttl_seconds,
        )
