"""
Defines custom exceptions for the application to allow for more specific error handling.

Every failure surfaced to the command line is an `AstudiosError`. The direct
subclasses are the error categories; only `NetworkError` is ever retried, and
only inside the native download backend.
"""

from pathlib import Path


class AstudiosError(Exception):
    """Base exception for all application-specific errors."""


class NetworkError(AstudiosError):
    """Raised when the release feed or an archive cannot be transferred."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class DownloadError(NetworkError):
    """
    Raised when a download fails in a way that must not be retried, e.g. an HTTP
    404 or a non-zero exit from the external downloader.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status: int | None = None,
        diagnostic: str = "",
    ):
        super().__init__(message, url=url)
        self.status = status
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        message = super().__str__()
        if self.diagnostic:
            return f"{message}\n{self.diagnostic}"
        return message


class FeedParseError(AstudiosError):
    """Raised when the vendor release feed cannot be parsed."""


class ResolutionError(AstudiosError):
    """Base class for errors turning a version specifier into a release."""


class VersionNotFoundError(ResolutionError):
    """Raised when no release matches a version specifier."""

    def __init__(self, specifier: str, hint: str = ""):
        message = f"Version '{specifier}' not found."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.specifier = specifier


class AmbiguousVersionError(ResolutionError):
    """Raised when a version specifier matches more than one release."""

    def __init__(self, specifier: str, candidates: list[str]):
        listing = "\n".join(f"  - {candidate}" for candidate in candidates)
        super().__init__(
            f"Version '{specifier}' is ambiguous; {len(candidates)} candidates match:\n"
            f"{listing}"
        )
        self.specifier = specifier
        self.candidates = candidates


class PlatformNotAvailableError(ResolutionError):
    """Raised when a release has no download for the current platform."""


class VerificationError(AstudiosError):
    """Raised when a downloaded file does not match its published checksum."""

    def __init__(self, path: Path, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for '{path.name}': expected {expected}, got {actual}."
        )
        self.path = path
        self.expected = expected
        self.actual = actual


class ExtractionError(AstudiosError):
    """Raised when an archive is corrupt or cannot be unpacked."""


class UnsupportedFormatError(ExtractionError):
    """Raised when the archive format is not one of zip, tar.gz or dmg."""


class MountError(ExtractionError):
    """Raised when a disk image cannot be attached."""


class InstallationError(AstudiosError):
    """Raised when an extracted bundle cannot be placed under the install root."""


class AlreadyInstalledError(InstallationError):
    """Raised when the target version directory already exists."""

    def __init__(self, version: str, path: Path):
        super().__init__(
            f"Version {version} is already installed at '{path}'. "
            "Use --force to reinstall."
        )
        self.version = version
        self.path = path


class InsufficientSpaceError(InstallationError):
    """Raised when the install root's filesystem runs out of space."""


class InstallPermissionError(InstallationError):
    """Raised when the install root is not writable."""


class SwitchError(AstudiosError):
    """Base class for errors changing the active version."""


class TargetNotInstalledError(SwitchError):
    """Raised when a switch target does not match any installed version."""


class AliasUpdateError(SwitchError):
    """Raised when the active alias cannot be created or replaced."""


class ConfigurationError(AstudiosError):
    """Raised for issues related to configuration loading or validation."""


class DownloaderNotFoundError(ConfigurationError):
    """Raised when an explicitly requested external downloader is missing."""
