"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from astudios.utils.platform import is_macos

FEED_URL = (
    "https://teamcity.jetbrains.com/guestAuth/repository/download/"
    "AndroidStudioReleasesList/.lastSuccessful/android-studio-releases-list.xml"
)
APP_HOME = Path("~/.astudios")
BACKEND_CHOICES = ("auto", "native", "aria2")


def default_alias_path() -> Path:
    """The symlink used to launch the active version."""
    if is_macos():
        return Path("/Applications/Android Studio.app")
    return Path("~/Applications/android-studio")


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Locations
    install_root: Path = APP_HOME / "versions"
    alias_path: Path = Field(default_factory=default_alias_path)
    cache_dir: Path = APP_HOME / "cache"
    downloads_dir: Path = APP_HOME / "downloads"

    # Catalog
    feed_url: str = FEED_URL
    cache_ttl_hours: float = 24

    # Download Settings
    backend: str = "auto"
    max_attempts: int = 3
    retry_base_delay: float = 1.5
    connect_timeout: float = 15
    read_timeout: float = 90
    aria2_connections: int = 16

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("install_root", "alias_path", "cache_dir", "downloads_dir")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in BACKEND_CHOICES:
            raise ValueError(f"Backend must be one of {', '.join(BACKEND_CHOICES)}.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("aria2_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """aria2 caps connections per server at 16."""
        if v < 1 or v > 16:
            raise ValueError("aria2 connections must be between 1 and 16.")
        return v

    @field_validator(
        "cache_ttl_hours", "retry_base_delay", "connect_timeout", "read_timeout"
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Durations must be positive.")
        return v

    @model_validator(mode="after")
    def validate_alias_location(self) -> "AppConfig":
        """The alias must not live inside the install root, where it would look
        like an installed version."""
        if self.alias_path.parent == self.install_root:
            raise ValueError(
                "The alias path cannot be a direct child of the install root."
            )
        return self

    @property
    def cache_ttl_seconds(self) -> int:
        return int(self.cache_ttl_hours * 3600)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
