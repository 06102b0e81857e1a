"""
Pydantic model for service configuration.
Provides robust validation for all settings.
"""

from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from release_proxy import __version__

DEFAULT_USER_AGENT = f"ReleaseProxy-Downloader/{__version__}"
DEFAULT_CACHE_TTL = 86400


class ServiceConfig(BaseModel):
    """A validated configuration model for the service."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8080
    api_prefix: str = ""

    # Backing store
    store_backend: Literal["file", "memory"] = "file"
    store_path: str = ""
    cache_ttl: int = DEFAULT_CACHE_TTL

    # Upstream release API
    release_api_url: str = "https://api.github.com"
    user_agent: str = DEFAULT_USER_AGENT
    github_token: str = Field(default="", repr=False)
    resolve_timeout: float = 15.0

    # Asset downloads
    download_connect_timeout: float = 15.0
    download_read_timeout: float = 90.0
    download_timeout: float = 600.0
    chunk_size: int = 262144  # 256 KB

    # Logging
    log_dir: str = ""

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("api_prefix")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        """Normalizes the prefix to '' or '/segment' without a trailing slash."""
        v = v.strip("/")
        return f"/{v}" if v else ""

    @field_validator(
        "cache_ttl",
        "resolve_timeout",
        "download_connect_timeout",
        "download_read_timeout",
        "download_timeout",
        "chunk_size",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be greater than zero.")
        return v

    @field_validator("release_api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Release API URL must be an absolute URL: {v!r}")
        return v.rstrip("/")

    @field_validator("user_agent")
    @classmethod
    def validate_user_agent(cls, v: str) -> str:
        # The release API rejects anonymous clients.
        if not v:
            raise ValueError("User agent cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> list[str]:
        """Returns all keys that are expected in the INI file, in model order."""
        return list(cls.model_fields)
