"""
Pydantic models for the downloads catalog.
A persisted document that fails validation is treated as a cache miss.
"""

import re
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Seed catalog served whenever no richer catalog is available.
DEFAULT_DOWNLOADS = [
    {
        "name": "Clash Verge",
        "description": "A modern GUI client based on Tauri for Windows and macOS",
        "platforms": {
            "windows": {
                "repo": "clash-verge-rev/clash-verge-rev",
                "asset_pattern": r".*_x64-setup\.exe$",
                "fallback_url": (
                    "https://github.com/clash-verge-rev/clash-verge-rev/releases/"
                    "download/v2.2.3/Clash.Verge_2.2.3_x64-setup.exe"
                ),
            },
            "macos": {
                "repo": "clash-verge-rev/clash-verge-rev",
                "asset_pattern": r".*_aarch64\.dmg$",
                "fallback_url": (
                    "https://github.com/clash-verge-rev/clash-verge-rev/releases/"
                    "download/v2.2.3/Clash.Verge_2.2.3_aarch64.dmg"
                ),
            },
            "linux": {
                "repo": "clash-verge-rev/clash-verge-rev",
                "asset_pattern": r".*_amd64\.deb$",
                "fallback_url": (
                    "https://github.com/clash-verge-rev/clash-verge-rev/releases/"
                    "download/v2.2.3/Clash.Verge_2.2.3_amd64.deb"
                ),
            },
        },
    },
    {
        "name": "Clash Meta for Android",
        "description": "A rule-based tunnel for Android based on Clash Meta",
        "platforms": {
            "android": {
                "repo": "MetaCubeX/ClashMetaForAndroid",
                "asset_pattern": r".*-universal-release\.apk$",
                "fallback_url": (
                    "https://github.com/MetaCubeX/ClashMetaForAndroid/releases/"
                    "latest/download/cmfa-2.11.8-meta-universal-release.apk"
                ),
            },
        },
    },
]


class PlatformSource(BaseModel):
    """One way to obtain a build for one platform."""

    repo: str
    asset_pattern: str
    fallback_url: str

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        """Ensures the repository is given as 'owner/name'."""
        v = v.strip()
        owner, sep, name = v.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Repository must be 'owner/name', got: {v!r}")
        return v

    @field_validator("asset_pattern")
    @classmethod
    def validate_asset_pattern(cls, v: str) -> str:
        """Kept verbatim: surrounding spaces are part of the pattern."""
        if not v:
            raise ValueError("Asset pattern cannot be empty.")
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Asset pattern is not a valid regex: {e}") from e
        return v

    @field_validator("fallback_url")
    @classmethod
    def validate_fallback_url(cls, v: str) -> str:
        v = v.strip()
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Fallback URL must be an absolute http(s) URL: {v!r}")
        return v

    def compiled_pattern(self) -> re.Pattern:
        return re.compile(self.asset_pattern)


class AppEntry(BaseModel):
    """One downloadable application and its per-platform sources."""

    name: str = Field(min_length=1)
    description: str = ""
    platforms: dict[str, PlatformSource]

    def matches(self, app_id: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.lower() == app_id.lower()


class DownloadsCatalog(BaseModel):
    """
    The cached collection of applications, serialized as
    ``{"timestamp": <epoch seconds>, "downloads": [...]}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    generated_at: int = Field(alias="timestamp")
    entries: list[AppEntry] = Field(alias="downloads")

    @model_validator(mode="after")
    def validate_unique_names(self) -> "DownloadsCatalog":
        seen: set[str] = set()
        for entry in self.entries:
            key = entry.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate application name: {entry.name!r}")
            seen.add(key)
        return self

    def is_fresh(self, now: float, ttl: int) -> bool:
        """A catalog is fresh while younger than the TTL and not empty."""
        return bool(self.entries) and now - self.generated_at < ttl

    def find_app(self, app_id: str) -> AppEntry | None:
        return next((entry for entry in self.entries if entry.matches(app_id)), None)

    def find_source(self, app_id: str, platform: str) -> PlatformSource | None:
        """Looks up the source for an app (case-insensitive) and platform key."""
        entry = self.find_app(app_id)
        if entry is None:
            return None
        return entry.platforms.get(platform)

    def to_document(self) -> dict:
        """Returns the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


def default_entries() -> list[AppEntry]:
    """Builds a fresh copy of the seed catalog."""
    return [AppEntry.model_validate(item) for item in DEFAULT_DOWNLOADS]
