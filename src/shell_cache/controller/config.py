"""Controller configuration."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import httpx

DEFAULT_STATIC_CACHE = "app-shell-v2"
DEFAULT_DYNAMIC_CACHE = "app-shell-dynamic-v2"
DEFAULT_FRESHNESS = timedelta(hours=24)
DEFAULT_SHELL_URLS: tuple[str, ...] = ("/", "/manifest.json", "/offline.html")
DEFAULT_EXCLUDED_PATTERNS: tuple[str, ...] = ("/api/", ".php")
DEFAULT_ASSET_DESTINATIONS: frozenset[str] = frozenset({"image", "style", "script"})


class ConfigError(Exception):
    """Raised when controller configuration is invalid."""


@dataclass(frozen=True)
class ControllerConfig:
    """Everything a cache controller version needs to know.

    Bumping either cache name on a new deploy is what invalidates the caches
    of the previous version.
    """

    origin: str
    static_cache_name: str = DEFAULT_STATIC_CACHE
    dynamic_cache_name: str = DEFAULT_DYNAMIC_CACHE
    freshness_threshold: timedelta = DEFAULT_FRESHNESS
    shell_urls: tuple[str, ...] = DEFAULT_SHELL_URLS
    excluded_path_patterns: tuple[str, ...] = DEFAULT_EXCLUDED_PATTERNS
    asset_destinations: frozenset[str] = DEFAULT_ASSET_DESTINATIONS

    def __post_init__(self) -> None:
        try:
            origin = httpx.URL(self.origin)
        except httpx.InvalidURL as e:
            raise ConfigError(f"Invalid origin {self.origin!r}: {e}") from e
        if origin.scheme not in ("http", "https") or not origin.host:
            raise ConfigError(
                f"Origin must be an absolute http(s) URL (got {self.origin!r})"
            )
        if not self.static_cache_name or not self.dynamic_cache_name:
            raise ConfigError("Cache names cannot be empty")
        if self.static_cache_name == self.dynamic_cache_name:
            raise ConfigError(
                f"Static and dynamic caches need distinct names "
                f"(both are {self.static_cache_name!r})"
            )
        if self.freshness_threshold <= timedelta(0):
            raise ConfigError(
                f"Freshness threshold must be positive (got {self.freshness_threshold})"
            )
        if not self.shell_urls:
            raise ConfigError("At least one shell URL is required")

    @property
    def cache_names(self) -> frozenset[str]:
        """Names of the caches this version keeps alive."""
        return frozenset({self.static_cache_name, self.dynamic_cache_name})

    def resolve(self, url: str) -> str:
        """Resolve an origin-relative URL to an absolute one."""
        return str(httpx.URL(self.origin).join(url))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "origin": self.origin,
            "static_cache_name": self.static_cache_name,
            "dynamic_cache_name": self.dynamic_cache_name,
            "freshness_seconds": self.freshness_threshold.total_seconds(),
            "shell_urls": list(self.shell_urls),
            "excluded_path_patterns": list(self.excluded_path_patterns),
            "asset_destinations": sorted(self.asset_destinations),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ControllerConfig":
        """Create a ControllerConfig from a dictionary."""
        if "origin" not in data:
            raise ConfigError("Configuration is missing 'origin'")
        return cls(
            origin=data["origin"],
            static_cache_name=data.get("static_cache_name", DEFAULT_STATIC_CACHE),
            dynamic_cache_name=data.get("dynamic_cache_name", DEFAULT_DYNAMIC_CACHE),
            freshness_threshold=timedelta(
                seconds=data.get(
                    "freshness_seconds", DEFAULT_FRESHNESS.total_seconds()
                )
            ),
            shell_urls=tuple(data.get("shell_urls", DEFAULT_SHELL_URLS)),
            excluded_path_patterns=tuple(
                data.get("excluded_path_patterns", DEFAULT_EXCLUDED_PATTERNS)
            ),
            asset_destinations=frozenset(
                data.get("asset_destinations", DEFAULT_ASSET_DESTINATIONS)
            ),
        )
