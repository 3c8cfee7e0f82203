"""Data models for the offline cache controller."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any

import httpx

# Mapping of content types to file extensions for stored bodies
CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "text/html": ".html",
    "text/css": ".css",
    "text/javascript": ".js",
    "application/javascript": ".js",
    "application/json": ".json",
    "application/manifest+json": ".webmanifest",
    "text/plain": ".txt",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/x-icon": ".ico",
    "font/woff2": ".woff2",
}


def get_extension_for_content_type(content_type: str) -> str:
    """Get file extension for a content type.

    Args:
        content_type: The MIME content type (may include parameters).

    Returns
    -------
        File extension including the dot (e.g., '.css').
    """
    base_type = content_type.split(";")[0].strip().lower()
    if base_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[base_type]
    if "json" in base_type:
        return ".json"
    if "html" in base_type:
        return ".html"
    return ".bin"


class ShellCacheError(Exception):
    """Base class for controller errors."""


class NetworkError(ShellCacheError):
    """Raised when a request never produced an HTTP response."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Network request to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class InstallError(ShellCacheError):
    """Raised when one or more shell URLs could not be cached."""

    def __init__(self, cache_name: str, failures: dict[str, str]) -> None:
        listed = ", ".join(f"{url} ({why})" for url, why in failures.items())
        super().__init__(f"Install of {cache_name} failed: {listed}")
        self.cache_name = cache_name
        self.failures = failures


class OfflineError(ShellCacheError):
    """Raised when a document is unreachable and no cached fallback exists."""

    def __init__(self, url: str) -> None:
        super().__init__(f"{url} is unreachable and has no cached fallback")
        self.url = url


class ControllerStateError(ShellCacheError):
    """Raised when a lifecycle step runs in the wrong controller state."""


class ControllerState(str, Enum):
    """Lifecycle states of a cache controller."""

    INSTALLING = "installing"
    WAITING = "waiting"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class ResourceKind(str, Enum):
    """Handling strategy a request is routed to."""

    BYPASS = "bypass"
    ASSET = "asset"
    DOCUMENT = "document"


class CacheLookupResult(str, Enum):
    """Outcome of looking a URL up in a cache store."""

    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


class NetworkOutcome(str, Enum):
    """Outcome of a network fetch."""

    OK = "ok"
    NOT_OK = "not_ok"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


class Action(str, Enum):
    """Next step for the routing algorithm."""

    NETWORK_ONLY = "network_only"  # forward, never touch a cache
    SERVE_CACHED = "serve_cached"
    FETCH = "fetch"
    STORE_AND_SERVE = "store_and_serve"
    SERVE_NETWORK = "serve_network"  # return the live response unstored
    SERVE_STALE = "serve_stale"
    FALLBACK_SHELL = "fallback_shell"  # try cached page, then cached root
    FAIL = "fail"


@dataclass
class InterceptedRequest:
    """A request issued on behalf of the application."""

    url: str
    method: str = "GET"
    destination: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_relative(self) -> bool:
        """Whether the URL lacks a scheme and must be resolved against an origin."""
        return httpx.URL(self.url).is_relative_url

    def with_url(self, url: str) -> "InterceptedRequest":
        """Return a copy of the request pointing at another URL."""
        return InterceptedRequest(
            url=url,
            method=self.method,
            destination=self.destination,
            headers=dict(self.headers),
        )


def cache_key(url: str) -> str:
    """Generate a store key for a URL."""
    return hashlib.sha256(url.encode()).hexdigest()[:16]


@dataclass
class FetchResult:
    """A response handed back for an intercepted request."""

    url: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_type: str = "application/octet-stream"
    from_cache: bool = False
    cache_name: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status_code <= 299

    @property
    def date(self) -> datetime | None:
        """Parse the ``date`` header, or None if absent or malformed."""
        raw = next((v for k, v in self.headers.items() if k.lower() == "date"), None)
        if not raw:
            return None
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


@dataclass
class CacheMeta:
    """Metadata for a stored response."""

    url: str
    status_code: int
    stored_at: datetime
    content_type: str = "application/octet-stream"
    headers: dict[str, str] = field(default_factory=dict)
    raw_path: str = ""  # relative to the store directory

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "status_code": self.status_code,
            "stored_at": self.stored_at.isoformat(),
            "content_type": self.content_type,
            "headers": self.headers,
            "raw_path": self.raw_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheMeta":
        """Create a CacheMeta from a dictionary."""
        return cls(
            url=data["url"],
            status_code=data["status_code"],
            stored_at=datetime.fromisoformat(data["stored_at"]),
            content_type=data.get("content_type", "application/octet-stream"),
            headers=dict(data.get("headers", {})),
            raw_path=data.get("raw_path", ""),
        )
