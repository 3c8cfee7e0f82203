"""Offline cache controller for a single web application origin."""

from .config import ConfigError, ControllerConfig
from .controller import CacheController
from .models import (
    Action,
    CacheLookupResult,
    CacheMeta,
    ControllerState,
    ControllerStateError,
    FetchResult,
    InstallError,
    InterceptedRequest,
    NetworkError,
    NetworkOutcome,
    OfflineError,
    ResourceKind,
    ShellCacheError,
    get_extension_for_content_type,
)
from .network import NetworkFetcher
from .policy import classify, decide, lookup_state
from .registration import Registration
from .store import CacheStorage, FileCacheStore

__all__ = [
    "Action",
    "CacheController",
    "CacheLookupResult",
    "CacheMeta",
    "CacheStorage",
    "ConfigError",
    "ControllerConfig",
    "ControllerState",
    "ControllerStateError",
    "FetchResult",
    "FileCacheStore",
    "InstallError",
    "InterceptedRequest",
    "NetworkError",
    "NetworkFetcher",
    "NetworkOutcome",
    "OfflineError",
    "Registration",
    "ResourceKind",
    "ShellCacheError",
    "classify",
    "decide",
    "get_extension_for_content_type",
    "lookup_state",
]
