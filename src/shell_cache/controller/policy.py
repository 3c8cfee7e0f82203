"""Request classification, freshness and the routing decision table.

Everything here is pure: no I/O, no clock reads. The controller feeds in the
request, what the cache holds and what the network returned, and gets back
the next step to take.
"""

from datetime import datetime, timedelta

import httpx

from .config import ControllerConfig
from .models import (
    Action,
    CacheLookupResult,
    FetchResult,
    InterceptedRequest,
    NetworkOutcome,
    ResourceKind,
)


def _same_origin(url: httpx.URL, origin: httpx.URL) -> bool:
    return (url.scheme, url.host, url.port) == (origin.scheme, origin.host, origin.port)


def classify(request: InterceptedRequest, config: ControllerConfig) -> ResourceKind:
    """Pick the handling strategy for a request.

    Non-GET, cross-origin and excluded-path requests are bypassed; image,
    style and script destinations are assets; everything else is handled
    as a document.
    """
    if request.method.upper() != "GET":
        return ResourceKind.BYPASS
    if any(pattern in request.url for pattern in config.excluded_path_patterns):
        return ResourceKind.BYPASS
    if not _same_origin(httpx.URL(request.url), httpx.URL(config.origin)):
        return ResourceKind.BYPASS
    if request.destination in config.asset_destinations:
        return ResourceKind.ASSET
    return ResourceKind.DOCUMENT


def lookup_state(
    entry: FetchResult | None, now: datetime, threshold: timedelta
) -> CacheLookupResult:
    """Classify a cache lookup by the stored response's ``date`` header.

    Entries without a usable ``date`` header never go stale.
    """
    if entry is None:
        return CacheLookupResult.MISSING
    stored_date = entry.date
    if stored_date is None:
        return CacheLookupResult.FRESH
    if now - stored_date > threshold:
        return CacheLookupResult.STALE
    return CacheLookupResult.FRESH


def network_outcome(result: FetchResult | None) -> NetworkOutcome:
    """Map a fetch result (None when the fetch raised) to an outcome."""
    if result is None:
        return NetworkOutcome.FAILED
    return NetworkOutcome.OK if result.ok else NetworkOutcome.NOT_OK


_ASSET_TABLE: dict[tuple[CacheLookupResult, NetworkOutcome], Action] = {
    (CacheLookupResult.FRESH, NetworkOutcome.NOT_ATTEMPTED): Action.SERVE_CACHED,
    (CacheLookupResult.STALE, NetworkOutcome.NOT_ATTEMPTED): Action.FETCH,
    (CacheLookupResult.STALE, NetworkOutcome.OK): Action.STORE_AND_SERVE,
    (CacheLookupResult.STALE, NetworkOutcome.NOT_OK): Action.SERVE_NETWORK,
    (CacheLookupResult.STALE, NetworkOutcome.FAILED): Action.SERVE_STALE,
    (CacheLookupResult.MISSING, NetworkOutcome.NOT_ATTEMPTED): Action.FETCH,
    (CacheLookupResult.MISSING, NetworkOutcome.OK): Action.STORE_AND_SERVE,
    (CacheLookupResult.MISSING, NetworkOutcome.NOT_OK): Action.SERVE_NETWORK,
    (CacheLookupResult.MISSING, NetworkOutcome.FAILED): Action.FAIL,
}

# Documents go to the network before looking at any cache
_DOCUMENT_TABLE: dict[NetworkOutcome, Action] = {
    NetworkOutcome.NOT_ATTEMPTED: Action.FETCH,
    NetworkOutcome.OK: Action.STORE_AND_SERVE,
    NetworkOutcome.NOT_OK: Action.SERVE_NETWORK,
    NetworkOutcome.FAILED: Action.FALLBACK_SHELL,
}


def decide(
    kind: ResourceKind, lookup: CacheLookupResult, outcome: NetworkOutcome
) -> Action:
    """Map ``(kind, lookup, outcome)`` to the next routing step.

    Raises
    ------
        ValueError: For combinations the routing never produces, such as a
            network outcome for a fresh asset.
    """
    if kind is ResourceKind.BYPASS:
        return Action.NETWORK_ONLY
    if kind is ResourceKind.DOCUMENT:
        return _DOCUMENT_TABLE[outcome]
    try:
        return _ASSET_TABLE[(lookup, outcome)]
    except KeyError:
        msg = f"No routing step for {kind.value}/{lookup.value}/{outcome.value}"
        raise ValueError(msg) from None
