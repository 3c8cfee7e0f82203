"""Offline cache controller: install, activate and per-request routing."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from .config import ControllerConfig
from .models import (
    Action,
    CacheLookupResult,
    ControllerState,
    ControllerStateError,
    FetchResult,
    InstallError,
    InterceptedRequest,
    NetworkError,
    NetworkOutcome,
    OfflineError,
    ResourceKind,
)
from .network import NetworkFetcher
from .policy import classify, decide, lookup_state, network_outcome
from .store import CacheStorage

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheController:
    """One installed version of the offline cache policy.

    Lifecycle: ``on_install`` seeds the static cache with the app shell,
    ``on_activate`` purges caches from older versions, then ``on_fetch``
    handles requests until the controller is retired by a newer version.
    """

    def __init__(
        self,
        config: ControllerConfig,
        storage: CacheStorage,
        network: NetworkFetcher,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.storage = storage
        self.network = network
        self.clock = clock
        self.state = ControllerState.INSTALLING
        self.skip_waiting = False
        self.controls_clients = False

    def _require(self, state: ControllerState, step: str) -> None:
        if self.state is not state:
            msg = f"Cannot {step} while {self.state.value} (expected {state.value})"
            raise ControllerStateError(msg)

    # === LIFECYCLE ===

    async def on_install(self) -> None:
        """Fetch and store every shell URL, all or nothing.

        Raises
        ------
            InstallError: If any shell URL fails or is not ok. Nothing is
                written in that case.
        """
        self._require(ControllerState.INSTALLING, "install")
        name = self.config.static_cache_name
        urls = [self.config.resolve(u) for u in self.config.shell_urls]
        logger.info("Installing %s (%d shell URLs)", name, len(urls))

        results = await self.network.fetch_all(
            [InterceptedRequest(url=u, destination="document") for u in urls]
        )
        failures: dict[str, str] = {}
        for url, result in zip(urls, results, strict=True):
            if isinstance(result, NetworkError):
                failures[url] = result.reason
            elif not result.ok:
                failures[url] = f"HTTP {result.status_code}"
        if failures:
            self.state = ControllerState.REDUNDANT
            raise InstallError(name, failures)

        self.storage.open(name).put_all(
            (url, r)
            for url, r in zip(urls, results, strict=True)
            if isinstance(r, FetchResult)
        )
        self.skip_waiting = True
        self.state = ControllerState.WAITING
        logger.info("Installed %s", name)

    async def on_activate(self) -> list[str]:
        """Delete caches from other versions and take control of clients.

        Returns
        -------
            Names of the deleted caches.
        """
        self._require(ControllerState.WAITING, "activate")
        keep = self.config.cache_names
        deleted = []
        for name in self.storage.keys():
            if name not in keep:
                logger.info("Deleting old cache %s", name)
                self.storage.delete(name)
                deleted.append(name)
        self.state = ControllerState.ACTIVE
        self.controls_clients = True
        logger.info("Activated %s", self.config.static_cache_name)
        return deleted

    def retire(self) -> None:
        """Mark the controller as superseded."""
        self.state = ControllerState.REDUNDANT
        self.controls_clients = False

    # === ROUTING ===

    def _absolute(self, request: InterceptedRequest) -> InterceptedRequest:
        if not request.is_relative:
            return request
        return request.with_url(self.config.resolve(request.url))

    async def on_fetch(self, request: InterceptedRequest) -> FetchResult:
        """Route a request through bypass, asset or document handling."""
        self._require(ControllerState.ACTIVE, "handle fetch")
        request = self._absolute(request)
        kind = classify(request, self.config)
        logger.debug("%s %s -> %s", request.method, request.url, kind.value)
        if kind is ResourceKind.ASSET:
            return await self._handle_asset(request)
        if kind is ResourceKind.DOCUMENT:
            return await self._handle_document(request)
        return await self.network.fetch(request)

    async def _try_fetch(self, request: InterceptedRequest) -> FetchResult | None:
        try:
            return await self.network.fetch(request)
        except NetworkError as e:
            logger.warning("%s", e)
            return None

    async def _handle_asset(self, request: InterceptedRequest) -> FetchResult:
        cache = self.storage.open(self.config.dynamic_cache_name)
        cached = cache.match(request.url)
        lookup = lookup_state(cached, self.clock(), self.config.freshness_threshold)

        action = decide(ResourceKind.ASSET, lookup, NetworkOutcome.NOT_ATTEMPTED)
        if action is Action.SERVE_CACHED and cached is not None:
            return cached

        if lookup is CacheLookupResult.MISSING:
            # No cached copy to fall back on; transport errors propagate
            fetched: FetchResult | None = await self.network.fetch(request)
        else:
            fetched = await self._try_fetch(request)

        action = decide(ResourceKind.ASSET, lookup, network_outcome(fetched))
        if action is Action.STORE_AND_SERVE and fetched is not None:
            cache.put(request.url, fetched)
            return fetched
        if action is Action.SERVE_STALE and cached is not None:
            logger.warning("Serving stale %s", request.url)
            return cached
        if fetched is None:
            raise NetworkError(request.url, "no response")
        return fetched

    async def _handle_document(self, request: InterceptedRequest) -> FetchResult:
        fetched = await self._try_fetch(request)
        action = decide(
            ResourceKind.DOCUMENT, CacheLookupResult.MISSING, network_outcome(fetched)
        )
        if action is Action.STORE_AND_SERVE and fetched is not None:
            self.storage.open(self.config.static_cache_name).put(request.url, fetched)
            return fetched
        if action is Action.SERVE_NETWORK and fetched is not None:
            return fetched
        return self._document_fallback(request)

    def _document_fallback(self, request: InterceptedRequest) -> FetchResult:
        name = self.config.static_cache_name
        root = self.config.resolve("/")
        for url in (request.url, root):
            found = self.storage.match(url, cache_name=name)
            if found is not None:
                logger.warning("Offline, serving cached %s for %s", url, request.url)
                return found
        raise OfflineError(request.url)
