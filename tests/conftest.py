"""Shared fixtures: a scripted origin server, a fake clock and fresh storage."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path

import httpx
import pytest

from shell_cache.controller import (
    CacheController,
    CacheStorage,
    ControllerConfig,
    NetworkFetcher,
)

ORIGIN = "https://shop.example.com"


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeOrigin:
    """Serves canned responses through httpx.MockTransport and records calls."""

    def __init__(self, clock: Callable[[], datetime]) -> None:
        self.clock = clock
        self.routes: dict[str, tuple[int, bytes, str]] = {}
        self.calls: list[str] = []
        self.offline = False
        self.failing: set[str] = set()

    def add(
        self,
        url: str,
        body: bytes = b"",
        *,
        status: int = 200,
        content_type: str = "text/html",
    ) -> None:
        self.routes[str(httpx.URL(ORIGIN).join(url))] = (status, body, content_type)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        if self.offline or url in self.failing:
            raise httpx.ConnectError("offline", request=request)
        missing = (404, b"missing", "text/plain")
        status, body, content_type = self.routes.get(url, missing)
        return httpx.Response(
            status,
            content=body,
            headers={
                "content-type": content_type,
                "date": format_datetime(self.clock(), usegmt=True),
            },
        )

    def calls_to(self, path: str) -> int:
        return self.calls.count(str(httpx.URL(ORIGIN).join(path)))

    def fetcher(self) -> NetworkFetcher:
        return NetworkFetcher(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def origin(clock: FakeClock) -> FakeOrigin:
    server = FakeOrigin(clock)
    server.add("/", b"<html>home</html>")
    server.add("/manifest.json", b"{}", content_type="application/manifest+json")
    server.add("/offline.html", b"<html>offline</html>")
    return server


@pytest.fixture
def storage(tmp_path: Path) -> CacheStorage:
    return CacheStorage(tmp_path / "caches")


@pytest.fixture
def config() -> ControllerConfig:
    return ControllerConfig(origin=ORIGIN)


@pytest.fixture
def controller(
    config: ControllerConfig,
    storage: CacheStorage,
    origin: FakeOrigin,
    clock: FakeClock,
) -> CacheController:
    return CacheController(config, storage, origin.fetcher(), clock=clock)
