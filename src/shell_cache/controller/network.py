"""Network access for the cache controller."""

import asyncio
from collections.abc import Sequence
from types import TracebackType

import httpx

from .models import FetchResult, InterceptedRequest, NetworkError

_DECODED_HEADERS = frozenset({"content-encoding", "content-length"})


class NetworkFetcher:
    """Thin wrapper over ``httpx.AsyncClient``.

    Every HTTP status comes back as a FetchResult; only transport failures
    (DNS, refused connection, timeout) raise, as NetworkError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout, transport=transport, follow_redirects=True
        )
        self.timeout = timeout

    async def fetch(self, request: InterceptedRequest) -> FetchResult:
        """Issue a request and wrap the response."""
        try:
            response = await self.client.request(
                method=request.method, url=request.url, headers=request.headers
            )
        except httpx.RequestError as e:
            raise NetworkError(request.url, str(e) or type(e).__name__) from e
        # httpx has already decoded the body, so these no longer describe it
        headers = {
            k: v for k, v in response.headers.items() if k not in _DECODED_HEADERS
        }
        return FetchResult(
            url=request.url,
            status_code=response.status_code,
            headers=headers,
            body=response.content,
            content_type=response.headers.get(
                "content-type", "application/octet-stream"
            ),
        )

    async def fetch_all(
        self, requests: Sequence[InterceptedRequest]
    ) -> list[FetchResult | NetworkError]:
        """Fetch concurrently; failures are returned in place, not raised."""
        results = await asyncio.gather(
            *(self.fetch(r) for r in requests), return_exceptions=True
        )
        out: list[FetchResult | NetworkError] = []
        for result in results:
            if isinstance(result, BaseException) and not isinstance(
                result, NetworkError
            ):
                raise result
            out.append(result)
        return out

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "NetworkFetcher":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
