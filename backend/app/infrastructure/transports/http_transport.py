"""HTTP(S) source transport — streamed GET via httpx.

The response body is handed to the pipeline unread; it is consumed chunk by
chunk as the engine's stdin drains it, and closed by the request's cleanup.
"""

import logging

import httpx

from app.application.interfaces.transport import AcquiredSource, HeaderMap, Transport
from app.domain.exceptions import FetchError

logger = logging.getLogger(__name__)


class HTTPResponseSource:
    """Adapts a streamed ``httpx.Response`` to the ``read(size)`` protocol."""

    def __init__(self, response: httpx.Response, chunk_size: int = 65536):
        self._chunks = response.aiter_bytes(chunk_size)
        self._buffer = b""

    async def read(self, size: int = -1) -> bytes:
        while not self._buffer:
            try:
                self._buffer = await self._chunks.__anext__()
            except StopAsyncIteration:
                return b""

        if size < 0:
            size = len(self._buffer)
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data


def _header_pairs(headers: HeaderMap | None) -> list[tuple[str, str]]:
    """Flatten a header → values mapping into httpx header pairs."""
    if not headers:
        return []
    return [(name, value) for name, values in headers.items() for value in values]


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


class HTTPTransport(Transport):
    """Infrastructure adapter — fetches sources over HTTP(S).

    Uses the injected ``httpx.AsyncClient`` when given; otherwise a client is
    created per fetch and closed together with the response.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._http_client = http_client
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def fetch(self, url: str, headers: HeaderMap | None = None) -> AcquiredSource:
        """Open a streamed GET on ``url``; any status outside 2xx is a FetchError."""
        client = self._get_client()
        should_close = self._http_client is None

        try:
            request = client.build_request("GET", url, headers=_header_pairs(headers))
            response = await client.send(request, stream=True, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            if should_close:
                await client.aclose()
            raise FetchError(url, f"GET {url}: {e}") from e
        except BaseException:
            if should_close:
                await client.aclose()
            raise

        async def close() -> None:
            try:
                await response.aclose()
            finally:
                if should_close:
                    await client.aclose()

        if not response.is_success:
            # Headers aid debugging; the body may be an arbitrary error page and is never read.
            header_list = response.headers.multi_items()
            await close()
            logger.warning("Fetch of %s answered %s", url, _status_line(response))
            raise FetchError(
                url,
                f"Status: {_status_line(response)}. Headers: {header_list}",
                status_code=response.status_code,
            )

        logger.debug("Fetching %s (%s)", url, _status_line(response))
        return AcquiredSource(stream=HTTPResponseSource(response), close=close)
