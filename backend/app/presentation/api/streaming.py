"""Streaming response that reports late extraction failures in an HTTP trailer.

The status line is committed before the engine has finished, so an error
found afterwards travels in a trailer declared up front (``Trailer:`` header).
Trailers are sent when the ASGI server offers the ``http.response.trailers``
extension; otherwise the error is only logged.
"""

import logging

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from app.application.services import StreamResult
from app.domain.exceptions import ExtractionError

logger = logging.getLogger(__name__)


def trailer_value(error: ExtractionError) -> bytes:
    """Single-line, latin-1 safe rendering of an error for a header value."""
    return " ".join(str(error).split()).encode("latin-1", errors="replace")


class ExtractionStreamingResponse(StreamingResponse):
    """Relays a StreamResult as the response body, chunk by chunk."""

    def __init__(
        self,
        result: StreamResult,
        trailer_name: str = "X-Tikago-Extras",
        media_type: str = "text/plain",
    ) -> None:
        self.result = result
        self.trailer_name = trailer_name
        self._send_trailers = False
        super().__init__(
            result,
            media_type=media_type,
            headers={"Trailer": trailer_name},
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self._send_trailers = "http.response.trailers" in scope.get("extensions", {})
        await super().__call__(scope, receive, send)

    async def stream_response(self, send: Send) -> None:
        start = {
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self.raw_headers,
        }
        if self._send_trailers:
            start["trailers"] = True
        await send(start)

        try:
            async for chunk in self.body_iterator:
                await send({"type": "http.response.body", "body": chunk, "more_body": True})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            # No-op once the run has settled; stops the engine if the client went away.
            self.result.cancel()

        error = await self.result.wait()
        if self._send_trailers:
            headers = []
            if error is not None:
                headers.append((self.trailer_name.lower().encode("latin-1"), trailer_value(error)))
            await send({"type": "http.response.trailers", "headers": headers, "more_trailers": False})
        elif error is not None:
            logger.warning(
                "Extraction %s failed after streaming started (no trailer support): %s",
                self.result.job.id,
                error,
            )
