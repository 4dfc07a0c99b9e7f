"""Composite transport — dispatches on the URL scheme.

Scheme routing:
    file://…        → local file relative to the filesystem root
    (no scheme)     → local file relative to the working directory
    anything else   → HTTP(S) GET
"""

from pathlib import Path
from urllib.parse import urlsplit

from app.application.interfaces.transport import AcquiredSource, HeaderMap, Transport
from app.infrastructure.transports.file_transport import FileTransport
from app.infrastructure.transports.http_transport import HTTPTransport


class FileAndHTTPTransport(Transport):
    """Serves local files and network URLs behind one ``fetch``."""

    def __init__(
        self,
        http: Transport | None = None,
        file_root: str | Path = "/",
        relative_root: str | Path | None = None,
    ):
        self._fallback = http or HTTPTransport()
        self._protocols: dict[str, Transport] = {
            "file": FileTransport(file_root),
            "": FileTransport(relative_root),
        }

    def register_protocol(self, scheme: str, transport: Transport) -> None:
        """Route ``scheme`` to ``transport``, replacing any earlier registration."""
        self._protocols[scheme.lower()] = transport

    def transport_for(self, url: str) -> Transport:
        scheme = urlsplit(url.strip()).scheme.lower()
        return self._protocols.get(scheme, self._fallback)

    async def fetch(self, url: str, headers: HeaderMap | None = None) -> AcquiredSource:
        return await self.transport_for(url).fetch(url, headers)
