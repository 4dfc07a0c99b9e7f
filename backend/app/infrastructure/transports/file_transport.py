"""Local filesystem source transport.

Paths are normalised under a fixed root so ``..`` segments cannot climb out
of it: ``/etc/../x`` and ``../../x`` both resolve to ``<root>/x``.
"""

import asyncio
import logging
import posixpath
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlsplit

from app.application.interfaces.transport import AcquiredSource, HeaderMap, Transport
from app.domain.exceptions import FetchError

logger = logging.getLogger(__name__)


class LocalFileSource:
    """Reads an open binary file off the event loop."""

    def __init__(self, handle: BinaryIO):
        self._handle = handle

    async def read(self, size: int = -1) -> bytes:
        return await asyncio.to_thread(self._handle.read, size)


class FileTransport(Transport):
    """Infrastructure adapter — reads sources from the local filesystem.

    ``root=None`` resolves against the process working directory at fetch time.
    Headers are ignored.
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root) if root is not None else None

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else Path.cwd()

    def resolve(self, url: str) -> Path:
        """Map ``file:///a/b``, ``./a/b`` or ``a/b`` to a path under the root."""
        raw_path = unquote(urlsplit(url).path)
        cleaned = posixpath.normpath("/" + raw_path).lstrip("/")
        return self.root / cleaned if cleaned else self.root

    async def fetch(self, url: str, headers: HeaderMap | None = None) -> AcquiredSource:
        path = self.resolve(url)
        try:
            handle = await asyncio.to_thread(open, path, "rb")
        except OSError as e:
            raise FetchError(url, f"open {path}: {e.strerror or e}") from e

        logger.debug("Opened local source %s", path)
        return AcquiredSource(stream=LocalFileSource(handle), close=handle.close)
