"""Abstract interface (port) for fetching the source bytes of an extraction."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

# Zero-argument release action; may be a plain function or a coroutine function.
CleanupHook = Callable[[], Awaitable[None] | None]

# Header name → list of values, as attached to a fetch.
HeaderMap = Mapping[str, Sequence[str]]


class ByteSource(Protocol):
    """Anything that yields bytes through ``await read(size)``.

    An empty result means end of stream. Starlette's ``UploadFile`` fits as is.
    """

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class AcquiredSource:
    """A byte source plus the action that releases it.

    ``close`` is None when nothing needs releasing.
    """

    stream: ByteSource
    close: CleanupHook | None = None


class Transport(ABC):
    """Port for source resolution — implemented in the infrastructure layer."""

    @abstractmethod
    async def fetch(self, url: str, headers: HeaderMap | None = None) -> AcquiredSource:
        """Resolve a source descriptor into a readable byte stream.

        Args:
            url: URL-like source descriptor.
            headers: Extra request headers, where the transport has a use for them.

        Returns:
            AcquiredSource whose ``close`` must be run once the bytes are consumed.

        Raises:
            FetchError: When the source cannot be opened or answered non-2xx.
        """
        ...
