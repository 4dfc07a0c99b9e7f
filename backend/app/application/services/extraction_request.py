"""Extraction request — the validated description of one extraction job.

A request either carries an inline byte stream (an upload, raw bytes) or a
URL that a transport resolves. It also owns the cleanup hooks that release
whatever backs the source once the engine is done with it.
"""

import inspect
import logging
import threading

from app.application.interfaces.transport import (
    ByteSource,
    CleanupHook,
    HeaderMap,
    Transport,
)
from app.domain.exceptions import CleanupError, ExtractionValidationError

logger = logging.getLogger(__name__)

# (name, hook); name is None for hooks that are never deduplicated.
_NamedHook = tuple[str | None, CleanupHook]


class ExtractionRequest:
    """One extraction job: a source plus the hooks that release it.

    Usage:
        req = ExtractionRequest.from_url("https://example.com/a.pdf")
        req = ExtractionRequest.from_stream(upload, closer=upload.close)
        req.chain_cleanup(form.close, name="multipart-form")
    """

    def __init__(
        self,
        url: str = "",
        *,
        stream: ByteSource | None = None,
        stream_closer: CleanupHook | None = None,
        headers: HeaderMap | None = None,
        transport: Transport | None = None,
    ):
        self.url = url
        self.stream = stream
        self.stream_closer = stream_closer
        self.headers: dict[str, list[str]] = {
            name: list(values) for name, values in (headers or {}).items()
        }
        self.transport = transport

        self._lock = threading.Lock()
        self._hooks: list[_NamedHook] = []
        self._explicit_hook = False
        self._acquired = False

    @classmethod
    def from_url(
        cls,
        url: str,
        headers: HeaderMap | None = None,
        transport: Transport | None = None,
    ) -> "ExtractionRequest":
        return cls(url, headers=headers, transport=transport)

    @classmethod
    def from_stream(
        cls,
        stream: ByteSource,
        *,
        closer: CleanupHook | None = None,
        headers: HeaderMap | None = None,
    ) -> "ExtractionRequest":
        """Wrap an already-open stream; ``closer`` is None when it owns nothing."""
        return cls(stream=stream, stream_closer=closer, headers=headers)

    @property
    def has_stream(self) -> bool:
        return self.stream is not None

    @property
    def source_label(self) -> str:
        """Short description of the source for logs."""
        return "<inline stream>" if self.has_stream else self.url.strip()

    # ── Validation & acquisition ────────────────────────────────────

    def validate(self) -> None:
        """Raise ExtractionValidationError unless a stream or a URL is present."""
        if self.has_stream:
            return
        if not self.url.strip():
            raise ExtractionValidationError('expecting "url"')

    async def acquire(self, default_transport: Transport) -> ByteSource:
        """Return the source bytes, fetching at most once per request.

        An inline stream is used as is and its closer becomes the cleanup
        action unless a hook was set explicitly. Otherwise the request's own
        transport (or ``default_transport``) fetches the URL and the fetched
        source's close is chained onto the cleanup hooks.

        Raises:
            RuntimeError: On a second call.
            FetchError: When the transport fails.
        """
        with self._lock:
            if self._acquired:
                raise RuntimeError("extraction request already acquired")
            self._acquired = True

        if self.has_stream:
            if self.stream_closer is not None:
                with self._lock:
                    if not self._explicit_hook:
                        self._hooks.append(("stream", self.stream_closer))
            return self.stream

        transport = self.transport or default_transport
        acquired = await transport.fetch(self.url.strip(), self.headers)
        if acquired.close is not None:
            with self._lock:
                self._hooks.append((None, acquired.close))
        return acquired.stream

    # ── Cleanup hooks ───────────────────────────────────────────────

    def set_cleanup(self, hook: CleanupHook, name: str | None = None) -> list[CleanupHook]:
        """Replace all cleanup hooks with ``hook`` and return the previous ones."""
        with self._lock:
            previous = [h for _, h in self._hooks]
            self._hooks = [(name, hook)]
            self._explicit_hook = True
        return previous

    def chain_cleanup(self, hook: CleanupHook | None, name: str | None = None) -> None:
        """Append ``hook`` so it runs after the hooks already set.

        A hook chained under a name that is already registered is ignored.
        """
        if hook is None:
            return

        with self._lock:
            if name is not None and any(n == name for n, _ in self._hooks):
                return
            self._hooks.append((name, hook))
            self._explicit_hook = True

    @property
    def cleanup_pending(self) -> int:
        with self._lock:
            return len(self._hooks)

    async def run_cleanup(self) -> None:
        """Run every registered hook once, in the order they were set.

        The hooks are taken out under the lock, so a second call is a no-op.
        Every hook runs even when an earlier one fails. Earlier failures are
        logged; the last one is reported.

        Raises:
            CleanupError: Carrying all failures, when any hook failed.
        """
        with self._lock:
            hooks, self._hooks = self._hooks, []

        failures: list[Exception] = []
        for name, hook in hooks:
            try:
                outcome = hook()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning("Cleanup hook %s failed: %s", name or getattr(hook, "__qualname__", hook), e)
                failures.append(e)

        if failures:
            raise CleanupError(failures) from failures[-1]

