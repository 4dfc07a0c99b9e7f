"""Stream result — the extracted-text stream handed back to the caller."""

import asyncio
import logging
from collections.abc import AsyncIterator

from app.domain.entities import ExtractionJob
from app.domain.exceptions import ExtractionError

logger = logging.getLogger(__name__)


class StreamResult:
    """Readable engine output plus a one-shot completion signal.

    End of stream is reported only after the completion is settled, so a
    consumer that reads until ``b""`` can inspect ``completion`` right away.
    Reading alone cannot tell an empty extraction from a failed one; check
    ``await result.wait()`` once the stream is drained.
    """

    def __init__(
        self,
        job: ExtractionJob,
        process: asyncio.subprocess.Process,
        chunk_size: int = 65536,
    ):
        self.job = job
        self._process = process
        self._chunk_size = chunk_size
        self._completion: asyncio.Future[ExtractionError | None] = (
            asyncio.get_running_loop().create_future()
        )
        self._cancelled = False

    @property
    def completion(self) -> "asyncio.Future[ExtractionError | None]":
        """Resolves exactly once with None or the extraction error."""
        return self._completion

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._completion.done()

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes of extracted text (all remaining if -1)."""
        stdout = self._process.stdout
        data = await stdout.read(size) if stdout is not None else b""
        if not data:
            # EOF is only handed out once the run has settled.
            await asyncio.shield(self._completion)
        return data

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self._chunk_size)
            if not chunk:
                return
            yield chunk

    async def wait(self) -> ExtractionError | None:
        """Wait for the run to settle and return its error, if any."""
        return await asyncio.shield(self._completion)

    def cancel(self) -> bool:
        """Stop the engine if it is still running.

        Returns False when the run had already settled. The completion then
        carries an EngineError for the cancelled run.
        """
        if self._completion.done() or self._process.returncode is not None:
            return False

        self._cancelled = True
        try:
            self._process.kill()
        except ProcessLookupError:
            return False
        logger.info("Extraction %s cancelled", self.job.id)
        return True

    def _settle(self, error: ExtractionError | None) -> None:
        """Publish the outcome; a second call raises InvalidStateError."""
        self._completion.set_result(error)
