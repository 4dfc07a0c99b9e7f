"""Extraction service — pipes a request's source through the engine subprocess.

Lifecycle of one run:
    validate → acquire source → spawn engine → return StreamResult
    (background) feed stdin · wait for exit · run cleanup · settle completion

Nothing here is retried. Validation, fetch and spawn failures are raised to
the caller; engine and cleanup failures arrive through the completion.
"""

import asyncio
import logging
from collections.abc import Sequence

from app.application.interfaces.transport import ByteSource, Transport
from app.application.services.extraction_request import ExtractionRequest
from app.application.services.stream_result import StreamResult
from app.domain.entities import ExtractionJob
from app.domain.exceptions import (
    CleanupError,
    EngineError,
    ExtractionError,
    ExtractionValidationError,
    SpawnError,
)
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("ExtractionPipeline")

# Bytes of engine stderr kept for error messages.
STDERR_TAIL_BYTES = 2048


class ExtractionService:
    """Runs extraction requests through the external engine.

    ``command`` is the full engine argv; the document is always written to
    its stdin and the text read from its stdout. ``timeout`` (seconds) bounds
    the engine's run time; None lets it run until it exits.
    """

    def __init__(
        self,
        command: Sequence[str],
        default_transport: Transport,
        timeout: float | None = None,
        chunk_size: int = 65536,
    ) -> None:
        if not command:
            raise ValueError("engine command must not be empty")
        self._command = list(command)
        self._default_transport = default_transport
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._tasks: set[asyncio.Task] = set()

    async def extract(self, request: ExtractionRequest) -> StreamResult:
        """Start extracting ``request`` and return its stream immediately.

        Raises:
            ExtractionValidationError: No stream and no URL.
            FetchError: The transport could not open the source.
            SpawnError: The engine could not be started.
        """
        job = ExtractionJob(source=request.source_label)

        try:
            try:
                request.validate()
            except ExtractionValidationError as e:
                plog.step_error(PipelineStage.VALIDATE, "Rejected request", error=e)
                raise
            job.mark_validated()

            job.mark_acquiring()
            with plog.timed_step(PipelineStage.ACQUIRE, f"Acquiring {job.source}", job=job.id):
                source = await request.acquire(self._default_transport)

            process = await self._spawn(job)
        except BaseException as e:
            # Includes cancellation while fetching or spawning; hooks still run.
            job.mark_failed(str(e) or type(e).__name__)
            await self._release_after_failure(request, job)
            raise

        job.mark_spawned()
        result = StreamResult(job, process, chunk_size=self._chunk_size)

        feeder = asyncio.create_task(self._feed_stdin(process, source))
        stderr_tail = asyncio.create_task(self._drain_stderr(process))
        supervisor = asyncio.create_task(
            self._supervise(request, result, process, feeder, stderr_tail)
        )
        self._tasks.add(supervisor)
        supervisor.add_done_callback(self._tasks.discard)

        job.mark_streaming()
        plog.step_start(PipelineStage.STREAM, f"Streaming text for {job.source}", job=job.id, pid=process.pid)
        return result

    # ── Subprocess wiring ───────────────────────────────────────────

    async def _spawn(self, job: ExtractionJob) -> asyncio.subprocess.Process:
        plog.step_start(PipelineStage.SPAWN, f"Starting engine: {self._command[0]}", job=job.id)
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            plog.step_error(PipelineStage.SPAWN, "Engine failed to start", error=e)
            raise SpawnError(f"starting {self._command[0]}: {e}") from e

        plog.detail("Engine running", pid=process.pid)
        return process

    async def _feed_stdin(
        self, process: asyncio.subprocess.Process, source: ByteSource
    ) -> Exception | None:
        """Copy the source into the engine's stdin; return the source's failure, if any."""
        stdin = process.stdin
        try:
            while True:
                chunk = await source.read(self._chunk_size)
                if not chunk:
                    break
                stdin.write(chunk)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The engine stopped reading; its exit status decides the outcome.
            logger.debug("Engine closed stdin early (pid=%s)", process.pid)
        except Exception as e:
            logger.warning("Reading source failed (pid=%s): %s", process.pid, e)
            return e
        finally:
            stdin.close()
        return None

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> str:
        """Consume stderr so the engine never blocks on it; keep the tail."""
        tail = b""
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                break
            tail = (tail + chunk)[-STDERR_TAIL_BYTES:]
        return tail.decode("utf-8", errors="replace").strip()

    async def _wait_for_exit(self, process: asyncio.subprocess.Process) -> tuple[int, bool]:
        """Wait for the engine; returns (returncode, timed_out)."""
        if self._timeout is None:
            return await process.wait(), False
        try:
            return await asyncio.wait_for(process.wait(), self._timeout), False
        except asyncio.TimeoutError:
            _kill(process)
            return await process.wait(), True

    # ── Completion ──────────────────────────────────────────────────

    async def _supervise(
        self,
        request: ExtractionRequest,
        result: StreamResult,
        process: asyncio.subprocess.Process,
        feeder: "asyncio.Task[Exception | None]",
        stderr_tail: "asyncio.Task[str]",
    ) -> None:
        """Wait for the engine, run cleanup, then settle the completion once."""
        job = result.job
        error: ExtractionError | None = None
        returncode: int | None = None

        try:
            returncode, timed_out = await self._wait_for_exit(process)

            if not feeder.done():
                # Engine is gone; a slow source must not hold the run open.
                feeder.cancel()
            await asyncio.wait({feeder})
            feed_error = None if feeder.cancelled() else feeder.result()
            stderr = await stderr_tail

            if timed_out:
                error = EngineError(f"extraction timed out after {self._timeout:g}s", returncode)
            elif result.cancelled:
                error = EngineError("extraction cancelled", returncode)
            elif returncode != 0:
                error = EngineError(f"engine exited with status {returncode}", returncode, stderr)
            elif feed_error is not None:
                error = EngineError(f"reading source: {feed_error}", returncode)
        except asyncio.CancelledError:
            _kill(process)
            error = EngineError("extraction cancelled", returncode)
            raise
        except Exception as e:
            logger.exception("Supervising extraction %s failed", job.id)
            _kill(process)
            error = EngineError(f"supervising engine: {e}", returncode)
        finally:
            error = await self._cleanup(request, job, error)
            self._finish(result, error, returncode)

    async def _cleanup(
        self, request: ExtractionRequest, job: ExtractionJob, error: ExtractionError | None
    ) -> ExtractionError | None:
        """Run the request's hooks; the engine error keeps precedence over a cleanup error."""
        try:
            await request.run_cleanup()
        except CleanupError as e:
            plog.step_error(PipelineStage.CLEANUP, f"Cleanup failed for job {job.id}", error=e)
            if error is None:
                return e
            error.attach_cleanup_error(e)
        return error

    def _finish(
        self, result: StreamResult, error: ExtractionError | None, returncode: int | None
    ) -> None:
        job = result.job
        if error is None:
            job.mark_completed(returncode)
            plog.step_complete(PipelineStage.COMPLETE, f"Extraction {job.id} finished", source=job.source)
        else:
            job.mark_failed(str(error), returncode)
            plog.step_error(PipelineStage.ERROR, f"Extraction {job.id} failed", error=error)
        plog.stats(job=job.id, returncode=returncode, duration_ms=job.duration_ms)
        result._settle(error)

    async def _release_after_failure(self, request: ExtractionRequest, job: ExtractionJob) -> None:
        """Run cleanup after a synchronous failure; the original error stays primary."""
        try:
            await request.run_cleanup()
        except CleanupError as e:
            plog.step_error(PipelineStage.CLEANUP, f"Cleanup after failed job {job.id} also failed", error=e)

    async def shutdown(self) -> None:
        """Wait for in-flight runs to settle (used on application shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
