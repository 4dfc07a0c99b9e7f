"""Domain-specific exceptions — framework-independent."""


class ExtractionError(Exception):
    """Base class for every failure of an extraction run.

    ``cleanup_error`` is set when releasing the source also failed after
    the primary error had already been decided.
    """

    def __init__(self, message: str):
        self.message = message
        self.cleanup_error: "CleanupError | None" = None
        super().__init__(message)

    def attach_cleanup_error(self, error: "CleanupError") -> None:
        """Record a secondary cleanup failure on this error."""
        self.cleanup_error = error
        self.message = f"{self.message} (cleanup: {error.message})"
        self.args = (self.message,)


class ExtractionValidationError(ExtractionError):
    """Raised when a request carries neither an inline stream nor a URL."""


class FetchError(ExtractionError):
    """Raised when a transport cannot produce the source bytes."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class SpawnError(ExtractionError):
    """Raised when the extraction engine process cannot be started."""


class EngineError(ExtractionError):
    """The engine exited non-zero, was stopped, or its input failed mid-stream."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class CleanupError(ExtractionError):
    """One or more cleanup hooks failed; the message is the last failure's."""

    def __init__(self, failures: list[Exception]):
        self.failures = failures
        last = failures[-1]
        super().__init__(str(last) or type(last).__name__)
