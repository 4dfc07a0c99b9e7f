"""Domain entity for a single extraction run and its lifecycle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ExtractionState(str, Enum):
    """Lifecycle states of an extraction run."""

    CREATED = "created"
    VALIDATED = "validated"
    ACQUIRING = "acquiring"
    SPAWNED = "spawned"
    STREAMING = "streaming"
    COMPLETED = "completed"


@dataclass
class ExtractionJob:
    """Tracks one pass of a request through the extraction pipeline.

    ``COMPLETED`` is terminal; ``succeeded`` tells success from failure.
    """

    source: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: ExtractionState = ExtractionState.CREATED
    succeeded: bool | None = None
    error_message: str | None = None
    returncode: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def mark_validated(self) -> None:
        self.state = ExtractionState.VALIDATED

    def mark_acquiring(self) -> None:
        self.state = ExtractionState.ACQUIRING

    def mark_spawned(self) -> None:
        """Transition to spawned once the engine process is running."""
        self.state = ExtractionState.SPAWNED
        self.started_at = datetime.now(timezone.utc)

    def mark_streaming(self) -> None:
        self.state = ExtractionState.STREAMING

    def mark_completed(self, returncode: int | None = None) -> None:
        """Transition to the terminal state with a successful outcome."""
        self.state = ExtractionState.COMPLETED
        self.succeeded = True
        self.returncode = returncode
        self.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, error: str, returncode: int | None = None) -> None:
        """Transition to the terminal state with a failed outcome."""
        self.state = ExtractionState.COMPLETED
        self.succeeded = False
        self.error_message = error
        self.returncode = returncode
        self.completed_at = datetime.now(timezone.utc)

    @property
    def duration_ms(self) -> int | None:
        if self.completed_at is None:
            return None
        return int((self.completed_at - self.created_at).total_seconds() * 1000)
