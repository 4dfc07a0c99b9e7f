from .extraction_job import ExtractionJob, ExtractionState

__all__ = [
    "ExtractionJob",
    "ExtractionState",
]
