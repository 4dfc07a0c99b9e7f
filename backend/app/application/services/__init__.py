from .extraction_request import ExtractionRequest
from .extraction_service import ExtractionService
from .stream_result import StreamResult

__all__ = [
    "ExtractionRequest",
    "ExtractionService",
    "StreamResult",
]
