from .extraction import ExtractionRequestSchema

__all__ = [
    "ExtractionRequestSchema",
]
