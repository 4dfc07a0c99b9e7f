from .transport import AcquiredSource, ByteSource, CleanupHook, HeaderMap, Transport

__all__ = [
    "AcquiredSource",
    "ByteSource",
    "CleanupHook",
    "HeaderMap",
    "Transport",
]
