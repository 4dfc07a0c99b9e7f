"""Source transport infrastructure package."""

from .file_and_http_transport import FileAndHTTPTransport
from .file_transport import FileTransport
from .http_transport import HTTPTransport

__all__ = ["FileAndHTTPTransport", "FileTransport", "HTTPTransport"]
