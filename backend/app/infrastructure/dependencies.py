"""FastAPI dependency injection — wires infrastructure to application layer."""

from app.config import Settings, get_settings
from app.application.interfaces.transport import Transport
from app.application.services import ExtractionService
from app.infrastructure.engine import TikaEngine
from app.infrastructure.transports import FileAndHTTPTransport, HTTPTransport

_extraction_service: ExtractionService | None = None


def build_default_transport(settings: Settings) -> Transport:
    """HTTP(S) only, unless local file sources are enabled."""
    http = HTTPTransport(timeout=settings.fetch_timeout)
    if not settings.local_files_enabled:
        return http
    return FileAndHTTPTransport(
        http=http,
        relative_root=settings.local_files_root or None,
    )


def build_extraction_service(settings: Settings) -> ExtractionService:
    engine = TikaEngine(java=settings.engine_java, jar_path=settings.engine_jar)
    return ExtractionService(
        command=engine.command(),
        default_transport=build_default_transport(settings),
        timeout=settings.extraction_timeout or None,
    )


def get_extraction_service() -> ExtractionService:
    """Provides the process-wide ExtractionService, built on first use."""
    global _extraction_service
    if _extraction_service is None:
        _extraction_service = build_extraction_service(get_settings())
    return _extraction_service


async def shutdown_extraction_service() -> None:
    """Let in-flight extractions settle; called from the application lifespan."""
    global _extraction_service
    if _extraction_service is not None:
        await _extraction_service.shutdown()
        _extraction_service = None
