"""FastAPI application factory and server entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI
from hypercorn.asyncio import serve as hypercorn_serve
from hypercorn.config import Config as ServerConfig

from app.config import Settings, get_settings
from app.infrastructure.dependencies import shutdown_extraction_service
from app.infrastructure.engine import TikaEngine
from app.infrastructure.logging.log_config import setup_logging
from app.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — configure logging, check the engine, drain on shutdown."""
    settings = get_settings()
    setup_logging()

    engine = TikaEngine(java=settings.engine_java, jar_path=settings.engine_jar)
    if not engine.is_available():
        logger.warning(
            "Extraction engine not found (java=%s, jar=%s); extractions will fail to start",
            settings.engine_java,
            settings.engine_jar,
        )

    yield

    # Shutdown
    await shutdown_extraction_service()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


def build_server_config(settings: Settings) -> ServerConfig:
    """Hypercorn settings: HTTP/2 over TLS, or plain HTTP when ``HTTP1`` is set.

    Error trailers need HTTP/2. The plain listener still accepts HTTP/2 with
    prior knowledge (h2c); HTTP/1.1 clients get the body without the trailer.
    """
    config = ServerConfig()
    config.bind = [f"{settings.server_host}:{settings.server_port}"]
    config.errorlog = logging.getLogger("hypercorn.error")
    config.accesslog = logging.getLogger("hypercorn.access")
    if not settings.http1:
        config.keyfile = settings.tls_keyfile
        config.certfile = settings.tls_certfile
    return config


async def serve(
    settings: Settings | None = None,
    shutdown_trigger: Callable[[], Awaitable[object]] | None = None,
) -> None:
    """Serve the app until ``shutdown_trigger`` returns (or SIGINT/SIGTERM)."""
    config = build_server_config(settings or get_settings())
    await hypercorn_serve(app, config, shutdown_trigger=shutdown_trigger)


def run() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    run()
