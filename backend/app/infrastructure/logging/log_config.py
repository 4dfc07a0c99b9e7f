"""Logging setup for the extraction service.

Levels are set per category from Settings, so the HTTP client and server
access logs can be quieted while pipeline events stay visible:

    LOG_LEVEL            root logger
    LOG_LEVEL_HTTP       httpx / httpcore (source downloads)
    LOG_LEVEL_SERVER     hypercorn error and access logs
    LOG_LEVEL_PIPELINE   validate → acquire → spawn → stream → cleanup events
    LOG_LEVEL_TRANSPORT  file and HTTP transports
"""

import logging
import sys

from app.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"

LOG_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("log_level_http", ("httpx", "httpcore")),
    ("log_level_server", ("hypercorn.error", "hypercorn.access")),
    ("log_level_pipeline", ("ExtractionPipeline", "app.application.services")),
    ("log_level_transport", ("app.infrastructure.transports",)),
)


def setup_logging(settings: Settings | None = None) -> None:
    """Apply the configured levels; adds a stderr handler only if none exists."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    levels = {}
    for field, logger_names in LOG_CATEGORIES:
        level = _parse_level(getattr(settings, field, "INFO"))
        levels[field] = logging.getLevelName(level)
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug("Log levels: root=%s %s", settings.log_level, levels)


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
