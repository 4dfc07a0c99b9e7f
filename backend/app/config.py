from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Tikago Extraction API"
    app_version: str = "0.1.0"
    app_env: str = "development"

    # Server (hypercorn; HTTP/2 over TLS unless http1 is set)
    server_host: str = "0.0.0.0"
    server_port: int = 8899
    http1: bool = False
    tls_keyfile: str = "./keys/key.pem"
    tls_certfile: str = "./keys/cert.pem"

    # Extraction engine (Apache Tika app)
    engine_java: str = "java"
    engine_jar: str = str(_BACKEND_DIR / "engine" / "tika-app" / "target" / "tika-app.jar")
    extraction_timeout: float = 0.0  # seconds, 0 disables

    # Source fetching
    fetch_timeout: float = 30.0
    local_files_enabled: bool = False
    local_files_root: str = ""  # empty → process working directory

    # Ingress limits
    max_body_bytes: int = 1 << 10
    max_multipart_bytes: int = 1 << 20
    multipart_file_field: str = "file"
    error_trailer_header: str = "X-Tikago-Extras"

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_server: str = "INFO"           # hypercorn.error / hypercorn.access
    log_level_pipeline: str = "INFO"         # ExtractionPipeline stages
    log_level_transport: str = "INFO"        # source transports

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
