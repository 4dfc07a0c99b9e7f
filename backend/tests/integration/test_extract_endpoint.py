"""Integration tests for the extraction endpoint, with stand-in engines."""

from tempfile import SpooledTemporaryFile

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from starlette import formparsers

from app.application.services import ExtractionService
from app.config import Settings, get_settings
from app.infrastructure.dependencies import get_extraction_service
from app.infrastructure.transports import FileTransport, HTTPTransport
from app.main import app

PDF_BYTES = b"%PDF-1.4 " + b"x" * 491


def _remote(status_code: int = 200, content: bytes = PDF_BYTES) -> HTTPTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=content)

    return HTTPTransport(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def use_service():
    """Install an ExtractionService (and optionally settings) for the app."""

    def install(service: ExtractionService, settings: Settings | None = None) -> None:
        app.dependency_overrides[get_extraction_service] = lambda: service
        if settings is not None:
            app.dependency_overrides[get_settings] = lambda: settings

    yield install
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Happy paths ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_with_url_streams_text(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "https://example.com/doc.pdf"})

    assert response.status_code == 200
    assert response.content == PDF_BYTES.upper()
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["trailer"] == "X-Tikago-Extras"


@pytest.mark.asyncio
async def test_post_json_body_streams_text(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post(
            "/api/v1/extract",
            json={"url": "https://example.com/doc.pdf", "headers": {"Authorization": ["Bearer t"]}},
        )

    assert response.status_code == 200
    assert response.content == PDF_BYTES.upper()


@pytest.mark.asyncio
async def test_multipart_upload_streams_text(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post(
            "/api/v1/extract",
            files={"file": ("resume.txt", b"uploaded resume", "text/plain")},
        )

    assert response.status_code == 200
    assert response.content == b"UPLOADED RESUME"


@pytest.mark.asyncio
async def test_local_path_read_through_file_transport(use_service, upper_engine, tmp_path):
    (tmp_path / "resume.txt").write_bytes(b"local resume")
    use_service(ExtractionService(upper_engine, FileTransport(tmp_path)))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "./resume.txt"})

    assert response.status_code == 200
    assert response.content == b"LOCAL RESUME"


@pytest.mark.asyncio
async def test_late_engine_failure_still_returns_200(use_service, failing_engine):
    """The status is committed before the engine exits; the error goes to the trailer."""
    use_service(ExtractionService(failing_engine, _remote()))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "https://example.com/doc.pdf"})

    assert response.status_code == 200
    assert response.content == b""


# ── Errors before streaming ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_missing_local_file_is_500(use_service, upper_engine, tmp_path):
    use_service(ExtractionService(upper_engine, FileTransport(tmp_path)))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "./missing.pdf"})

    assert response.status_code == 500
    assert "missing.pdf" in response.text


@pytest.mark.asyncio
async def test_remote_error_status_is_500(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote(status_code=404, content=b"gone")))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "https://example.com/doc.pdf"})

    assert response.status_code == 500
    assert "Status: 404" in response.text


@pytest.mark.asyncio
async def test_spawn_failure_is_500(use_service, tmp_path):
    use_service(ExtractionService([str(tmp_path / "no-engine")], _remote()))

    async with _client() as client:
        response = await client.get("/api/v1/extract", params={"url": "https://example.com/doc.pdf"})

    assert response.status_code == 500
    assert "no-engine" in response.text


@pytest.mark.asyncio
async def test_post_without_body_is_400(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post("/api/v1/extract")

    assert response.status_code == 400
    assert response.text == 'no body passed in for method "POST"'


@pytest.mark.asyncio
async def test_get_without_url_is_400(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.get("/api/v1/extract")

    assert response.status_code == 400
    assert response.text == 'empty "url" field'


@pytest.mark.asyncio
async def test_blank_json_url_is_400(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post("/api/v1/extract", json={"url": "   "})

    assert response.status_code == 400
    assert 'expecting "url"' in response.text


@pytest.mark.asyncio
async def test_malformed_json_is_400(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post("/api/v1/extract", content=b'{"url": 5}')

    assert response.status_code == 400
    assert response.text.startswith("invalid JSON body")


@pytest.mark.asyncio
async def test_json_body_beyond_cap_is_truncated_and_rejected(use_service, upper_engine):
    settings = Settings(max_body_bytes=64)
    use_service(ExtractionService(upper_engine, _remote()), settings)
    long_url = "https://example.com/" + "a" * 200

    async with _client() as client:
        response = await client.post("/api/v1/extract", json={"url": long_url})

    assert response.status_code == 400
    assert response.text.startswith("invalid JSON body")


@pytest.mark.asyncio
async def test_oversized_multipart_is_400(use_service, upper_engine):
    settings = Settings(max_multipart_bytes=256)
    use_service(ExtractionService(upper_engine, _remote()), settings)

    async with _client() as client:
        response = await client.post(
            "/api/v1/extract",
            files={"file": ("big.bin", b"z" * 4096, "application/octet-stream")},
        )

    assert response.status_code == 400
    assert "exceeds 256 bytes" in response.text


@pytest.mark.asyncio
async def test_multipart_without_file_field_is_400(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    async with _client() as client:
        response = await client.post(
            "/api/v1/extract",
            files={"document": ("resume.txt", b"abc", "text/plain")},
        )

    assert response.status_code == 400
    assert response.text == 'no file in multipart field "file"'


# ── Trailers ─────────────────────────────────────────────────────────

async def _call_with_trailer_support(query: bytes) -> list[dict]:
    """Drive the app directly as a server offering the trailers extension."""
    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/api/v1/extract",
        "raw_path": b"/api/v1/extract",
        "root_path": "",
        "query_string": query,
        "headers": [(b"host", b"test")],
        "server": ("test", 80),
        "client": ("127.0.0.1", 50000),
        "extensions": {"http.response.trailers": {}},
    }
    requested = False

    async def receive():
        nonlocal requested
        if not requested:
            requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        return {"type": "http.disconnect"}

    messages = []

    async def send(message):
        messages.append(message)

    await app(scope, receive, send)
    return messages


@pytest.mark.asyncio
async def test_engine_failure_is_sent_in_trailer(use_service, failing_engine):
    use_service(ExtractionService(failing_engine, _remote()))

    messages = await _call_with_trailer_support(b"url=https://example.com/doc.pdf")

    assert messages[0]["type"] == "http.response.start"
    assert messages[0]["status"] == 200
    assert messages[0]["trailers"] is True
    assert messages[-1]["type"] == "http.response.trailers"
    assert messages[-1]["headers"] == [(b"x-tikago-extras", b"engine exited with status 3: boom")]


@pytest.mark.asyncio
async def test_successful_run_sends_empty_trailer(use_service, upper_engine):
    use_service(ExtractionService(upper_engine, _remote()))

    messages = await _call_with_trailer_support(b"url=https://example.com/doc.pdf")

    body = b"".join(m["body"] for m in messages if m["type"] == "http.response.body")
    assert body == PDF_BYTES.upper()
    assert messages[-1] == {
        "type": "http.response.trailers",
        "headers": [],
        "more_trailers": False,
    }


@pytest.mark.asyncio
async def test_streamed_multipart_over_cap_is_400_and_releases_upload(
    use_service, upper_engine, monkeypatch
):
    """Without Content-Length the cap is enforced while parsing; the spooled upload is closed."""
    spooled = []

    class RecordingSpool(SpooledTemporaryFile):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            spooled.append(self)

    monkeypatch.setattr(formparsers, "SpooledTemporaryFile", RecordingSpool)
    settings = Settings(max_multipart_bytes=256)
    use_service(ExtractionService(upper_engine, _remote()), settings)

    boundary = "tikagoboundary"

    async def chunked_body():
        yield (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="file"; filename="big.bin"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode()
        for _ in range(8):
            yield b"z" * 512
        yield f"\r\n--{boundary}--\r\n".encode()

    async with _client() as client:
        response = await client.post(
            "/api/v1/extract",
            content=chunked_body(),
            headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
        )

    assert response.status_code == 400
    assert response.text == "multipart body exceeds 256 bytes"
    assert spooled
    assert all(spool.closed for spool in spooled)
