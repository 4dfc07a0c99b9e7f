"""Extraction API controller — turns inbound requests into text streams.

Accepted inputs, checked in this order:
    1. multipart/form-data with the document in the ``file`` field
    2. a JSON body: {"url": "...", "headers": {"Name": ["value"]}}
    3. GET with no body: ?url=...
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from app.application.schemas import ExtractionRequestSchema
from app.application.services import ExtractionRequest, ExtractionService
from app.config import Settings, get_settings
from app.domain.exceptions import ExtractionValidationError, FetchError, SpawnError
from app.infrastructure.dependencies import get_extraction_service
from app.presentation.api.streaming import ExtractionStreamingResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Extraction"])


class IngressError(Exception):
    """The inbound request does not describe a usable source."""


# ── Helpers ──────────────────────────────────────────────────────────

async def _read_capped_body(request: Request, limit: int) -> bytes:
    """Read at most ``limit`` bytes of the body; anything beyond is dropped."""
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk[: limit - len(body)])
        if len(body) >= limit:
            break
    return bytes(body)


async def _capped_stream(request: Request, limit: int):
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise MultiPartException(f"multipart body exceeds {limit} bytes")
        yield chunk


async def _parse_multipart(request: Request, settings: Settings) -> ExtractionRequest:
    """Build a request around the uploaded file; the form's close is its cleanup."""
    limit = settings.max_multipart_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise IngressError(f"multipart body exceeds {limit} bytes")

    parser = MultiPartParser(request.headers, _capped_stream(request, limit), max_files=1)
    try:
        form = await parser.parse()
    except MultiPartException as e:
        # The parser has already closed any spooled upload files.
        raise IngressError(e.message) from e
    except KeyError as e:
        raise IngressError("multipart body without boundary") from e

    upload = form.get(settings.multipart_file_field)
    if not isinstance(upload, UploadFile):
        await form.close()
        raise IngressError(f'no file in multipart field "{settings.multipart_file_field}"')

    headers = {name: upload.headers.getlist(name) for name in upload.headers.keys()}
    extraction_request = ExtractionRequest.from_stream(upload, closer=upload.close, headers=headers)
    extraction_request.set_cleanup(form.close, name="multipart-form")
    return extraction_request


async def parse_extraction_request(request: Request, settings: Settings) -> ExtractionRequest:
    """Translate an inbound HTTP request into an ExtractionRequest.

    Raises:
        IngressError: Oversized multipart, empty body, or malformed JSON.
    """
    # Content-Type may carry a boundary: "multipart/form-data; boundary=----6c9a36cd"
    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        return await _parse_multipart(request, settings)

    blob = await _read_capped_body(request, settings.max_body_bytes)
    if not blob:
        if request.method != "GET":
            raise IngressError(f'no body passed in for method "{request.method}"')
        url = request.query_params.get("url", "").strip()
        if not url:
            raise IngressError('empty "url" field')
        return ExtractionRequest.from_url(url)

    try:
        payload = ExtractionRequestSchema.model_validate_json(blob)
    except ValidationError as e:
        raise IngressError(f"invalid JSON body: {e.errors()[0]['msg']}") from e
    return ExtractionRequest.from_url(payload.url, headers=payload.headers)


# ── Endpoints ────────────────────────────────────────────────────────

@router.api_route("/extract", methods=["GET", "POST"], response_model=None)
async def extract(
    request: Request,
    settings: Settings = Depends(get_settings),
    service: ExtractionService = Depends(get_extraction_service),
) -> Response:
    """Stream the plain text of a document given by upload, JSON body, or ?url=.

    Errors found before streaming starts come back as plain-text 4xx/5xx
    bodies; errors found later arrive in the declared trailer.
    """
    try:
        extraction_request = await parse_extraction_request(request, settings)
    except IngressError as e:
        return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)

    try:
        result = await service.extract(extraction_request)
    except ExtractionValidationError as e:
        return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)
    except (FetchError, SpawnError) as e:
        logger.warning("Extraction of %s failed: %s", extraction_request.source_label, e)
        return PlainTextResponse(str(e), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return ExtractionStreamingResponse(result, trailer_name=settings.error_trailer_header)
