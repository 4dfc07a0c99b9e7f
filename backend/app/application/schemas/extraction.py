"""Pydantic schemas for the extraction API."""

from pydantic import BaseModel


class ExtractionRequestSchema(BaseModel):
    """JSON body of a URL extraction request."""
    url: str = ""
    headers: dict[str, list[str]] = {}
