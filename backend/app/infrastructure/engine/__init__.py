"""Extraction engine infrastructure package."""

from .tika_engine import TikaEngine

__all__ = ["TikaEngine"]
