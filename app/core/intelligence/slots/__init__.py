"""Slot extraction module."""

from .types import ExtractedValue, ExtractionStatus
from .extractor import (
    SlotExtractor,
    get_slot_extractor,
    normalize_spoken_email,
    suggest_email,
    extract_digits,
)

__all__ = [
    # Types
    "ExtractedValue",
    "ExtractionStatus",
    # Extractor
    "SlotExtractor",
    "get_slot_extractor",
    "normalize_spoken_email",
    "suggest_email",
    "extract_digits",
]
