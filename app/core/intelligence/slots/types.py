"""Slot types for patient detail extraction."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExtractionStatus(str, Enum):
    """How well an utterance filled a slot."""

    VALID = "valid"          # Accepted as-is
    SUGGESTED = "suggested"  # Auto-corrected; caller must confirm
    INVALID = "invalid"      # Re-prompt
    EMPTY = "empty"          # Nothing usable was said


@dataclass
class ExtractedValue:
    """A single patient detail pulled out of an utterance."""

    status: ExtractionStatus
    value: Optional[str] = None

    # Intermediate form, e.g. the voice-normalized e-mail, for logging
    normalized: str = ""

    @property
    def is_valid(self) -> bool:
        return self.status == ExtractionStatus.VALID

    @property
    def is_suggestion(self) -> bool:
        return self.status == ExtractionStatus.SUGGESTED

    @classmethod
    def valid(cls, value: str, normalized: str = "") -> "ExtractedValue":
        return cls(status=ExtractionStatus.VALID, value=value, normalized=normalized or value)

    @classmethod
    def invalid(cls, normalized: str = "") -> "ExtractedValue":
        return cls(status=ExtractionStatus.INVALID, normalized=normalized)

    def to_dict(self) -> dict:
        """Convert to dict, excluding None values."""
        result = {"status": self.status.value}
        if self.value:
            result["value"] = self.value
        if self.normalized:
            result["normalized"] = self.normalized
        return result
