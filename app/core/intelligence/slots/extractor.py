"""
Rule-based extraction of patient details from transcribed speech.

Extracts: full name, e-mail (with spoken-form normalization), phone
number (digits or spoken digits), symptoms.
"""

import logging
import re
from typing import Optional

from .types import ExtractedValue, ExtractionStatus

logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Multi-word provider names a transcriber tends to split
SPOKEN_PROVIDER_PHRASES = (
    (re.compile(r"\bg\s+(?:male|mail)\b"), "gmail"),
    (re.compile(r"\bhot\s+(?:male|mail)\b"), "hotmail"),
    (re.compile(r"\bout\s+look\b"), "outlook"),
)

# Whole spoken tokens and what they stand for in an address
SPOKEN_EMAIL_TOKENS = {
    "at": "@",
    "add": "@",
    "act": "@",
    "hat": "@",
    "that": "@",
    "dot": ".",
    "doht": ".",
    "dought": ".",
    "dart": ".",
    "yahu": "yahoo",
    "yahuu": "yahoo",
    "underscore": "_",
    "dash": "-",
    "hyphen": "-",
}

DOT_TOKENS = {"dot", "doht", "dought", "dart"}

EMAIL_PREAMBLE = re.compile(r"^(?:my\s+)?(?:email|e-mail)(?:\s+address)?\s+is\s+")

SPOKEN_DIGITS = {
    "zero": "0",
    "oh": "0",
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
}

MIN_PHONE_DIGITS = 10
MIN_SYMPTOMS_LENGTH = 5


def _apply_provider_phrases(text: str) -> str:
    for pattern, replacement in SPOKEN_PROVIDER_PHRASES:
        text = pattern.sub(replacement, text)
    return text


def normalize_spoken_email(text: str) -> str:
    """
    Turn a spoken e-mail into address form.

    >>> normalize_spoken_email("john dot smith at gmail dot com")
    'john.smith@gmail.com'
    >>> normalize_spoken_email("mary at hot mail dot com")
    'mary@hotmail.com'
    """
    text = EMAIL_PREAMBLE.sub("", text.strip().lower())
    text = _apply_provider_phrases(text)
    return "".join(SPOKEN_EMAIL_TOKENS.get(token, token) for token in text.split())


def suggest_email(text: str) -> Optional[str]:
    """
    Best-effort correction for an address spoken without "at".

    The first word is taken as the local part and the rest as the domain,
    e.g. "johnsmith gmail dot com" -> "johnsmith@gmail.com".
    """
    text = _apply_provider_phrases(EMAIL_PREAMBLE.sub("", text.strip().lower()))
    parts = text.split()
    if len(parts) < 2:
        return None

    domain = "".join(
        "." if part in DOT_TOKENS else SPOKEN_EMAIL_TOKENS.get(part, part)
        for part in parts[1:]
    )
    candidate = f"{parts[0]}@{domain}"
    return candidate if EMAIL_PATTERN.match(candidate) else None


def extract_digits(text: str) -> str:
    """Digits from typed or spoken numbers ("five five five 1234" -> "5551234")."""
    digits = []
    for token in re.split(r"[\s,.\-()]+", text.lower()):
        if token in SPOKEN_DIGITS:
            digits.append(SPOKEN_DIGITS[token])
        else:
            digits.append(re.sub(r"\D", "", token))
    return "".join(digits)


class SlotExtractor:
    """Extracts one patient detail per dialogue step."""

    def extract_name(self, text: str) -> ExtractedValue:
        """Full name: at least first and last name."""
        parts = text.split()
        if len(text.strip()) < 2:
            return ExtractedValue(status=ExtractionStatus.EMPTY)
        if len(parts) < 2:
            return ExtractedValue.invalid(text.strip())
        return ExtractedValue.valid(" ".join(parts))

    def extract_email(self, text: str) -> ExtractedValue:
        """E-mail, normalized from speech; may come back as a suggestion."""
        normalized = normalize_spoken_email(text)
        logger.debug(f"Processed email input: {normalized[:3]}***")

        if EMAIL_PATTERN.match(normalized):
            return ExtractedValue.valid(normalized)

        suggestion = suggest_email(text) if "@" not in normalized else None
        if suggestion:
            return ExtractedValue(
                status=ExtractionStatus.SUGGESTED,
                value=suggestion,
                normalized=normalized,
            )
        return ExtractedValue.invalid(normalized)

    def extract_phone(self, text: str) -> ExtractedValue:
        """Phone with at least 10 digits; exactly 10 are formatted NNN-NNN-NNNN."""
        digits = extract_digits(text)
        if len(digits) < MIN_PHONE_DIGITS:
            return ExtractedValue.invalid(digits)
        if len(digits) == MIN_PHONE_DIGITS:
            return ExtractedValue.valid(f"{digits[:3]}-{digits[3:6]}-{digits[6:]}", digits)
        return ExtractedValue.valid(digits)

    def extract_symptoms(self, text: str) -> ExtractedValue:
        """Free-text reason for the visit, stored verbatim."""
        symptoms = text.strip()
        if len(symptoms) < MIN_SYMPTOMS_LENGTH:
            return ExtractedValue.invalid(symptoms)
        return ExtractedValue.valid(symptoms)


# Singleton
_extractor: Optional[SlotExtractor] = None


def get_slot_extractor() -> SlotExtractor:
    """Get singleton SlotExtractor."""
    global _extractor
    if _extractor is None:
        _extractor = SlotExtractor()
    return _extractor
