"""
Intelligence Layer Module

Provides intent classification, patient detail extraction and dialogue
session management for the conversational booking flow.

Usage:
    from app.core.intelligence import (
        classify_intent,
        get_slot_extractor,
        get_session_store,
    )

    # Classify intent
    result = classify_intent("yes that's right", step="email_confirmation")
    print(result.intent)  # Intent.CONFIRMATION

    # Extract details
    email = get_slot_extractor().extract_email("john dot smith at gmail dot com")
    print(email.value)  # "john.smith@gmail.com"

    # Session management
    store = get_session_store()
    session = await store.create(doctor_id="...", doctor_name="Jane Doe")
"""

# Intent Classification
from app.core.intelligence.intent.types import Intent, IntentResult, ConfirmationType
from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    get_intent_classifier,
    classify_intent,
)

# Slot Extraction
from app.core.intelligence.slots.types import ExtractedValue, ExtractionStatus
from app.core.intelligence.slots.extractor import (
    SlotExtractor,
    get_slot_extractor,
    normalize_spoken_email,
)

# Session Management
from app.core.intelligence.session.state import (
    DialogueStep,
    can_transition,
    get_valid_transitions,
    is_terminal_step,
    is_collecting_step,
)
from app.core.intelligence.session.models import DialogueSession
from app.core.intelligence.session.store import SessionStore, get_session_store

__all__ = [
    # Intent
    "Intent",
    "IntentResult",
    "ConfirmationType",
    "IntentClassifier",
    "get_intent_classifier",
    "classify_intent",
    # Slots
    "ExtractedValue",
    "ExtractionStatus",
    "SlotExtractor",
    "get_slot_extractor",
    "normalize_spoken_email",
    # Session State
    "DialogueStep",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_step",
    "is_collecting_step",
    # Session Data
    "DialogueSession",
    "SessionStore",
    "get_session_store",
]
