"""Intent classification module."""

from .types import Intent, IntentResult, ConfirmationType
from .classifier import (
    IntentClassifier,
    get_intent_classifier,
    classify_intent,
)

__all__ = [
    # Types
    "Intent",
    "IntentResult",
    "ConfirmationType",
    # Classifier
    "IntentClassifier",
    "get_intent_classifier",
    "classify_intent",
]
