"""Dialogue state machine."""

from enum import Enum
from typing import Set


class DialogueStep(str, Enum):
    """Steps of the conversational booking flow."""

    # Information gathering
    NAME = "name"
    EMAIL = "email"
    EMAIL_CONFIRMATION = "email_confirmation"
    PHONE = "phone"
    SYMPTOMS = "symptoms"

    # Confirmation
    CONFIRMATION = "confirmation"

    # Booking triggered
    COMPLETE = "complete"

    # Side states
    ERROR = "error"
    ENDED = "ended"


# Valid step transitions (self-loops are re-prompts)
VALID_TRANSITIONS: dict[DialogueStep, Set[DialogueStep]] = {
    DialogueStep.NAME: {
        DialogueStep.NAME,
        DialogueStep.EMAIL,
    },
    DialogueStep.EMAIL: {
        DialogueStep.EMAIL,
        DialogueStep.EMAIL_CONFIRMATION,
        DialogueStep.PHONE,
    },
    DialogueStep.EMAIL_CONFIRMATION: {
        DialogueStep.EMAIL_CONFIRMATION,
        DialogueStep.EMAIL,
        DialogueStep.PHONE,
    },
    DialogueStep.PHONE: {
        DialogueStep.PHONE,
        DialogueStep.SYMPTOMS,
    },
    DialogueStep.SYMPTOMS: {
        DialogueStep.SYMPTOMS,
        DialogueStep.CONFIRMATION,
    },
    DialogueStep.CONFIRMATION: {
        DialogueStep.CONFIRMATION,
        DialogueStep.COMPLETE,
        DialogueStep.NAME,  # Caller said no, start over
    },
    DialogueStep.COMPLETE: {
        DialogueStep.COMPLETE,
    },
    DialogueStep.ERROR: set(),
    DialogueStep.ENDED: set(),
}

# Exit and corruption are allowed from every non-terminal step
for _step, _targets in VALID_TRANSITIONS.items():
    if _targets:
        _targets.update({DialogueStep.ENDED, DialogueStep.ERROR})


def can_transition(from_step: DialogueStep, to_step: DialogueStep) -> bool:
    """Check if a step transition is valid."""
    return to_step in VALID_TRANSITIONS.get(from_step, set())


def get_valid_transitions(step: DialogueStep) -> Set[DialogueStep]:
    """Get all valid transitions from a step."""
    return VALID_TRANSITIONS.get(step, set())


def is_terminal_step(step: DialogueStep) -> bool:
    """Check if step is terminal (session is discarded)."""
    return step in {
        DialogueStep.ERROR,
        DialogueStep.ENDED,
    }


def is_collecting_step(step: DialogueStep) -> bool:
    """Check if step collects a patient detail."""
    return step in {
        DialogueStep.NAME,
        DialogueStep.EMAIL,
        DialogueStep.EMAIL_CONFIRMATION,
        DialogueStep.PHONE,
        DialogueStep.SYMPTOMS,
    }
