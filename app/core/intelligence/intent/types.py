"""Intent types for dialogue turns."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """What a caller's utterance means for the dialogue."""

    # Cross-cutting commands, checked before the step dispatch
    EXIT = "exit"                # exit / quit / stop
    HELP = "help"                # Guidance for the current step

    # Conversation flow
    CONFIRMATION = "confirmation"  # Yes/no answer at a confirmation step
    PROVIDE_INFO = "provide_info"  # Answering the current question

    # Fallback
    UNCLEAR = "unclear"          # Confirmation step, neither (or both) yes and no


class ConfirmationType(str, Enum):
    """Types of confirmation responses."""

    YES = "yes"  # Affirmative
    NO = "no"    # Negative


@dataclass
class IntentResult:
    """Result of intent classification."""

    intent: Intent

    # For confirmation intent
    confirmation_type: Optional[ConfirmationType] = None

    # Keyword that decided the intent, for logging
    matched: Optional[str] = None

    @property
    def is_affirmative(self) -> bool:
        return self.confirmation_type == ConfirmationType.YES

    @property
    def is_negative(self) -> bool:
        return self.confirmation_type == ConfirmationType.NO

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "intent": self.intent.value,
            "confirmation_type": self.confirmation_type.value if self.confirmation_type else None,
            "matched": self.matched,
        }
