"""
Keyword intent classification for dialogue turns.

Matching is done on whole words of the lower-cased utterance, so "stop"
matches "please stop" but not "nonstop", and "no" does not match "know".
"""

import logging
import re
from typing import Iterable, Optional

from .types import ConfirmationType, Intent, IntentResult

logger = logging.getLogger(__name__)


WORD_PATTERN = re.compile(r"[a-z0-9']+")

EXIT_KEYWORDS = ("exit", "quit", "stop")
HELP_KEYWORDS = ("help",)

# Yes/no vocabularies differ per step
CONFIRMATION_KEYWORDS: dict[str, dict[ConfirmationType, tuple[str, ...]]] = {
    "email_confirmation": {
        ConfirmationType.YES: ("yes", "correct", "right", "yeah", "yep"),
        ConfirmationType.NO: ("no", "wrong", "incorrect", "nope"),
    },
    "confirmation": {
        ConfirmationType.YES: ("yes", "confirm", "book", "proceed", "yeah", "yep", "sure"),
        ConfirmationType.NO: ("no", "cancel", "start over", "nope"),
    },
}


def tokenize(text: str) -> list[str]:
    """Lower-case words of an utterance."""
    return WORD_PATTERN.findall(text.lower())


def find_keyword(words: list[str], keywords: Iterable[str]) -> Optional[str]:
    """First keyword (single word or phrase) present as whole words."""
    joined = f" {' '.join(words)} "
    for keyword in keywords:
        if f" {keyword} " in joined:
            return keyword
    return None


class IntentClassifier:
    """
    Deterministic classifier for the booking dialogue.

    Exit and help are recognized at every step. Confirmation steps
    additionally recognize yes/no; anything else is information for the
    current question.
    """

    def classify(self, message: str, step: Optional[str] = None) -> IntentResult:
        """
        Classify an utterance in the context of the current step.

        Args:
            message: Caller's text
            step: Current dialogue step value (e.g. "confirmation")

        Returns:
            IntentResult
        """
        words = tokenize(message)

        matched = find_keyword(words, EXIT_KEYWORDS)
        if matched:
            return IntentResult(intent=Intent.EXIT, matched=matched)

        matched = find_keyword(words, HELP_KEYWORDS)
        if matched:
            return IntentResult(intent=Intent.HELP, matched=matched)

        vocabulary = CONFIRMATION_KEYWORDS.get(step or "")
        if vocabulary is None:
            return IntentResult(intent=Intent.PROVIDE_INFO)

        yes = find_keyword(words, vocabulary[ConfirmationType.YES])
        no = find_keyword(words, vocabulary[ConfirmationType.NO])

        if yes and no:
            logger.debug(f"Ambiguous confirmation ({yes!r} and {no!r})")
            return IntentResult(intent=Intent.UNCLEAR)
        if yes:
            return IntentResult(
                intent=Intent.CONFIRMATION,
                confirmation_type=ConfirmationType.YES,
                matched=yes,
            )
        if no:
            return IntentResult(
                intent=Intent.CONFIRMATION,
                confirmation_type=ConfirmationType.NO,
                matched=no,
            )
        return IntentResult(intent=Intent.UNCLEAR)


# Singleton
_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get singleton IntentClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = IntentClassifier()
    return _classifier


def classify_intent(message: str, step: Optional[str] = None) -> IntentResult:
    """Convenience function to classify intent."""
    return get_intent_classifier().classify(message, step)
