"""Tests for keyword intent classification."""

import pytest

from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    classify_intent,
    find_keyword,
    tokenize,
)
from app.core.intelligence.intent.types import ConfirmationType, Intent, IntentResult


class TestIntentClassifier:
    """Test IntentClassifier."""

    @pytest.fixture
    def classifier(self):
        return IntentClassifier()

    # === Exit and help ===

    @pytest.mark.parametrize("text", ["exit", "I want to QUIT", "please stop."])
    def test_exit_at_any_step(self, classifier, text):
        for step in ("name", "email", "confirmation"):
            assert classifier.classify(text, step).intent == Intent.EXIT

    def test_help(self, classifier):
        result = classifier.classify("Help me please", "phone")

        assert result.intent == Intent.HELP
        assert result.matched == "help"

    def test_exit_wins_over_help(self, classifier):
        assert classifier.classify("help, stop", "name").intent == Intent.EXIT

    def test_keyword_inside_word_ignored(self, classifier):
        result = classifier.classify("I've had a nonstop headache", "symptoms")

        assert result.intent == Intent.PROVIDE_INFO

    # === Collecting steps ===

    def test_collecting_step_is_information(self, classifier):
        result = classifier.classify("yes my name is John Smith", "name")

        assert result.intent == Intent.PROVIDE_INFO
        assert result.confirmation_type is None

    # === Confirmation steps ===

    @pytest.mark.parametrize("text", ["yes", "Yeah that's right", "correct"])
    def test_email_confirmation_yes(self, classifier, text):
        result = classifier.classify(text, "email_confirmation")

        assert result.intent == Intent.CONFIRMATION
        assert result.is_affirmative

    @pytest.mark.parametrize("text", ["no", "that's wrong", "nope"])
    def test_email_confirmation_no(self, classifier, text):
        result = classifier.classify(text, "email_confirmation")

        assert result.is_negative

    def test_confirm_vocabulary(self, classifier):
        assert classifier.classify("book it", "confirmation").is_affirmative
        assert classifier.classify("sure", "confirmation").is_affirmative
        assert classifier.classify("let's start over", "confirmation").is_negative

    def test_confirm_word_not_accepted_for_email(self, classifier):
        result = classifier.classify("proceed", "email_confirmation")

        assert result.intent == Intent.UNCLEAR

    def test_no_does_not_match_know(self, classifier):
        result = classifier.classify("I don't know", "confirmation")

        assert result.intent == Intent.UNCLEAR

    def test_both_yes_and_no_is_unclear(self, classifier):
        result = classifier.classify("yes no", "confirmation")

        assert result.intent == Intent.UNCLEAR
        assert result.confirmation_type is None

    def test_module_helper(self):
        assert classify_intent("yes", "confirmation").is_affirmative


class TestKeywordHelpers:
    """Test whole-word keyword matching."""

    def test_tokenize_lowercases_and_drops_punctuation(self):
        assert tokenize("Yes, PLEASE!") == ["yes", "please"]

    def test_phrase_match(self):
        assert find_keyword(["start", "over", "please"], ["start over"]) == "start over"

    def test_no_match(self):
        assert find_keyword(["restart"], ["start"]) is None


class TestIntentResult:
    """Test IntentResult."""

    def test_to_dict(self):
        result = IntentResult(
            intent=Intent.CONFIRMATION,
            confirmation_type=ConfirmationType.NO,
            matched="no",
        )

        assert result.to_dict() == {
            "intent": "confirmation",
            "confirmation_type": "no",
            "matched": "no",
        }
