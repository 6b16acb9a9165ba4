"""
Conversation Flow Manager.

Runs one dialogue turn: given a session and the caller's text, decides the
next step, updates the collected details and picks the reply. Turns never
raise; every branch returns a FlowAction.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.intelligence.intent.classifier import IntentClassifier, get_intent_classifier
from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.session.models import DialogueSession
from app.core.intelligence.session.state import DialogueStep, can_transition
from app.core.intelligence.slots.extractor import SlotExtractor, get_slot_extractor
from app.core.intelligence.slots.types import ExtractionStatus
from app.core.scheduling.response import ResponseGenerator, get_response_generator

logger = logging.getLogger(__name__)


@dataclass
class FlowAction:
    """Action determined by flow manager."""

    next_step: DialogueStep
    message: str
    should_book: bool = False  # Whether to attempt booking
    should_end: bool = False   # Whether to discard the session

    @property
    def is_error(self) -> bool:
        return self.next_step == DialogueStep.ERROR


class DialogueFlow:
    """
    State machine for conversational booking.

    Exit and help are handled before the per-step dispatch. Help never
    changes the step or any collected detail.
    """

    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[SlotExtractor] = None,
        responses: Optional[ResponseGenerator] = None,
    ):
        """Initialize flow manager."""
        self._classifier = classifier or get_intent_classifier()
        self._extractor = extractor or get_slot_extractor()
        self._responses = responses or get_response_generator()

    def process(self, session: DialogueSession, text: str) -> FlowAction:
        """Process caller input and determine next action.

        Args:
            session: Current session (mutated in place)
            text: Caller's transcribed text

        Returns:
            FlowAction with next step and reply
        """
        if session.is_corrupted:
            logger.warning(f"Session {session.session_id} has no doctor, forcing error")
            return self._move(
                session,
                FlowAction(DialogueStep.ERROR, self._responses.session_error(), should_end=True),
            )

        intent = self._classifier.classify(text, session.step.value)

        if intent.intent == Intent.EXIT:
            return self._move(
                session,
                FlowAction(DialogueStep.ENDED, self._responses.session_ended(), should_end=True),
            )

        if intent.intent == Intent.HELP:
            return FlowAction(session.step, self._responses.help(session.step))

        handlers = {
            DialogueStep.NAME: self._handle_name,
            DialogueStep.EMAIL: self._handle_email,
            DialogueStep.EMAIL_CONFIRMATION: self._handle_email_confirmation,
            DialogueStep.PHONE: self._handle_phone,
            DialogueStep.SYMPTOMS: self._handle_symptoms,
            DialogueStep.CONFIRMATION: self._handle_confirmation,
            DialogueStep.COMPLETE: self._handle_complete,
        }
        handler = handlers.get(session.step)
        if handler is None:
            # error/ended sessions are discarded and never reach here
            return self._move(
                session,
                FlowAction(DialogueStep.ERROR, self._responses.session_error(), should_end=True),
            )

        return self._move(session, handler(session, text, intent))

    def _move(self, session: DialogueSession, action: FlowAction) -> FlowAction:
        """Apply the step change."""
        if action.next_step != session.step:
            if not can_transition(session.step, action.next_step):
                logger.error(
                    f"Invalid transition: {session.step.value} -> {action.next_step.value}"
                )
            logger.debug(
                f"Session {session.session_id}: {session.step.value} -> {action.next_step.value}"
            )
        session.step = action.next_step
        return action

    # === Step handlers ===

    def _handle_name(self, session: DialogueSession, text: str, intent: IntentResult) -> FlowAction:
        name = self._extractor.extract_name(text)

        if name.status == ExtractionStatus.EMPTY:
            return FlowAction(DialogueStep.NAME, self._responses.name_not_heard())
        if not name.is_valid:
            return FlowAction(DialogueStep.NAME, self._responses.name_incomplete())

        session.patient_name = name.value
        return FlowAction(DialogueStep.EMAIL, self._responses.ask_email(name.value))

    def _handle_email(self, session: DialogueSession, text: str, intent: IntentResult) -> FlowAction:
        email = self._extractor.extract_email(text)

        if email.is_valid:
            session.patient_email = email.value
            return FlowAction(DialogueStep.PHONE, self._responses.email_accepted(email.value))

        if email.is_suggestion:
            session.patient_email = email.value
            return FlowAction(
                DialogueStep.EMAIL_CONFIRMATION,
                self._responses.confirm_email(email.value),
            )

        return FlowAction(DialogueStep.EMAIL, self._responses.email_not_understood())

    def _handle_email_confirmation(
        self,
        session: DialogueSession,
        text: str,
        intent: IntentResult,
    ) -> FlowAction:
        if intent.is_affirmative:
            return FlowAction(DialogueStep.PHONE, self._responses.email_confirmed())

        if intent.is_negative:
            session.patient_email = None
            return FlowAction(DialogueStep.EMAIL, self._responses.email_retry())

        return FlowAction(
            DialogueStep.EMAIL_CONFIRMATION,
            self._responses.email_confirmation_unclear(),
        )

    def _handle_phone(self, session: DialogueSession, text: str, intent: IntentResult) -> FlowAction:
        phone = self._extractor.extract_phone(text)

        if not phone.is_valid:
            return FlowAction(DialogueStep.PHONE, self._responses.phone_invalid())

        session.patient_phone = phone.value
        return FlowAction(DialogueStep.SYMPTOMS, self._responses.ask_symptoms(phone.value))

    def _handle_symptoms(self, session: DialogueSession, text: str, intent: IntentResult) -> FlowAction:
        symptoms = self._extractor.extract_symptoms(text)

        if not symptoms.is_valid:
            return FlowAction(DialogueStep.SYMPTOMS, self._responses.symptoms_too_short())

        session.symptoms = symptoms.value
        return FlowAction(DialogueStep.CONFIRMATION, self._responses.confirm_details(session))

    def _handle_confirmation(
        self,
        session: DialogueSession,
        text: str,
        intent: IntentResult,
    ) -> FlowAction:
        if intent.is_affirmative:
            return FlowAction(
                DialogueStep.COMPLETE,
                self._responses.booking_in_progress(session.doctor_name),
                should_book=True,
            )

        if intent.is_negative:
            session.reset_collected()
            return FlowAction(DialogueStep.NAME, self._responses.start_over())

        return FlowAction(DialogueStep.CONFIRMATION, self._responses.confirmation_unclear())

    def _handle_complete(self, session: DialogueSession, text: str, intent: IntentResult) -> FlowAction:
        return FlowAction(DialogueStep.COMPLETE, self._responses.already_submitted())


# Singleton
_flow: Optional[DialogueFlow] = None


def get_dialogue_flow() -> DialogueFlow:
    """Get singleton DialogueFlow."""
    global _flow
    if _flow is None:
        _flow = DialogueFlow()
    return _flow
