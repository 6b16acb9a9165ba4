"""
Response Generator for voice booking.

Every message the dialogue speaks back to the caller, as templates.
"""

import logging
from datetime import date
from typing import Optional

from app.core.intelligence.session.models import DialogueSession
from app.core.intelligence.session.state import DialogueStep

logger = logging.getLogger(__name__)


HELP_MESSAGES = {
    DialogueStep.NAME: (
        "Please tell me your full name as it appears on your identification. "
        "For example: 'John Smith'"
    ),
    DialogueStep.EMAIL: (
        "Please provide your email address where we can send confirmation details. "
        "For example: 'john.smith@example.com' or say 'john dot smith at gmail dot com'"
    ),
    DialogueStep.EMAIL_CONFIRMATION: (
        "Please say 'YES' if the email I read back is correct, "
        "or 'NO' to say your email address again."
    ),
    DialogueStep.PHONE: (
        "Please provide your phone number with area code. You can say it with spaces "
        "or dashes. For example: '555-123-4567'"
    ),
    DialogueStep.SYMPTOMS: (
        "Please describe any symptoms or the reason for your visit. This helps the doctor "
        "prepare for your appointment. For example: 'I have a fever and cough for three days'"
    ),
    DialogueStep.CONFIRMATION: (
        "Please say 'YES' to confirm your appointment or 'NO' to start over."
    ),
}

DEFAULT_HELP = (
    "I'm here to help you book an appointment. Just answer my questions one by one. "
    "You can say 'HELP' at any time for assistance."
)


def long_date(value: date) -> str:
    """Long-form date, e.g. "Friday, March 14, 2025"."""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


class ResponseGenerator:
    """Template responses for the conversational booking flow."""

    # === Session lifecycle ===

    def welcome(self, doctor_name: str, specialization: Optional[str] = None) -> str:
        """Greeting spoken when a session starts."""
        if specialization:
            return (
                f"Hello! I'll help you book an appointment with Dr. {doctor_name}, "
                f"a {specialization}. Please tell me your full name."
            )
        return (
            f"Hello! I'll help you book an appointment with Dr. {doctor_name}. "
            f"Please tell me your full name."
        )

    def help(self, step: DialogueStep) -> str:
        """Guidance for the current step."""
        return HELP_MESSAGES.get(step, DEFAULT_HELP)

    def session_ended(self) -> str:
        return "Voice booking session ended. Feel free to use the form booking if you'd like to continue."

    def session_error(self) -> str:
        return "I'm having trouble with this session. Please restart the voice booking."

    # === Name ===

    def name_not_heard(self) -> str:
        return "I didn't catch that. Could you please tell me your full name?"

    def name_incomplete(self) -> str:
        return "Please provide your full name (first and last name)."

    def ask_email(self, patient_name: str) -> str:
        return f"Nice to meet you, {patient_name}. What's your email address?"

    # === Email ===

    def email_not_understood(self) -> str:
        return (
            "I'm having trouble understanding the email. Please say it slowly and clearly, "
            "like: 'john dot doe at gmail dot com'"
        )

    def confirm_email(self, suggestion: str) -> str:
        return (
            f"I think you meant {suggestion}. Is that correct? "
            f"Say 'YES' to continue or 'NO' to correct it."
        )

    def email_accepted(self, email: str) -> str:
        return f"Great! I have your email as {email}. Now what's your phone number?"

    def email_confirmed(self) -> str:
        return "Perfect! Now what's your phone number?"

    def email_retry(self) -> str:
        return "Okay, let's try again. What's your email address?"

    def email_confirmation_unclear(self) -> str:
        return "Please say 'YES' if the email is correct, or 'NO' to enter it again."

    # === Phone ===

    def phone_invalid(self) -> str:
        return (
            "I need a valid phone number with at least 10 digits. "
            "Please say your phone number again."
        )

    def ask_symptoms(self, phone: str) -> str:
        return (
            f"Thank you! I have your phone number as {phone}. Now, please describe "
            f"your symptoms or the reason for your visit."
        )

    # === Symptoms and confirmation ===

    def symptoms_too_short(self) -> str:
        return (
            "Please describe your symptoms in a bit more detail so the doctor can "
            "better prepare for your visit."
        )

    def confirm_details(self, session: DialogueSession) -> str:
        """Read back everything collected before booking."""
        lines = [
            "Let me confirm your details:",
            f"Name: {session.patient_name}",
            f"Email: {session.patient_email}",
            f"Phone: {session.patient_phone}",
            f"Symptoms: {session.symptoms}",
            f"Doctor: Dr. {session.doctor_name}",
            "",
            "Say 'YES' to confirm and book your appointment, or 'NO' to start over.",
        ]
        return "\n".join(lines)

    def confirmation_unclear(self) -> str:
        return "Please say 'YES' to confirm and book your appointment, or 'NO' to start over."

    def start_over(self) -> str:
        return "Okay, let's start over. What's your full name?"

    def booking_in_progress(self, doctor_name: str) -> str:
        return (
            f"Great! I'm booking your appointment with Dr. {doctor_name} "
            f"for the next available slot."
        )

    def already_submitted(self) -> str:
        return (
            "Your booking request has already been submitted. "
            "If it didn't go through, please use the form booking instead."
        )

    # === Booking outcome ===

    def booking_confirmed(
        self,
        doctor_name: str,
        appointment_date: date,
        start_time: str,
        end_time: str,
    ) -> str:
        """Spoken after the ledger confirms the booking."""
        return (
            f"Appointment booked successfully! You're seeing Dr. {doctor_name} on "
            f"{long_date(appointment_date)} from {start_time} to {end_time}. "
            f"You will receive a confirmation email shortly. "
            f"Thank you for using voice booking!"
        )

    def booking_failed(self, reason: str) -> str:
        """Spoken when the final booking call fails."""
        return (
            f"Sorry, I couldn't complete the booking: {reason}. "
            f"Please try the form booking instead."
        )


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
