"""
Notification Service

Sends appointment confirmation and cancellation e-mails to patients via the
Resend HTTP API. Sending is best-effort: senders report failure by returning
False and the caller turns that into a warning, never into a failed booking.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


def mask_email(email: Optional[str]) -> str:
    """Shorten an address for logs: "john.smith@gmail.com" -> "joh***@gmail.com"."""
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    return f"{local[:3]}***@{domain}"


@dataclass
class AppointmentNotice:
    """What a patient is told about an appointment."""

    to: str
    patient_name: str
    doctor_name: str
    date: date
    start_time: str
    end_time: str
    appointment_id: str

    @property
    def formatted_date(self) -> str:
        """Long-form date, e.g. "Friday, March 14, 2025"."""
        return f"{self.date:%A}, {self.date:%B} {self.date.day}, {self.date.year}"


class NotificationSender(Protocol):
    """Anything that can tell a patient about their appointment."""

    async def send_appointment_confirmation(self, notice: AppointmentNotice) -> bool: ...

    async def send_appointment_cancellation(self, notice: AppointmentNotice) -> bool: ...


_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background: %(color)s; color: white; padding: 20px; text-align: center; }
        .content { background: #f9fafb; padding: 20px; }
        .details { background: white; padding: 15px; border-radius: 5px; margin: 15px 0; }
        .footer { text-align: center; padding: 20px; color: #6b7280; font-size: 14px; }
"""


def render_confirmation(notice: AppointmentNotice) -> str:
    """HTML body for a booking or reschedule confirmation."""
    return f"""<!DOCTYPE html>
<html>
<head><style>{_STYLE % {"color": "#2563eb"}}</style></head>
<body>
  <div class="container">
    <div class="header"><h1>Appointment Confirmation</h1></div>
    <div class="content">
      <p>Dear {notice.patient_name},</p>
      <p>Your appointment has been successfully booked. Here are your appointment details:</p>
      <div class="details">
        <p><strong>Appointment ID:</strong> {notice.appointment_id}</p>
        <p><strong>Doctor:</strong> Dr. {notice.doctor_name}</p>
        <p><strong>Date:</strong> {notice.formatted_date}</p>
        <p><strong>Time:</strong> {notice.start_time} - {notice.end_time}</p>
      </div>
      <p>Please arrive 10 minutes before your scheduled time. If you need to cancel or
      reschedule, please contact us at least 24 hours in advance.</p>
      <p>Best regards,<br>The Healthcare Team</p>
    </div>
    <div class="footer"><p>This is an automated message. Please do not reply to this email.</p></div>
  </div>
</body>
</html>"""


def render_cancellation(notice: AppointmentNotice) -> str:
    """HTML body for a cancellation notice."""
    return f"""<!DOCTYPE html>
<html>
<head><style>{_STYLE % {"color": "#dc2626"}}</style></head>
<body>
  <div class="container">
    <div class="header"><h1>Appointment Cancellation</h1></div>
    <div class="content">
      <p>Dear {notice.patient_name},</p>
      <p>Your appointment has been cancelled. Here are the details of the cancelled appointment:</p>
      <div class="details">
        <p><strong>Doctor:</strong> Dr. {notice.doctor_name}</p>
        <p><strong>Date:</strong> {notice.formatted_date}</p>
        <p><strong>Time:</strong> {notice.start_time} - {notice.end_time}</p>
      </div>
      <p>If this was a mistake or you'd like to reschedule, please contact us as soon as possible.</p>
      <p>Best regards,<br>The Healthcare Team</p>
    </div>
    <div class="footer"><p>This is an automated message. Please do not reply to this email.</p></div>
  </div>
</body>
</html>"""


class EmailNotificationSender:
    """
    Resend e-mail sender.

    Resend exposes:
    - POST /emails - Send one message
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize sender.

        Args:
            api_key: Resend API key (defaults to settings)
            base_url: Resend base URL (defaults to settings)
            from_email: Sender address (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_key = api_key or settings.resend_api_key
        self.base_url = base_url or settings.resend_api_url
        self.from_email = from_email or settings.notification_from_email
        self.timeout = timeout or settings.notification_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send_email(self, to: str, subject: str, html: str) -> bool:
        """Send one e-mail.

        Returns:
            True if Resend accepted the message
        """
        client = await self._get_client()

        try:
            response = await client.post(
                "/emails",
                json={
                    "from": self.from_email,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                },
            )
            response.raise_for_status()
            logger.info(f"Email sent successfully to {mask_email(to)}")
            return True

        except httpx.HTTPError as e:
            logger.error(f"Error sending email to {mask_email(to)}: {e}")
            return False

    async def send_appointment_confirmation(self, notice: AppointmentNotice) -> bool:
        return await self.send_email(
            notice.to,
            f"Appointment Confirmation - {notice.appointment_id}",
            render_confirmation(notice),
        )

    async def send_appointment_cancellation(self, notice: AppointmentNotice) -> bool:
        return await self.send_email(
            notice.to,
            "Appointment Cancellation",
            render_cancellation(notice),
        )


class LoggingNotificationSender:
    """Sender used when e-mail is not configured; records the notice in the log."""

    async def send_appointment_confirmation(self, notice: AppointmentNotice) -> bool:
        logger.info(
            f"[notification] confirmation to {mask_email(notice.to)}: "
            f"{notice.formatted_date} {notice.start_time}-{notice.end_time} "
            f"with Dr. {notice.doctor_name} ({notice.appointment_id})"
        )
        return True

    async def send_appointment_cancellation(self, notice: AppointmentNotice) -> bool:
        logger.info(
            f"[notification] cancellation to {mask_email(notice.to)}: "
            f"{notice.formatted_date} {notice.start_time}-{notice.end_time} "
            f"with Dr. {notice.doctor_name} ({notice.appointment_id})"
        )
        return True


# Singleton instance
_sender: Optional[NotificationSender] = None


def get_notification_sender() -> NotificationSender:
    """Get or create the notification sender singleton."""
    global _sender
    if _sender is None:
        settings = get_settings()
        if settings.notifications_enabled and settings.resend_api_key:
            _sender = EmailNotificationSender()
        else:
            logger.warning("RESEND_API_KEY not configured, notifications will only be logged")
            _sender = LoggingNotificationSender()
    return _sender


async def close_notification_sender() -> None:
    """Release the sender's HTTP client, if it has one."""
    global _sender
    if isinstance(_sender, EmailNotificationSender):
        await _sender.close()
    _sender = None
