"""Transactional email through the Resend HTTP API."""

from datetime import datetime
from html import escape

import httpx
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

WELCOME_SUBJECT = "Welcome to Our Healthcare Center"

_WELCOME_TEMPLATE = """\
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; background-color: #f4f4f4;">
  <div style="max-width: 600px; margin: 20px auto; background-color: #ffffff;">
    <div style="background-color: #4F46E5; color: white; padding: 20px; text-align: center;">
      <h1>Welcome to Our Healthcare Center</h1>
    </div>
    <div style="padding: 30px;">
      <h2>Dear {name},</h2>
      <p>Thank you for choosing our healthcare center for your medical needs.</p>
      <div style="background-color: #f8f9fa; padding: 15px; border-left: 4px solid #4F46E5;">
        <h3 style="margin-top: 0;">Your Patient Information</h3>
        <p><strong>Patient ID:</strong> {patient_id}</p>
        <p><strong>Name:</strong> {name}</p>
      </div>
      <p><strong>Important Next Steps:</strong></p>
      <ul>
        <li>Keep your Patient ID handy for all future appointments</li>
        <li>Complete your medical history form during your next visit</li>
        <li>Arrive 15 minutes early for your first appointment</li>
      </ul>
      {contact}
    </div>
    <div style="text-align: center; padding: 20px; color: #666; font-size: 14px;">
      <p>&copy; {year} Healthcare Center. All rights reserved.</p>
      <p>This is an automated message, please do not reply to this email.</p>
    </div>
  </div>
</body>
</html>
"""


def render_welcome_email(name: str, patient_id: str) -> str:
    """Render the HTML body of the patient welcome email."""
    contact = ""
    if settings.clinic_contact_phone:
        phone = escape(settings.clinic_contact_phone)
        contact = f'<p>Questions? Call us at <a href="tel:{phone}">{phone}</a>.</p>'

    return _WELCOME_TEMPLATE.format(
        name=escape(name),
        patient_id=escape(patient_id),
        contact=contact,
        year=datetime.now().year,
    )


class EmailService:
    """Sends clinic emails; failures are logged and reported, never raised."""

    API_URL = "https://api.resend.com/emails"

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._client = http_client

    @property
    def enabled(self) -> bool:
        return settings.email_enabled and bool(settings.resend_api_key)

    async def send_patient_welcome(self, email: str, name: str, patient_id: str) -> bool:
        """
        Send the welcome email to a newly registered patient.

        Returns:
            True if the provider accepted the message, False otherwise
        """
        if not self.enabled:
            logger.info("welcome_email_skipped", patient_id=patient_id, reason="disabled")
            return False

        payload = {
            "from": settings.email_from,
            "to": [email],
            "subject": WELCOME_SUBJECT,
            "html": render_welcome_email(name, patient_id),
        }
        headers = {"Authorization": f"Bearer {settings.resend_api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(self.API_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(self.API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("welcome_email_failed", patient_id=patient_id, error=str(e))
            return False

        if response.status_code >= 400:
            logger.error(
                "welcome_email_rejected",
                patient_id=patient_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return False

        logger.info("welcome_email_sent", patient_id=patient_id)
        return True
