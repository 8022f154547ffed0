"""
Email client for transactional messages.

Sends email through the Resend HTTP API. Only the completion-code message is
sent by the booking core; templating beyond that is out of scope.
"""

import logging
from dataclasses import dataclass
from html import escape
from typing import Any, cast

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scheduling.errors import UpstreamError
from shared.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionEmailContext:
    """Names shown in the completion-code email."""

    customer_name: str
    service_name: str
    business_name: str


def render_completion_email(code: str, context: CompletionEmailContext) -> tuple[str, str]:
    """
    Build subject and HTML body for a completion-code email.

    Returns:
        Tuple of (subject, html)
    """
    subject = f"Service Completion OTP: {code}"
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h2 style="color: #4F46E5;">Verify Service Completion</h2>'
        f"<p>Hi {escape(context.customer_name)},</p>"
        "<p>Please provide the following OTP to the salon to confirm your service completion:</p>"
        '<div style="background-color: #EEF2FF; padding: 20px; border-radius: 8px; '
        'margin: 20px 0; text-align: center;">'
        f'<h1 style="color: #4F46E5; letter-spacing: 5px; margin: 0;">{escape(code)}</h1>'
        "</div>"
        f"<p><strong>Service:</strong> {escape(context.service_name)}</p>"
        f"<p><strong>Business:</strong> {escape(context.business_name)}</p>"
        "<p>If you did not receive this service, please ignore this email.</p>"
        "</div>"
    )
    return subject, html


class EmailClient:
    """Client for the Resend email API."""

    def __init__(self):
        settings = get_settings()
        self.api_url = settings.EMAIL_API_URL
        self.from_address = settings.EMAIL_FROM_ADDRESS
        self.headers = {
            "Authorization": f"Bearer {settings.RESEND_API_KEY}",
            "Content-Type": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def send_email(self, to: str, subject: str, html: str) -> dict[str, Any]:
        """
        Send one email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            Provider response (contains the message id)

        Raises:
            httpx.HTTPError: After 3 failed attempts
        """
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.api_url,
                    json={
                        "from": self.from_address,
                        "to": [to],
                        "subject": subject,
                        "html": html,
                    },
                    headers=self.headers,
                    timeout=10.0,
                )
                response.raise_for_status()

                body = cast(dict[str, Any], response.json())
                logger.info(f"Email sent | message_id={body.get('id')}")
                return body

            except httpx.HTTPError as e:
                logger.error(f"HTTP error sending email: {e}")
                raise

    async def send_completion_code(
        self, email: str, code: str, context: CompletionEmailContext
    ) -> dict[str, Any]:
        """
        Email the completion code to the customer.

        Raises:
            UpstreamError: If the provider still fails after retries
        """
        subject, html = render_completion_email(code, context)
        try:
            return await self.send_email(email, subject, html)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Email provider rejected completion code email: {e}") from e
