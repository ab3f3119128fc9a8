"""
Signer Notification Service
===========================

Sends the "thanks for signing" confirmation email.

WHAT: Builds the confirmation email and hands it to a mail transport
WHY: Signers get a receipt plus a link they can forward to friends; the
     forward link carries their member token so the friends' signatures
     are credited to them.

CONSTRAINTS:
    - Exactly one send attempt per call.
    - Never raises: transport failures come back as
      NotificationResult(success=False, error=<transport message>).

Related files:
    - app/services/signature_service.py: Calls send_confirmation()
    - app/deps.py: RESEND_API_KEY / RESEND_FROM_EMAIL / SITE_URL
"""

import html
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import resend

from app.models import Signature
from app.services.token_service import TokenCodec
from app.telemetry.sentry import capture_exception

logger = logging.getLogger(__name__)


# =============================================================================
# EMAIL TEMPLATE
# =============================================================================

def _build_confirmation_email(
    signer_name: str,
    petition_title: str,
    petition_url: str,
    forward_url: str,
) -> tuple[str, str, str]:
    """
    Build subject, plain text and HTML bodies for a confirmation email.

    Returns:
        (subject, text, html)
    """
    subject = f"Thanks for signing: {petition_title}"

    text = (
        f"Hi {signer_name},\n\n"
        f"Thank you for signing \"{petition_title}\".\n\n"
        f"Every signature counts, and so does every friend you bring along. "
        f"Forward this link to people who care:\n{forward_url}\n\n"
        f"You can see the petition here: {petition_url}\n"
    )

    safe_name = html.escape(signer_name)
    safe_title = html.escape(petition_title)
    html_body = f"""\
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 560px;">
  <p>Hi {safe_name},</p>
  <p>Thank you for signing <strong>{safe_title}</strong>.</p>
  <p>Every signature counts, and so does every friend you bring along.</p>
  <p><a href="{html.escape(forward_url)}">Share this petition with your friends</a></p>
  <p style="color: #6b7280; font-size: 13px;">
    <a href="{html.escape(petition_url)}">View the petition</a>
  </p>
</div>
"""
    return subject, text, html_body


# =============================================================================
# TRANSPORTS
# =============================================================================

class MailTransport(ABC):
    """Outbound mail interface. `send` returns a message id or raises."""

    @abstractmethod
    def send(self, to: List[str], subject: str, text: str, html: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError


class ResendMailTransport(MailTransport):
    """
    Mail transport backed by Resend.

    Without an API key the email is logged instead of sent, which keeps
    local development working without credentials.
    """

    def __init__(self, api_key: Optional[str], from_email: str):
        self.api_key = api_key
        self.from_email = from_email
        if api_key:
            resend.api_key = api_key

    def send(self, to: List[str], subject: str, text: str, html: Optional[str] = None) -> Optional[str]:
        if not self.api_key:
            logger.warning(f"[NotificationService] Resend not configured, would send: {subject} to {to}")
            return f"mock-{uuid.uuid4()}"

        params = {
            "from": self.from_email,
            "to": to,
            "subject": subject,
            "text": text,
        }
        if html:
            params["html"] = html

        response = resend.Emails.send(params)
        return response.get("id") if isinstance(response, dict) else getattr(response, "id", None)


# =============================================================================
# DISPATCHER
# =============================================================================

@dataclass
class NotificationResult:
    """
    Result of sending a notification.

    Attributes:
        success: Whether the email was handed to the transport
        message_id: Provider message ID if successful
        error: Transport failure message if not
        recipients: Addresses the email was sent to
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    recipients: Optional[List[str]] = None


class NotificationDispatcher:
    """
    Sends signer confirmation emails.

    Usage:
        dispatcher = NotificationDispatcher(transport, "https://example.org", tokens.members)
        result = dispatcher.send_confirmation(signature)
        if not result.success:
            warning = result.error
    """

    def __init__(self, transport: MailTransport, site_url: str, member_codec: TokenCodec):
        self.transport = transport
        self.site_url = site_url.rstrip("/")
        self.member_codec = member_codec

    def petition_url(self, petition_id: int) -> str:
        return f"{self.site_url}/petitions/{petition_id}"

    def forward_url(self, petition_id: int, member_id: int) -> str:
        token = self.member_codec.encode(member_id)
        return f"{self.petition_url(petition_id)}?forwarded_notification_hash={token}"

    def send_confirmation(self, signature: Signature) -> NotificationResult:
        recipients = [signature.email]
        try:
            subject, text, html_body = _build_confirmation_email(
                signer_name=signature.name,
                petition_title=signature.petition.title,
                petition_url=self.petition_url(signature.petition_id),
                forward_url=self.forward_url(signature.petition_id, signature.member_id),
            )
            message_id = self.transport.send(recipients, subject, text, html_body)
        except Exception as e:
            logger.exception(f"[NotificationService] Failed to send confirmation for signature {signature.id}: {e}")
            capture_exception(e, extra={"signature_id": signature.id, "petition_id": signature.petition_id})
            return NotificationResult(success=False, error=str(e), recipients=recipients)

        logger.info(f"[NotificationService] Confirmation sent for signature {signature.id}, id={message_id}")
        return NotificationResult(success=True, message_id=message_id, recipients=recipients)
