import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import resend

from ..exceptions import ConfigurationError, EmailDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    message_id: Optional[str]
    recipients: List[str] = field(default_factory=list)


class EmailAdapter:
    """Transactional email through Resend."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None, client=None):
        self.api_key = api_key or os.getenv('RESEND_API_KEY')
        self.from_email = from_email or os.getenv('EMAIL_FROM', 'NJREAP <noreply@njreap.com>')
        self.client = client
        if self.client is None and self.api_key:
            resend.api_key = self.api_key
            self.client = resend
        self.enabled = self.client is not None
        if not self.enabled:
            logger.warning("Email disabled: missing RESEND_API_KEY")

    def send(self, to: Union[str, List[str]], subject: str, html: str, text: str = "",
             bcc: Optional[List[str]] = None, attachments: Optional[List[Dict[str, Any]]] = None,
             reply_to: Optional[str] = None) -> EmailResult:
        if not self.enabled:
            raise ConfigurationError("Email delivery is not configured")
        recipients = [to] if isinstance(to, str) else list(to)
        params: Dict[str, Any] = {
            "from": self.from_email,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text
        if bcc:
            params["bcc"] = bcc
        if attachments:
            params["attachments"] = attachments
        if reply_to:
            params["reply_to"] = reply_to

        try:
            response = self.client.Emails.send(params)
        except Exception as e:
            logger.error(f"Failed to send email '{subject}' to {recipients}: {e}")
            raise EmailDeliveryError("Failed to send email", status_code=500, response=str(e))

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Email sent: {subject} to {recipients}, id={message_id}")
        return EmailResult(message_id=message_id, recipients=recipients)
