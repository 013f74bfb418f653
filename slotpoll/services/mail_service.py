import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from ..core.email_templates import render_template
from .email_service import EmailService

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        to_name: str | None = None,
    ) -> bool: ...


class MailService:
    """Renders a named template and hands it to the transactional mail sender."""

    email_service: EmailSender

    def __init__(self, email_service: EmailSender | None = None):
        self.email_service = email_service or EmailService()

    async def send_mail(
        self,
        recipient_name: str,
        recipient_address: str,
        subject: str,
        template_name: str,
        template_data: Mapping[str, Any],
    ) -> bool:
        html_content = render_template(template_name, recipient_name, template_data)

        # the Brevo client is blocking
        sent = await asyncio.to_thread(
            self.email_service.send_email,
            to_email=recipient_address,
            subject=subject,
            html_content=html_content,
            to_name=recipient_name,
        )

        if not sent:
            logger.warning(f"Mail '{template_name}' to {recipient_address} was not sent")
        return sent


mail_service = MailService()
