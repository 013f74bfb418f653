import logging

import sib_api_v3_sdk
from sib_api_v3_sdk.rest import ApiException

from ..config import settings

logger = logging.getLogger(__name__)


class EmailService:
    @staticmethod
    def send_email(
        to_email: str,
        subject: str,
        html_content: str,
        to_name: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ) -> bool:
        if not settings.mail_enabled:
            logger.info(f"📧 [DEV MODE] Email would be sent to {to_email}")
            logger.info(f"📧 [DEV MODE] Subject: {subject}")
            logger.debug(f"📧 [DEV MODE] Body preview: {html_content[:200]}...")
            return True

        recipient = {"email": to_email}
        if to_name:
            recipient["name"] = to_name

        try:
            configuration = sib_api_v3_sdk.Configuration()
            configuration.api_key["api-key"] = settings.BREVO_API_KEY
            api_instance = sib_api_v3_sdk.TransactionalEmailsApi(
                sib_api_v3_sdk.ApiClient(configuration)
            )

            send_smtp_email = sib_api_v3_sdk.SendSmtpEmail(
                to=[recipient],
                sender={
                    "name": from_name or settings.MAIL_FROM_NAME,
                    "email": from_email or settings.MAIL_FROM_EMAIL,
                },
                subject=subject,
                html_content=html_content,
            )

            api_response = api_instance.send_transac_email(send_smtp_email)
            logger.info(f"✅ Email sent successfully to {to_email}: {api_response}")
            return True

        except ApiException as e:
            logger.error(f"❌ Failed to send email via Brevo to {to_email}: {e}")
            return False
        except Exception as e:
            logger.error(f"❌ Unexpected error sending email to {to_email}: {e}")
            return False
