from postmarker.core import PostmarkClient
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Verified sender in Postmark
DEFAULT_SENDER = os.getenv("EMAIL_SENDER", "hello@doclens.app")

RETENTION_SUBJECT = "We hate to see you go :("
RETENTION_TEXT = "We hate to see you go. Here is a sweet offer..."


class EmailService:
    def __init__(self, server_token: Optional[str] = None, sender: Optional[str] = None):
        postmark_token = server_token if server_token is not None else os.getenv("POSTMARK_SERVER_TOKEN")
        self.sender = sender or DEFAULT_SENDER
        if not postmark_token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=postmark_token)
            logger.info("Postmark email client initialized")

    async def send_email(
        self,
        recipient: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> str:
        """Send a plain email. Returns "sent", "logged" (dev mode) or "failed".

        Delivery failures are logged and reported through the return value;
        callers never see Postmark exceptions.
        """
        if not self.client:
            logger.info(f"[DEV MODE] Email logged (not sent) to {recipient}: {subject}")
            return "logged"

        try:
            response = self.client.emails.send(
                From=self.sender,
                To=recipient,
                Subject=subject,
                HtmlBody=html_body or text_body,
                TextBody=text_body,
                Tag=tag,
            )
            logger.info(f"Email sent to {recipient}: {response['MessageID']}")
            return "sent"
        except Exception as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            return "failed"

    async def send_retention_email(self, recipient: str) -> str:
        """Sent when a subscriber schedules cancellation at period end."""
        return await self.send_email(
            recipient=recipient,
            subject=RETENTION_SUBJECT,
            text_body=RETENTION_TEXT,
            html_body=RETENTION_TEXT,
            tag="retention",
        )
