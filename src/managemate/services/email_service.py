"""Email delivery over SMTP (aiosmtplib).

Learn: Sending is best-effort. send() returns True/False instead of
raising, so a digest run can carry on with the next recipient when one
address bounces or the SMTP server hiccups.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
import structlog

from managemate.config import Settings

logger = structlog.get_logger()


class SmtpEmailSender:
    """Async SMTP sender configured from settings."""

    def __init__(self, config: Settings):
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.password = config.smtp_password
        self.start_tls = config.smtp_start_tls
        self.from_email = config.email_from
        self.from_name = config.email_from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def build_message(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(text, "plain"))
        if html:
            message.attach(MIMEText(html, "html"))
        return message

    async def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> bool:
        if not self.is_configured:
            logger.warning("email.not_configured", to=to)
            return False

        message = self.build_message(to, subject, text, html)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                start_tls=self.start_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("email.send_failed", to=to, subject=subject, error=str(e))
            return False

        logger.info("email.sent", to=to, subject=subject)
        return True
