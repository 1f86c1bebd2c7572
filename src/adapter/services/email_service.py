"""Email Service Implementations

Provides concrete implementations for sending reconciliation emails.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional
from src.app.services.email_service import EmailService

logger = logging.getLogger(__name__)


class LoggingEmailService(EmailService):
    """
    Email service that only logs

    Useful for development and testing, or when SMTP is not configured.
    """

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        logger.info(f"[EMAIL] To: {to_address}, Subject: {subject}, Body: {html_body}")
        return True


class SmtpEmailService(EmailService):
    """
    Email service that delivers HTML mail over SMTP

    smtplib is blocking, so delivery runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_address: Optional[str] = None,
        from_name: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address or username
        self.from_name = from_name
        self.timeout = timeout

    def _build_message(self, to_address: str, subject: str, html_body: str) -> EmailMessage:
        msg = EmailMessage()
        if self.from_name:
            msg["From"] = f"{self.from_name} <{self.from_address}>"
        else:
            msg["From"] = self.from_address
        msg["To"] = to_address
        msg["Subject"] = subject
        msg.set_content(html_body, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """
        Send email via SMTP

        Returns:
            True if the SMTP server accepted the message, False otherwise
        """
        msg = self._build_message(to_address, subject, html_body)
        try:
            await asyncio.to_thread(self._deliver, msg)
            logger.info(f"Email '{subject}' sent to {to_address}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}' to {to_address}: {e}")
            return False


class CompositeEmailService(EmailService):
    """
    Email service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + SMTP).
    """

    def __init__(self, services: list[EmailService]):
        self.services = services

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """
        Send through every configured service

        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            try:
                if await service.send(to_address, subject, html_body):
                    success = True
            except Exception as e:
                logger.error(f"Email service {type(service).__name__} failed: {e}")
        return success


def create_email_service(config) -> EmailService:
    """
    Factory function to create the appropriate email service

    Args:
        config: ApplicationConfig (or any object with the SMTP_* settings).
                Without SMTP_HOST only logging is used, otherwise logging + SMTP.

    Returns:
        Configured EmailService
    """
    services: list[EmailService] = [LoggingEmailService()]

    if getattr(config, "SMTP_HOST", None):
        services.append(
            SmtpEmailService(
                host=config.SMTP_HOST,
                port=int(config.SMTP_PORT),
                username=config.SMTP_USERNAME or None,
                password=config.SMTP_PASSWORD or None,
                use_tls=config.SMTP_USE_TLS,
                from_address=config.EMAIL_FROM or None,
                from_name=config.EMAIL_FROM_NAME or None,
            )
        )

    if len(services) == 1:
        return services[0]

    return CompositeEmailService(services)
