"""SMTP transport for duty notices.

This module provides a thin wrapper around Python's smtplib with support
for TLS/SSL, authentication, and proper connection lifecycle management.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from duty_notifier.config.environment import EnvironmentConfig

from .models import MailDeliveryError, OutboundEmail

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "Examination Cell"


class SMTPClient:
    """Mail transport that delivers notices over SMTP.

    Opens one connection per message, negotiates TLS/SSL, authenticates
    when credentials are configured and always closes the connection.
    Designed to be easily mockable for testing.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 30.0,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """Initialize SMTP client with optional factory injection.

        Args:
            env_config: Environment configuration with SMTP settings
            use_tls: Whether to upgrade plain connections with STARTTLS
            timeout: Socket timeout in seconds
            smtp_factory: Factory function for creating SMTP instances (for mocking)
            smtp_ssl_factory: Factory function for creating SMTP_SSL instances (for mocking)
        """
        self.env_config = env_config
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(self, email: OutboundEmail) -> None:
        """Send one notice via SMTP.

        Args:
            email: Rendered notice

        Raises:
            MailDeliveryError: If message delivery fails
        """
        message = build_message(email)
        host = self.env_config.smtp_host
        port = self.env_config.smtp_port

        smtp = None
        try:
            if port == 465:
                logger.debug(f"Connecting to {host}:{port} with implicit TLS")
                context = ssl.create_default_context()
                smtp = self.smtp_ssl_factory(host, port, timeout=self.timeout, context=context)
            else:
                logger.debug(f"Connecting to {host}:{port}")
                smtp = self.smtp_factory(host, port, timeout=self.timeout)

                if self.use_tls:
                    logger.debug("Upgrading connection with STARTTLS")
                    context = ssl.create_default_context()
                    smtp.starttls(context=context)

            if self.env_config.smtp_user and self.env_config.smtp_pass:
                logger.debug(f"Authenticating as {self.env_config.smtp_user}")
                smtp.login(self.env_config.smtp_user, self.env_config.smtp_pass)
            else:
                logger.debug("No authentication credentials provided, proceeding without auth")

            smtp.send_message(message)
            logger.debug("Message handed to SMTP server")

        except smtplib.SMTPException as e:
            raise MailDeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise MailDeliveryError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def build_message(email: OutboundEmail) -> EmailMessage:
    """Build a multipart/alternative message with text and HTML parts."""
    message = EmailMessage()
    message["Subject"] = email.subject
    message["From"] = email.sender
    message["To"] = email.recipient
    message.set_content(email.text_body)
    message.add_alternative(email.html_body, subtype="html")
    return message


def parse_recipient(address: Optional[str]) -> str:
    """Validate and normalize a single recipient address.

    Args:
        address: Contact address from the directory

    Returns:
        Normalized address

    Raises:
        ValueError: If the address is empty or invalid
    """
    if not address or not address.strip():
        raise ValueError("Recipient address is empty")

    try:
        validated = validate_email(address.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"Invalid recipient address '{address}': {e}") from e

    return validated.normalized


def build_sender_address(env_config: EnvironmentConfig, sender_name: Optional[str] = None) -> str:
    """Build the 'From' address for outgoing notices.

    Uses MAIL_FROM when set, then SMTP_USER, and finally a noreply address
    at the SMTP host.

    Args:
        env_config: Environment configuration with mail settings
        sender_name: Display name; falls back to SMTP_SENDER_NAME

    Returns:
        Formatted sender address (e.g., "Examination Cell <exams@example.edu>")
    """
    name = sender_name or env_config.smtp_sender_name or DEFAULT_SENDER_NAME

    if env_config.mail_from:
        sender_email = env_config.mail_from
    elif env_config.smtp_user:
        sender_email = env_config.smtp_user
    else:
        sender_email = f"noreply@{env_config.smtp_host or 'localhost'}"

    return formataddr((name, sender_email))
