"""Data models and exceptions for the notification service.

This module defines the outbound message shape, per-recipient result type
and the exceptions raised by renderers and mail transports.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class MailDeliveryError(NotificationError):
    """Raised when a mail transport fails to deliver a message."""

    pass


@dataclass(frozen=True)
class OutboundEmail:
    """A rendered notice ready to hand to a transport.

    Attributes:
        sender: Formatted From address ("Examination Cell <exams@example.edu>")
        recipient: Validated recipient address
        subject: Single-line subject
        html_body: HTML body
        text_body: Plain-text alternative
    """

    sender: str
    recipient: str
    subject: str
    html_body: str
    text_body: str


class MailTransport(Protocol):
    """Anything that can deliver an OutboundEmail."""

    def send(self, email: OutboundEmail) -> None:
        """Deliver one message or raise MailDeliveryError."""
        ...


@dataclass
class NotificationResult:
    """Result of notifying one person during a run.

    Attributes:
        person_key: Person the notice was meant for
        recipient: Contact address used, if one was known
        status: Outcome status (sent, failed, unresolvable)
        duty_count: Number of duty rows in the notice
        error: Optional error message if delivery failed
    """

    person_key: str
    recipient: Optional[str]
    status: str  # "sent", "failed", "unresolvable"
    duty_count: int = 0
    error: Optional[str] = None

    def is_success(self) -> bool:
        """Check if the notice was handed to the transport successfully.

        Returns:
            True if status is "sent", False otherwise
        """
        return self.status == "sent"


class GraphDeliveryError(MailDeliveryError):
    """Microsoft Graph rejected a token or sendMail request."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        """Initialize Graph error with status code and URL.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (0 when no response was received)
            url: URL that failed
        """
        super().__init__(message)
        self.status_code = status_code
        self.url = url
