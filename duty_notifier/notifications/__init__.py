"""Duty notice rendering and delivery.

This module provides the notification side of the pipeline:
- NotificationService: renders and sends one notice per recipient bundle
- NotificationResult: per-recipient outcome
- TemplateRenderer: Jinja2-based notice rendering
- SMTPClient / GraphMailClient: mail transports
- build_transport: picks the transport configured in email.transport
"""

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.config.models import AppConfig, MailTransportType

from .graph_client import GraphMailClient
from .models import (
    GraphDeliveryError,
    MailDeliveryError,
    MailTransport,
    NotificationError,
    NotificationResult,
    NotificationTemplateError,
    OutboundEmail,
)
from .payloads import build_notice_context
from .service import NotificationService
from .smtp_client import SMTPClient, build_sender_address, parse_recipient
from .templates import TemplateRenderer


def build_transport(app_config: AppConfig, env_config: EnvironmentConfig) -> MailTransport:
    """Create the mail transport selected by email.transport.

    Raises:
        MailDeliveryError: If the Graph transport is selected without credentials
    """
    timeout = app_config.advanced.http_request_timeout
    if app_config.email.transport == MailTransportType.GRAPH.value:
        return GraphMailClient(env_config, timeout=timeout)
    return SMTPClient(env_config, use_tls=app_config.email.use_tls, timeout=timeout)


__all__ = [
    # Main service
    "NotificationService",
    "build_transport",
    # Models and results
    "NotificationResult",
    "OutboundEmail",
    "MailTransport",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "MailDeliveryError",
    "GraphDeliveryError",
    # Components
    "TemplateRenderer",
    "SMTPClient",
    "GraphMailClient",
    # Utilities
    "build_notice_context",
    "build_sender_address",
    "parse_recipient",
]
