"""Notification service for sending duty notices.

This module provides the NotificationService class that turns one recipient
bundle into one delivered notice: template context, rendering, recipient
validation and a single hand-off to the mail transport.
"""

import logging
from typing import Iterable, List, Optional

from duty_notifier.config.models import NoticeConfig
from duty_notifier.domain.models import RecipientBundle
from duty_notifier.logging import get_logger
from duty_notifier.logging.context import log_context

from .models import (
    MailDeliveryError,
    MailTransport,
    NotificationResult,
    NotificationTemplateError,
    OutboundEmail,
)
from .payloads import build_notice_context
from .smtp_client import parse_recipient
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")


class NotificationService:
    """Service for sending one duty notice per recipient.

    Coordinates the notice flow:
    1. Build template context from the bundle
    2. Render subject, HTML and text bodies
    3. Validate the recipient address
    4. Hand the message to the transport exactly once

    Failures never propagate: every call returns a NotificationResult so
    one bad recipient does not stop the others.
    """

    def __init__(
        self,
        transport: MailTransport,
        notice_config: NoticeConfig,
        sender: str,
        template_renderer: Optional[TemplateRenderer] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize notification service.

        Args:
            transport: Mail transport (SMTPClient, GraphMailClient or a fake)
            notice_config: Notice wording and signature
            sender: Formatted From address
            template_renderer: Template renderer instance (creates default if None)
            logger_instance: Logger instance (uses module logger if None)
        """
        self.transport = transport
        self.notice_config = notice_config
        self.sender = sender
        self.template_renderer = template_renderer or TemplateRenderer()
        self.logger = logger_instance or logger

    def send_bundle(self, bundle: RecipientBundle, mode: str = "bulk") -> NotificationResult:
        """Render and send the notice for one recipient.

        Args:
            bundle: Recipient and their duty records
            mode: "bulk" or "single"; selects subject and intro wording

        Returns:
            NotificationResult with status "sent" or "failed"
        """
        person = bundle.person
        duty_count = len(bundle.records)

        with log_context(person_key=person.person_key, recipient=person.contact_address):
            try:
                context = build_notice_context(person, bundle.records, self.notice_config, mode)
                rendered = self.template_renderer.render(context)
            except (NotificationTemplateError, ValueError) as e:
                error_msg = f"Template rendering failed: {e}"
                self.logger.error(
                    error_msg,
                    extra={"event": "notification.render.failure", "error_type": type(e).__name__},
                )
                return self._failed(bundle, error_msg)

            try:
                recipient = parse_recipient(person.contact_address)
            except ValueError as e:
                error_msg = f"Failed to build email message: {e}"
                self.logger.error(
                    error_msg,
                    extra={"event": "notification.send.failure", "error_type": "InvalidRecipient"},
                )
                return self._failed(bundle, error_msg)

            email = OutboundEmail(
                sender=self.sender,
                recipient=recipient,
                subject=rendered["subject"],
                html_body=rendered["html_body"],
                text_body=rendered["text_body"],
            )

            try:
                self.transport.send(email)
            except MailDeliveryError as e:
                self.logger.error(
                    f"Mail error for {recipient}: {e}",
                    extra={
                        "event": "notification.send.failure",
                        "error_type": type(e).__name__,
                        "duty_count": duty_count,
                    },
                )
                return self._failed(bundle, str(e))

            self.logger.info(
                f"Mail sent to {recipient} ({duty_count} duties)",
                extra={"event": "notification.send.success", "duty_count": duty_count, "mode": mode},
            )
            return NotificationResult(
                person_key=person.person_key,
                recipient=recipient,
                status="sent",
                duty_count=duty_count,
            )

    def send_bundles(
        self, bundles: Iterable[RecipientBundle], mode: str = "bulk"
    ) -> List[NotificationResult]:
        """Send one notice per bundle, continuing past individual failures.

        Args:
            bundles: Bundles in processing order
            mode: Notice mode for every bundle

        Returns:
            One NotificationResult per bundle, in the same order
        """
        results = []
        for bundle in bundles:
            try:
                results.append(self.send_bundle(bundle, mode))
            except Exception as e:
                # Unexpected transport errors must not stop the batch
                self.logger.error(
                    f"Unexpected error sending notice to {bundle.person.person_key}: {e}",
                    exc_info=True,
                    extra={"event": "notification.send.failure", "error_type": type(e).__name__},
                )
                results.append(self._failed(bundle, str(e)))

        sent = sum(1 for r in results if r.is_success())
        failed = len(results) - sent
        self.logger.info(
            f"Notification batch complete: {sent} sent, {failed} failed (total: {len(results)})",
            extra={"event": "notification.batch.complete", "sent_count": sent, "failed_count": failed},
        )
        return results

    def _failed(self, bundle: RecipientBundle, error: str) -> NotificationResult:
        return NotificationResult(
            person_key=bundle.person.person_key,
            recipient=bundle.person.contact_address,
            status="failed",
            duty_count=len(bundle.records),
            error=error,
        )
