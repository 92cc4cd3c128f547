"""Unit tests for NotificationService.

Tests the per-recipient notice flow:
- Rendering and transport hand-off
- Recipient validation
- Failure isolation across a batch
"""

import logging
from unittest.mock import Mock

import pytest

from duty_notifier.domain.models import DutyRecord, Person, RecipientBundle
from duty_notifier.notifications.models import MailDeliveryError, NotificationTemplateError
from duty_notifier.notifications.service import NotificationService
from tests.helpers import RecordingTransport, make_app_config

SENDER = "Examination Cell <exams@x.edu>"


def make_bundle(person_key="Q1", contact="q1@x.edu", rows=2):
    person = Person(person_key=person_key, name=f"Person {person_key}", contact_address=contact)
    records = [
        DutyRecord(date=f"2025-10-0{i + 1}", time_range="4:00:00 AM – 5:30:00 AM") for i in range(rows)
    ]
    return RecipientBundle(person=person, records=records)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def service(transport):
    return NotificationService(
        transport=transport,
        notice_config=make_app_config().notice,
        sender=SENDER,
    )


def test_send_bundle_success(service, transport):
    result = service.send_bundle(make_bundle(), mode="bulk")

    assert result.is_success()
    assert result.status == "sent"
    assert result.recipient == "q1@x.edu"
    assert result.duty_count == 2

    assert len(transport.sent) == 1
    email = transport.sent[0]
    assert email.sender == SENDER
    assert email.recipient == "q1@x.edu"
    assert email.subject == "Invigilation Duties - End Sem Minor 1 2025-26"
    assert "Person Q1" in email.html_body
    assert "Person Q1" in email.text_body


def test_single_mode_uses_single_subject(service, transport):
    service.send_bundle(make_bundle(), mode="single")

    assert transport.sent[0].subject == "Invigilation Duties - Minor-1 2025-26"


def test_transport_failure_returns_failed_result(transport):
    transport.fail_for.add("q1@x.edu")
    service = NotificationService(transport, make_app_config().notice, SENDER)

    result = service.send_bundle(make_bundle())

    assert result.status == "failed"
    assert "Mailbox unavailable" in result.error
    assert transport.attempts == ["q1@x.edu"]


def test_invalid_recipient_is_not_sent(service, transport):
    result = service.send_bundle(make_bundle(contact="not-an-address"))

    assert result.status == "failed"
    assert "Failed to build email message" in result.error
    assert transport.attempts == []


def test_template_failure_is_not_sent(transport):
    renderer = Mock()
    renderer.render.side_effect = NotificationTemplateError("missing variable")
    service = NotificationService(transport, make_app_config().notice, SENDER, template_renderer=renderer)

    result = service.send_bundle(make_bundle())

    assert result.status == "failed"
    assert "Template rendering failed" in result.error
    assert transport.attempts == []


def test_unknown_mode_is_a_failed_result(service, transport):
    result = service.send_bundle(make_bundle(), mode="digest")

    assert result.status == "failed"
    assert transport.attempts == []


def test_send_bundles_continues_after_failure(transport):
    transport.fail_for.add("q2@x.edu")
    service = NotificationService(transport, make_app_config().notice, SENDER)

    results = service.send_bundles([
        make_bundle("Q1", "q1@x.edu"),
        make_bundle("Q2", "q2@x.edu"),
        make_bundle("Q3", "q3@x.edu"),
    ])

    assert [r.status for r in results] == ["sent", "failed", "sent"]
    assert transport.attempts == ["q1@x.edu", "q2@x.edu", "q3@x.edu"]


def test_send_bundles_isolates_unexpected_errors():
    transport = Mock()
    transport.send.side_effect = [RuntimeError("socket closed"), None]
    service = NotificationService(transport, make_app_config().notice, SENDER)

    results = service.send_bundles([make_bundle("Q1", "q1@x.edu"), make_bundle("Q2", "q2@x.edu")])

    assert [r.status for r in results] == ["failed", "sent"]
    assert results[0].error == "socket closed"


def test_each_recipient_sent_exactly_once(service, transport):
    service.send_bundles([make_bundle("Q1", "q1@x.edu"), make_bundle("Q2", "q2@x.edu")])

    assert sorted(transport.attempts) == ["q1@x.edu", "q2@x.edu"]


def test_send_failure_is_logged(transport, caplog):
    transport.fail_for.add("q1@x.edu")
    service = NotificationService(transport, make_app_config().notice, SENDER)

    with caplog.at_level(logging.ERROR):
        service.send_bundle(make_bundle())

    failures = [r for r in caplog.records if getattr(r, "event", None) == "notification.send.failure"]
    assert len(failures) == 1
    assert failures[0].error_type == "MailDeliveryError"
