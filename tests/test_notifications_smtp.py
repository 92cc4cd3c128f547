"""Unit tests for the SMTP transport and address helpers.

SMTP connections are replaced by Mock factories; no network is used.
"""

import smtplib
from unittest.mock import MagicMock, Mock

import pytest

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.notifications.models import MailDeliveryError, OutboundEmail
from duty_notifier.notifications.smtp_client import (
    SMTPClient,
    build_message,
    build_sender_address,
    parse_recipient,
)


@pytest.fixture
def email():
    return OutboundEmail(
        sender="Examination Cell <exams@x.edu>",
        recipient="q1@x.edu",
        subject="Invigilation Duties",
        html_body="<p>Dear Asha</p>",
        text_body="Dear Asha",
    )


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        smtp_host="smtp.x.edu",
        smtp_port=587,
        smtp_user="exams@x.edu",
        smtp_pass="secret",
    )


@pytest.fixture
def smtp_instance():
    return MagicMock()


@pytest.fixture
def smtp_factory(smtp_instance):
    return Mock(return_value=smtp_instance)


class TestSMTPClient:
    def test_starttls_login_and_send(self, env_config, email, smtp_factory, smtp_instance):
        client = SMTPClient(env_config, smtp_factory=smtp_factory, timeout=10)

        client.send(email)

        smtp_factory.assert_called_once_with("smtp.x.edu", 587, timeout=10)
        smtp_instance.starttls.assert_called_once()
        smtp_instance.login.assert_called_once_with("exams@x.edu", "secret")
        smtp_instance.send_message.assert_called_once()
        smtp_instance.quit.assert_called_once()

    def test_implicit_tls_on_port_465(self, env_config, email, smtp_instance):
        env_config.smtp_port = 465
        ssl_factory = Mock(return_value=smtp_instance)
        plain_factory = Mock()
        client = SMTPClient(env_config, smtp_factory=plain_factory, smtp_ssl_factory=ssl_factory)

        client.send(email)

        ssl_factory.assert_called_once()
        assert ssl_factory.call_args.args == ("smtp.x.edu", 465)
        assert "context" in ssl_factory.call_args.kwargs
        plain_factory.assert_not_called()
        smtp_instance.starttls.assert_not_called()

    def test_no_tls_and_no_auth(self, email, smtp_factory, smtp_instance):
        env_config = EnvironmentConfig(smtp_host="localhost", smtp_port=25)
        client = SMTPClient(env_config, use_tls=False, smtp_factory=smtp_factory)

        client.send(email)

        smtp_instance.starttls.assert_not_called()
        smtp_instance.login.assert_not_called()
        smtp_instance.send_message.assert_called_once()

    def test_smtp_error_becomes_delivery_error(self, env_config, email, smtp_factory, smtp_instance):
        smtp_instance.send_message.side_effect = smtplib.SMTPRecipientsRefused({"q1@x.edu": (550, b"no")})
        client = SMTPClient(env_config, smtp_factory=smtp_factory)

        with pytest.raises(MailDeliveryError, match="SMTP error"):
            client.send(email)

        smtp_instance.quit.assert_called_once()

    def test_connection_error_becomes_delivery_error(self, env_config, email):
        factory = Mock(side_effect=ConnectionRefusedError("refused"))
        client = SMTPClient(env_config, smtp_factory=factory)

        with pytest.raises(MailDeliveryError, match="Network error"):
            client.send(email)

    def test_quit_failure_is_ignored(self, env_config, email, smtp_factory, smtp_instance):
        smtp_instance.quit.side_effect = smtplib.SMTPServerDisconnected("gone")
        client = SMTPClient(env_config, smtp_factory=smtp_factory)

        client.send(email)

        smtp_instance.send_message.assert_called_once()


class TestBuildMessage:
    def test_multipart_alternative(self, email):
        message = build_message(email)

        assert message["Subject"] == "Invigilation Duties"
        assert message["To"] == "q1@x.edu"
        assert message["From"] == "Examination Cell <exams@x.edu>"
        assert message.get_content_type() == "multipart/alternative"
        assert message.get_body(("plain",)).get_content().strip() == "Dear Asha"
        assert message.get_body(("html",)).get_content().strip() == "<p>Dear Asha</p>"


class TestParseRecipient:
    def test_valid_address_is_stripped(self):
        assert parse_recipient("  q1@x.edu ") == "q1@x.edu"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_raises(self, value):
        with pytest.raises(ValueError, match="empty"):
            parse_recipient(value)

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="Invalid recipient address"):
            parse_recipient("q1-at-x.edu")


class TestBuildSenderAddress:
    def test_prefers_mail_from_and_explicit_name(self):
        env_config = EnvironmentConfig(smtp_host="smtp.x.edu", smtp_user="relay@x.edu", mail_from="exams@x.edu")

        assert build_sender_address(env_config, "Exam Cell") == "Exam Cell <exams@x.edu>"

    def test_falls_back_to_smtp_user_and_env_name(self):
        env_config = EnvironmentConfig(smtp_host="smtp.x.edu", smtp_user="relay@x.edu", smtp_sender_name="Exams")

        assert build_sender_address(env_config) == "Exams <relay@x.edu>"

    def test_noreply_default(self):
        env_config = EnvironmentConfig(smtp_host="smtp.x.edu")

        assert build_sender_address(env_config) == "Examination Cell <noreply@smtp.x.edu>"
