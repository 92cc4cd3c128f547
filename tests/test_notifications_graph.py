"""Unit tests for the Microsoft Graph mail transport.

The requests session is mocked; token expiry is driven by a fake clock.
"""

import uuid
from unittest.mock import Mock

import pytest
import requests

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.logging.context import log_context
from duty_notifier.notifications.graph_client import GraphMailClient, build_send_mail_payload
from duty_notifier.notifications.models import GraphDeliveryError, MailDeliveryError, OutboundEmail


def make_response(status_code=200, json_data=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.text = ""
    if json_data is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data
    return response


TOKEN_RESPONSE = {"access_token": "token-1", "expires_in": 3600}


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        mail_from="exams@x.edu",
        graph_tenant_id="tenant-1",
        graph_client_id="client-1",
        graph_client_secret="secret",
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
def clock():
    now = {"value": 1000.0}
    fake = Mock(side_effect=lambda: now["value"])
    fake.now = now
    return fake


@pytest.fixture
def session():
    session = Mock()
    session.request.side_effect = [make_response(200, TOKEN_RESPONSE), make_response(202, {})]
    return session


@pytest.fixture
def client(env_config, session, clock):
    return GraphMailClient(env_config, timeout=5, session=session, clock=clock)


def test_missing_settings_raise(env_config):
    env_config.graph_client_secret = None
    env_config.mail_from = ""

    with pytest.raises(MailDeliveryError, match="GRAPH_CLIENT_SECRET, MAIL_FROM"):
        GraphMailClient(env_config)


def test_send_requests_token_then_send_mail(client, session, email):
    client.send(email)

    token_call, send_call = session.request.call_args_list
    assert token_call.kwargs["url"] == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
    assert token_call.kwargs["data"]["grant_type"] == "client_credentials"
    assert token_call.kwargs["data"]["scope"] == "https://graph.microsoft.com/.default"

    assert send_call.kwargs["url"] == "https://graph.microsoft.com/v1.0/users/exams@x.edu/sendMail"
    assert send_call.kwargs["headers"]["Authorization"] == "Bearer token-1"
    assert send_call.kwargs["json"]["message"]["toRecipients"] == [{"emailAddress": {"address": "q1@x.edu"}}]
    assert send_call.kwargs["timeout"] == 5


def test_each_send_gets_its_own_guid_request_id(client, session, email):
    session.request.side_effect = [
        make_response(200, TOKEN_RESPONSE),
        make_response(202, {}),
        make_response(202, {}),
    ]

    with log_context(run_id="run-42"):
        client.send(email)
        client.send(email)

    first, second = (
        call.kwargs["headers"]["client-request-id"] for call in session.request.call_args_list[1:3]
    )
    assert first != second
    assert str(uuid.UUID(first)) == first
    assert "run-42" not in (first, second)


def test_token_is_cached_until_near_expiry(client, session, clock, email):
    session.request.side_effect = [
        make_response(200, TOKEN_RESPONSE),
        make_response(202, {}),
        make_response(202, {}),
        make_response(200, {"access_token": "token-2", "expires_in": 3600}),
        make_response(202, {}),
    ]

    client.send(email)
    clock.now["value"] += 3000
    client.send(email)
    clock.now["value"] += 600
    client.send(email)

    urls = [call.kwargs["url"] for call in session.request.call_args_list]
    assert sum("oauth2" in url for url in urls) == 2
    assert session.request.call_args_list[-1].kwargs["headers"]["Authorization"] == "Bearer token-2"


def test_http_error_raises_graph_delivery_error(client, session, email):
    session.request.side_effect = [
        make_response(200, TOKEN_RESPONSE),
        make_response(403, {"error": {"code": "ErrorAccessDenied", "message": "Access is denied."}}, "Forbidden"),
    ]

    with pytest.raises(GraphDeliveryError) as exc_info:
        client.send(email)

    assert exc_info.value.status_code == 403
    assert "Access is denied." in str(exc_info.value)


def test_unauthorized_clears_cached_token(client, session, email):
    session.request.side_effect = [
        make_response(200, TOKEN_RESPONSE),
        make_response(401, {"error": {"code": "InvalidAuthenticationToken"}}, "Unauthorized"),
        make_response(200, {"access_token": "token-2", "expires_in": 3600}),
        make_response(202, {}),
    ]

    with pytest.raises(GraphDeliveryError):
        client.send(email)
    client.send(email)

    assert session.request.call_args_list[-1].kwargs["headers"]["Authorization"] == "Bearer token-2"


def test_token_endpoint_error_uses_description(client, session, email):
    session.request.side_effect = [
        make_response(400, {"error": "invalid_client", "error_description": "Bad secret"}, "Bad Request"),
    ]

    with pytest.raises(GraphDeliveryError, match="Bad secret"):
        client.send(email)


def test_token_response_without_token(client, session, email):
    session.request.side_effect = [make_response(200, {"token_type": "Bearer"})]

    with pytest.raises(GraphDeliveryError, match="no access_token"):
        client.send(email)


def test_timeout_is_delivery_error(client, session, email):
    session.request.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(GraphDeliveryError, match="timed out") as exc_info:
        client.send(email)

    assert exc_info.value.status_code == 0


def test_connection_error_is_delivery_error(client, session, email):
    session.request.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(MailDeliveryError):
        client.send(email)


def test_send_mail_payload(email):
    payload = build_send_mail_payload(email)

    assert payload["saveToSentItems"] is True
    assert payload["message"]["subject"] == "Invigilation Duties"
    assert payload["message"]["body"] == {"contentType": "HTML", "content": "<p>Dear Asha</p>"}
