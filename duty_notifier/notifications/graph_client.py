"""Microsoft Graph transport for duty notices.

Sends mail through the Graph ``sendMail`` endpoint of a licensed mailbox,
authenticating with the OAuth2 client-credentials flow. The access token is
cached on the client and refreshed shortly before it expires.
"""

import threading
import time
from typing import Any, Dict, Optional
from urllib.parse import quote
from uuid import uuid4

import requests

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.logging import get_logger

from .models import GraphDeliveryError, MailDeliveryError, OutboundEmail

logger = get_logger(__name__, component="graph")

TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
SEND_MAIL_URL_TEMPLATE = "https://graph.microsoft.com/v1.0/users/{sender}/sendMail"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh this many seconds before the advertised expiry
TOKEN_EXPIRY_MARGIN = 60


class GraphMailClient:
    """Mail transport backed by Microsoft Graph.

    Attributes:
        timeout: HTTP request timeout in seconds
        sender: Mailbox (UPN or address) the notices are sent from
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        clock=time.monotonic,
    ):
        """Initialize the Graph client.

        Args:
            env_config: Environment configuration with GRAPH_* and MAIL_FROM
            timeout: HTTP request timeout in seconds
            session: requests session (created if None)
            clock: Monotonic clock used for token expiry (for testing)

        Raises:
            MailDeliveryError: If tenant, client credentials or sender are missing
        """
        missing = [
            name
            for name, value in (
                ("GRAPH_TENANT_ID", env_config.graph_tenant_id),
                ("GRAPH_CLIENT_ID", env_config.graph_client_id),
                ("GRAPH_CLIENT_SECRET", env_config.graph_client_secret),
                ("MAIL_FROM", env_config.mail_from),
            )
            if not value
        ]
        if missing:
            raise MailDeliveryError(f"Graph transport is missing settings: {', '.join(missing)}")

        self.tenant_id = env_config.graph_tenant_id
        self.client_id = env_config.graph_client_id
        self.client_secret = env_config.graph_client_secret
        self.sender = env_config.mail_from
        self.timeout = timeout
        self._clock = clock

        self._session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @property
    def token_url(self) -> str:
        return TOKEN_URL_TEMPLATE.format(tenant_id=self.tenant_id)

    @property
    def send_mail_url(self) -> str:
        return SEND_MAIL_URL_TEMPLATE.format(sender=quote(self.sender, safe="@"))

    def get_access_token(self) -> str:
        """Return a valid access token, requesting a new one when needed.

        Raises:
            GraphDeliveryError: If the token endpoint fails or returns no token
        """
        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            logger.debug(
                "Requesting Graph access token",
                extra={"event": "graph.token.request", "tenant_id": self.tenant_id},
            )
            response = self._request(
                "POST",
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": GRAPH_SCOPE,
                    "grant_type": "client_credentials",
                },
            )

            try:
                payload = response.json()
                token = payload["access_token"]
                expires_in = int(payload.get("expires_in", 3600))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise GraphDeliveryError(
                    f"Token response from {self.token_url} has no access_token",
                    status_code=response.status_code,
                    url=self.token_url,
                ) from e

            self._token = token
            self._token_expires_at = self._clock() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            logger.info(
                "Graph access token acquired",
                extra={"event": "graph.token.acquired", "expires_in": expires_in},
            )
            return token

    def send(self, email: OutboundEmail) -> None:
        """Send one notice through Graph sendMail.

        Args:
            email: Rendered notice

        Raises:
            GraphDeliveryError: If the token or sendMail request fails
        """
        token = self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        # Fresh GUID per request
        request_id = str(uuid4())
        headers["client-request-id"] = request_id

        self._request("POST", self.send_mail_url, headers=headers, json_data=build_send_mail_payload(email))
        logger.debug(
            "Graph accepted message",
            extra={
                "event": "graph.send.accepted",
                "recipient": email.recipient,
                "client_request_id": request_id,
            },
        )

    def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        try:
            response = self._session.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "graph.request.timeout", "url": url},
            )
            raise GraphDeliveryError(
                f"Request to {url} timed out after {self.timeout} seconds",
                status_code=0,
                url=url,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "graph.request.error", "error_type": type(e).__name__, "url": url},
            )
            raise GraphDeliveryError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(
                f"HTTP {response.status_code} error from {url}: {detail}",
                extra={"event": "graph.request.error", "status_code": response.status_code, "url": url},
            )
            if response.status_code == 401:
                # Force a fresh token on the next send
                self._token = None
            raise GraphDeliveryError(
                f"HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
                url=url,
            )

        return response


def build_send_mail_payload(email: OutboundEmail) -> Dict[str, Any]:
    """Build the sendMail request body for one notice."""
    return {
        "message": {
            "subject": email.subject,
            "body": {
                "contentType": "HTML",
                "content": email.html_body,
            },
            "toRecipients": [
                {"emailAddress": {"address": email.recipient}},
            ],
        },
        "saveToSentItems": True,
    }


def _error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason or response.text[:200]

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("code") or str(error)
        if isinstance(error, str):
            return payload.get("error_description") or error
    return str(payload)[:200]
