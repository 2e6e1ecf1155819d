"""
Email delivery transports.

Every transport sends one composed message to one recipient and either
returns a DeliveryReceipt or raises a TransportError subclass:

- TransportAuthError: credentials rejected
- TransportRateLimitError: provider quota or rate limit hit
- TransportRecipientError: malformed or refused recipient address
- TransportError: anything else (network failure, unexpected response)

Variants:
- GmailTransport: OAuth2 refresh token -> access token, then the Gmail
  ``messages.send`` API with a base64url-encoded MIME payload (httpx)
- SendGridTransport: SendGrid v3 API with a fixed, pre-verified sender
- ConsoleTransport: logs and keeps sent messages in memory, for local runs
  and tests

Exactly one is selected at deploy time by ``build_transport``.
"""

import base64
import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Callable, Optional
from urllib.error import URLError

import httpx
from python_http_client.exceptions import HTTPError as SendGridHTTPError

from tagscan.config import TagScanSettings, TransportKind
from tagscan.errors import (
    ConfigurationError,
    TransportAuthError,
    TransportError,
    TransportRateLimitError,
    TransportRecipientError,
)
from tagscan.models import utc_now

logger = logging.getLogger("transports")

# One address, no display name, no list separators
EMAIL_PATTERN = re.compile(r"^[^@\s<>,;]+@[^@\s<>,;]+\.[^@\s<>,;]+$")


@dataclass
class DeliveryReceipt:
    """Confirmation that a provider accepted a message."""
    provider: str
    recipient: str
    subject: str
    message_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def __str__(self) -> str:
        return f"✓ EMAIL via {self.provider} to {self.recipient}: {self.subject}"


class DeliveryTransport(ABC):
    """Base class for all transports."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for logging."""

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> DeliveryReceipt:
        """
        Send one email.

        Args:
            to: Recipient address
            subject: Subject line
            html_body: HTML content
            text_body: Optional plain-text alternative

        Returns:
            DeliveryReceipt from the provider

        Raises:
            TransportError: Delivery failed (see module docstring for subkinds)
        """
        if not to or not EMAIL_PATTERN.match(to):
            raise TransportRecipientError(
                f"Malformed recipient address: {to!r}", provider=self.provider_name
            )

        try:
            receipt = self._deliver(to, subject, html_body, text_body)
        except TransportError as e:
            logger.error(f"[EMAIL FAILED] via {self.provider_name} To: {to} | {type(e).__name__}: {e}")
            raise

        logger.info(f"[EMAIL] via {self.provider_name} To: {to} | Subject: {subject}")
        return receipt

    @abstractmethod
    def _deliver(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: Optional[str],
    ) -> DeliveryReceipt:
        """Provider-specific send; the recipient has already been checked."""


# =============================================================================
# Console
# =============================================================================

class ConsoleTransport(DeliveryTransport):
    """
    Logs emails instead of sending them.

    Tracks sent messages for test assertions, and can be told to fail with
    a given error to exercise the failure path.
    """

    def __init__(self, fail_with: Optional[TransportError] = None):
        self.fail_with = fail_with
        self.sent_messages: list[DeliveryReceipt] = []
        self._lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "console"

    def _deliver(self, to, subject, html_body, text_body) -> DeliveryReceipt:
        if self.fail_with is not None:
            raise self.fail_with

        receipt = DeliveryReceipt(provider=self.provider_name, recipient=to, subject=subject)
        logger.debug(f"[EMAIL BODY] {text_body or html_body}")
        with self._lock:
            self.sent_messages.append(receipt)
        return receipt

    def get_sent_count(self) -> int:
        """Get the number of messages sent (for testing)."""
        return len(self.sent_messages)

    def find_message_to(self, recipient: str) -> Optional[DeliveryReceipt]:
        """Find a message sent to a specific recipient."""
        for msg in self.sent_messages:
            if msg.recipient == recipient:
                return msg
        return None

    def clear_history(self):
        self.sent_messages.clear()


# =============================================================================
# SendGrid
# =============================================================================

class SendGridTransport(DeliveryTransport):
    """
    SendGrid v3 mail send.

    The sender address must be a verified Sender Identity in SendGrid,
    otherwise every send fails with 403.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        sender_name: Optional[str] = None,
        timeout: float = 30.0,
        client: Any = None,
    ):
        """
        Args:
            api_key: SendGrid API key
            sender: Pre-verified sender address
            sender_name: Optional display name for the sender
            timeout: Seconds before a send request is abandoned
            client: SendGridAPIClient, created lazily when not given
        """
        self.api_key = api_key
        self.sender = sender
        self.sender_name = sender_name
        self.timeout = timeout
        self._client = client

    @property
    def provider_name(self) -> str:
        return "sendgrid"

    def _get_client(self):
        """Lazy-load SendGrid client."""
        if self._client is None:
            from sendgrid import SendGridAPIClient
            self._client = SendGridAPIClient(api_key=self.api_key)
            # Must stay below SCAN_LEASE_SECONDS
            self._client.client.timeout = self.timeout
        return self._client

    def _deliver(self, to, subject, html_body, text_body) -> DeliveryReceipt:
        from sendgrid.helpers.mail import From, Mail, To

        mail = Mail(
            from_email=From(self.sender, self.sender_name),
            to_emails=To(to),
            subject=subject,
            plain_text_content=text_body,
            html_content=html_body,
        )

        try:
            response = self._get_client().send(mail)
        except SendGridHTTPError as e:
            raise _sendgrid_error(e) from e
        except (URLError, TimeoutError) as e:
            raise TransportError(f"SendGrid unreachable: {e}", provider=self.provider_name) from e

        if response.status_code not in (200, 201, 202):
            raise TransportError(
                f"SendGrid returned status {response.status_code}",
                provider=self.provider_name,
                status=response.status_code,
            )

        return DeliveryReceipt(
            provider=self.provider_name,
            recipient=to,
            subject=subject,
            message_id=response.headers.get("X-Message-Id"),
        )


def _sendgrid_error(e: SendGridHTTPError) -> TransportError:
    """Map a SendGrid HTTP error onto the transport error kinds."""
    status = getattr(e, "status_code", None)
    errors = _decode_json(getattr(e, "body", None)).get("errors") or []
    detail = "; ".join(str(err.get("message", "")) for err in errors if isinstance(err, dict))
    message = f"SendGrid returned status {status}" + (f": {detail}" if detail else "")

    if status in (401, 403):
        return TransportAuthError(message, provider="sendgrid", status=status)
    if status == 429:
        return TransportRateLimitError(message, provider="sendgrid", status=status)
    if status == 400 and any(
        ".to." in str(err.get("field", "")) or str(err.get("field", "")).endswith(".to")
        for err in errors if isinstance(err, dict)
    ):
        return TransportRecipientError(message, provider="sendgrid", status=status)
    return TransportError(message, provider="sendgrid", status=status)


# =============================================================================
# Gmail (OAuth2)
# =============================================================================

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

# Refresh the access token this long before Google says it expires
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)

GMAIL_RATE_LIMIT_REASONS = {
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "quotaExceeded",
}


class GmailTransport(DeliveryTransport):
    """
    Gmail API send authenticated with a stored OAuth2 refresh token.

    Access tokens are short-lived; one is fetched on first use and reused
    until shortly before it expires.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        sender: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.sender = sender
        self.clock = clock
        self.http = http_client or httpx.Client(timeout=httpx.Timeout(timeout, connect=10.0))

        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._token_lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "gmail"

    def get_access_token(self) -> str:
        """Return a valid access token, refreshing it when needed."""
        with self._token_lock:
            now = self.clock()
            if self._access_token and self._token_expires_at - TOKEN_EXPIRY_MARGIN > now:
                return self._access_token

            try:
                response = self.http.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": self.refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
            except httpx.HTTPError as e:
                raise TransportError(f"Google token endpoint unreachable: {e}", provider="gmail") from e

            if response.status_code != 200:
                body = _decode_json(response.content)
                message = f"Token refresh failed ({response.status_code}): {body.get('error', response.text)}"
                # invalid_grant: refresh token revoked or expired; invalid_client: bad id/secret
                if response.status_code in (400, 401, 403):
                    raise TransportAuthError(message, provider="gmail", status=response.status_code)
                raise TransportError(message, provider="gmail", status=response.status_code)

            tokens = response.json()
            access_token = tokens.get("access_token")
            if not access_token:
                raise TransportAuthError("Token response missing access_token", provider="gmail")

            self._access_token = access_token
            self._token_expires_at = now + timedelta(seconds=int(tokens.get("expires_in", 3600)))
            logger.debug(f"Refreshed Gmail access token, valid until {self._token_expires_at.isoformat()}")
            return access_token

    def build_mime(self, to: str, subject: str, html_body: str, text_body: Optional[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _deliver(self, to, subject, html_body, text_body) -> DeliveryReceipt:
        raw = base64.urlsafe_b64encode(
            self.build_mime(to, subject, html_body, text_body).as_bytes()
        ).decode("ascii")
        token = self.get_access_token()

        try:
            response = self.http.post(
                GMAIL_SEND_URL,
                json={"raw": raw},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Gmail API unreachable: {e}", provider="gmail") from e

        if response.status_code == 401:
            # Token revoked server-side; drop it so the next send refreshes
            with self._token_lock:
                self._access_token = None
        if response.status_code != 200:
            raise _gmail_error(response)

        return DeliveryReceipt(
            provider=self.provider_name,
            recipient=to,
            subject=subject,
            message_id=_decode_json(response.content).get("id"),
        )


def _gmail_error(response: httpx.Response) -> TransportError:
    """Map a Gmail API error response onto the transport error kinds."""
    status = response.status_code
    error = _decode_json(response.content).get("error") or {}
    if not isinstance(error, dict):
        error = {"message": str(error)}
    reasons = {e.get("reason") for e in error.get("errors", []) if isinstance(e, dict)}
    detail = error.get("message", "")
    message = f"Gmail API returned status {status}" + (f": {detail}" if detail else "")

    if status == 429 or reasons & GMAIL_RATE_LIMIT_REASONS:
        return TransportRateLimitError(message, provider="gmail", status=status)
    if status in (401, 403):
        return TransportAuthError(message, provider="gmail", status=status)
    if status == 400 and ("to header" in detail.lower() or "recipient" in detail.lower()):
        return TransportRecipientError(message, provider="gmail", status=status)
    return TransportError(message, provider="gmail", status=status)


def _decode_json(body: Any) -> dict:
    if not body:
        return {}
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


# =============================================================================
# Selection
# =============================================================================

def build_transport(settings: TagScanSettings) -> DeliveryTransport:
    """
    Create the transport selected by ``EMAIL_TRANSPORT``.

    Raises:
        ConfigurationError: The selected transport lacks credentials
    """
    missing = settings.missing_credentials()
    if missing:
        raise ConfigurationError(
            f"{settings.email_transport.value} transport not configured, missing: {', '.join(missing)}"
        )

    if settings.email_transport == TransportKind.SENDGRID:
        return SendGridTransport(
            api_key=settings.sendgrid_api_key,
            sender=settings.sendgrid_sender,
            sender_name=settings.sendgrid_sender_name,
            timeout=settings.http_timeout_seconds,
        )
    if settings.email_transport == TransportKind.GMAIL:
        return GmailTransport(
            client_id=settings.gmail_client_id,
            client_secret=settings.gmail_client_secret,
            refresh_token=settings.gmail_refresh_token,
            sender=settings.gmail_email,
            timeout=settings.http_timeout_seconds,
        )
    if settings.email_transport == TransportKind.CONSOLE:
        logger.warning("EMAIL_TRANSPORT=console: emails are logged, not delivered")
        return ConsoleTransport()

    raise ConfigurationError(f"Unknown email transport: {settings.email_transport}")
