from __future__ import annotations

import logging
import threading
from email.utils import parseaddr
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Email, Header, Mail

from .config import BREVO_ENDPOINT, DELIVERY_TIMEOUT_SECONDS
from .email_formatter import build_html_body, build_text_body
from .models import DeliveryReceipt, Message

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when a delivery backend fails to hand off a message."""


class DeliveryBackend(Protocol):
    provider: str

    def deliver(self, message: Message) -> DeliveryReceipt: ...


def split_address(address: str) -> Tuple[str, str]:
    """Split ``"Name" <addr@host>`` into ``(name, addr@host)``."""
    name, email = parseaddr(address)
    return name, email or address.strip()


def _bodies(message: Message) -> Tuple[str, Optional[str]]:
    text_body = build_text_body(message)
    html_body = build_html_body(message) if message.is_html() else None
    return text_body, html_body


class BrevoBackend:
    provider = "brevo"

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = BREVO_ENDPOINT,
        timeout: float = DELIVERY_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    def deliver(self, message: Message) -> DeliveryReceipt:
        sender_name, sender_email = split_address(message.sender)
        text_body, html_body = _bodies(message)
        payload: Dict[str, Any] = {
            "sender": {"name": sender_name, "email": sender_email},
            "to": [{"email": split_address(r)[1]} for r in message.recipients],
            "subject": message.subject,
            "textContent": text_body,
        }
        if html_body:
            payload["htmlContent"] = html_body
        if message.headers:
            payload["headers"] = dict(message.headers)

        headers = {"api-key": self._api_key, "content-type": "application/json"}
        timeout = float(message.delivery_settings.get("timeout", self._timeout))
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                response = client.post(self._endpoint, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DeliveryError(f"Brevo returned error status: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Failed to send email: {exc}") from exc

        message_id = None
        if response.content:
            try:
                message_id = response.json().get("messageId")
            except ValueError:
                logger.debug("Brevo response body is not JSON")
        logger.info("Mail sent with status %s", response.status_code)
        return DeliveryReceipt(provider=self.provider, status_code=response.status_code, message_id=message_id)


class SendGridBackend:
    provider = "sendgrid"

    def __init__(self, api_key: str, *, client: Any = None):
        self._client = client or SendGridAPIClient(api_key)

    def deliver(self, message: Message) -> DeliveryReceipt:
        sender_name, sender_email = split_address(message.sender)
        text_body, html_body = _bodies(message)
        mail = Mail(
            from_email=Email(email=sender_email, name=sender_name or None),
            to_emails=list(message.recipients),
            subject=message.subject,
            plain_text_content=text_body,
            html_content=html_body,
        )
        for name, value in message.headers.items():
            mail.add_header(Header(name, value))

        try:
            response = self._client.send(mail)
        except Exception as exc:  # noqa: BLE001
            raise DeliveryError(f"Failed to send email: {exc}") from exc
        if response.status_code >= 400:
            raise DeliveryError(f"SendGrid returned error status: {response.status_code}")

        response_headers = getattr(response, "headers", None) or {}
        logger.info("Mail sent with status %s", response.status_code)
        return DeliveryReceipt(
            provider=self.provider,
            status_code=response.status_code,
            message_id=response_headers.get("X-Message-Id"),
        )


class SESBackend:
    provider = "ses"

    def __init__(
        self,
        *,
        aws_region: str,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        aws_session_token: str | None = None,
        client: Any = None,
    ) -> None:
        if client is not None:
            self._client = client
            return
        client_kwargs = {"region_name": aws_region}
        if aws_access_key_id and aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if aws_session_token:
                client_kwargs["aws_session_token"] = aws_session_token
        self._client = boto3.client("sesv2", **client_kwargs)

    def deliver(self, message: Message) -> DeliveryReceipt:
        text_body, html_body = _bodies(message)
        body: dict[str, dict[str, str]] = {"Text": {"Data": text_body, "Charset": "UTF-8"}}
        if html_body:
            body["Html"] = {"Data": html_body, "Charset": "UTF-8"}

        simple: Dict[str, Any] = {
            "Subject": {"Data": message.subject, "Charset": "UTF-8"},
            "Body": body,
        }
        if message.headers:
            simple["Headers"] = [{"Name": k, "Value": v} for k, v in message.headers.items()]

        request = {
            "FromEmailAddress": message.sender,
            "Destination": {"ToAddresses": list(message.recipients)},
            "Content": {"Simple": simple},
        }
        try:
            response = self._client.send_email(**request)
        except (ClientError, BotoCoreError) as exc:
            raise DeliveryError(f"Failed to send email: {exc}") from exc

        status_code = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if isinstance(status_code, int) and status_code >= 400:
            raise DeliveryError(f"SES returned error status: {status_code}")
        logger.info("Mail sent with status %s", status_code)
        return DeliveryReceipt(provider=self.provider, status_code=status_code, message_id=response.get("MessageId"))


class RecordingBackend:
    """Keeps delivered messages in memory instead of sending them."""

    provider = "test"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outbox: List[Message] = []

    @property
    def deliveries(self) -> List[Message]:
        with self._lock:
            return list(self._outbox)

    def deliver(self, message: Message) -> DeliveryReceipt:
        with self._lock:
            self._outbox.append(message)
            count = len(self._outbox)
        return DeliveryReceipt(provider=self.provider, message_id=f"test-{count}")

    def clear(self) -> None:
        with self._lock:
            self._outbox.clear()


def build_backend(provider: str, settings: Optional[Mapping[str, Any]] = None) -> DeliveryBackend:
    """Construct a delivery backend by provider name.

    ``settings`` carries the provider credentials (``api_key`` for Brevo and
    SendGrid, ``aws_region`` and optional AWS keys for SES).
    """
    settings = settings or {}
    name = (provider or "").strip().lower()
    if name == "test":
        return RecordingBackend()
    if name in ("brevo", "sendgrid"):
        api_key = (settings.get("api_key") or "").strip()
        if not api_key:
            raise DeliveryError(f"No API key configured for {name}.")
        if name == "brevo":
            return BrevoBackend(api_key, timeout=float(settings.get("timeout", DELIVERY_TIMEOUT_SECONDS)))
        return SendGridBackend(api_key)
    if name == "ses":
        aws_region = (settings.get("aws_region") or "").strip()
        if not aws_region:
            raise DeliveryError("No AWS region configured: set AWS_REGION or AWS_DEFAULT_REGION.")
        return SESBackend(
            aws_region=aws_region,
            aws_access_key_id=settings.get("aws_access_key_id"),
            aws_secret_access_key=settings.get("aws_secret_access_key"),
            aws_session_token=settings.get("aws_session_token"),
        )
    raise DeliveryError(f"Unknown delivery provider: {provider!r}")
