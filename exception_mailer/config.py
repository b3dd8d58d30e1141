from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

# --------------------------------
# Defaults

DEFAULT_SENDER_ADDRESS = '"Exception Notifier" <exception.notifier@example.com>'

DEFAULT_EMAIL_PREFIX = "[ERROR] "

# Sections for errors raised while handling a request
DEFAULT_SECTIONS = ("request", "session", "environment", "backtrace")

# Sections for errors raised outside a request (workers, jobs)
DEFAULT_BACKGROUND_SECTIONS = ("backtrace", "data")

# Subject length before "..." is appended
MAX_SUBJECT_LENGTH = 120

# HTTP timeout for API-based delivery backends (seconds)
DELIVERY_TIMEOUT_SECONDS = 20.0

BREVO_ENDPOINT = "https://api.brevo.com/v3/smtp/email"
# --------------------------------


@dataclass
class Settings:
    recipients: str
    sender_address: str = DEFAULT_SENDER_ADDRESS
    email_prefix: str = DEFAULT_EMAIL_PREFIX
    email_format: str = "text"
    delivery_provider: str = "brevo"
    brevo_api_key: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    aws_region: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None

    @staticmethod
    def from_env() -> "Settings":
        def require(name: str) -> str:
            value = os.getenv(name)
            if value is None or not value.strip():
                raise ValueError(f"Environment variable {name} is required.")
            return value.strip()

        def optional_with_default(name: str, default: str) -> str:
            value = os.getenv(name)
            if value is None or not value.strip():
                return default
            return value

        def optional(name: str) -> str | None:
            value = os.getenv(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        brevo_api_key = optional("BREVO_API_KEY")
        sendgrid_api_key = optional("SENDGRID_API_KEY")
        aws_region = optional("AWS_REGION") or optional("AWS_DEFAULT_REGION")

        provider = optional("DELIVERY_PROVIDER")
        if provider is None:
            if brevo_api_key:
                provider = "brevo"
            elif sendgrid_api_key:
                provider = "sendgrid"
            elif aws_region:
                provider = "ses"
            else:
                raise ValueError("Either BREVO_API_KEY, SENDGRID_API_KEY or AWS_REGION is required.")

        return Settings(
            recipients=require("EXCEPTION_RECIPIENTS"),
            sender_address=optional_with_default("SENDER_ADDRESS", DEFAULT_SENDER_ADDRESS).strip(),
            email_prefix=optional_with_default("EMAIL_PREFIX", DEFAULT_EMAIL_PREFIX),
            email_format=optional_with_default("EMAIL_FORMAT", "text").strip().lower(),
            delivery_provider=provider.lower(),
            brevo_api_key=brevo_api_key,
            sendgrid_api_key=sendgrid_api_key,
            aws_region=aws_region,
            aws_access_key_id=optional("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=optional("AWS_SECRET_ACCESS_KEY"),
            aws_session_token=optional("AWS_SESSION_TOKEN"),
        )

    def notifier_options(self) -> Dict[str, Any]:
        return {
            "sender": self.sender_address,
            "recipients": self.recipients,
            "email_prefix": self.email_prefix,
            "format": self.email_format,
        }
