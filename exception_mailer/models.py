from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class ErrorEvent:
    class_name: str
    message: str = ""
    backtrace: Tuple[str, ...] = ()

    @staticmethod
    def from_exception(exc: BaseException) -> "ErrorEvent":
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        return ErrorEvent(
            class_name=type(exc).__name__,
            message=str(exc),
            backtrace=tuple(f"{f.filename}:{f.lineno}:in {f.name}" for f in frames),
        )


@dataclass(frozen=True)
class RequestContext:
    """Request-like data attached to a foreground error.

    ``data`` is ambient diagnostic data collected by the host while handling
    the request; ``options`` are per-request option overrides.
    """

    request: Mapping[str, Any] = field(default_factory=dict)
    session: Mapping[str, Any] = field(default_factory=dict)
    environment: Mapping[str, Any] = field(default_factory=dict)
    controller_name: Optional[str] = None
    action_name: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def action(self) -> Optional[str]:
        if self.controller_name and self.action_name:
            return f"{self.controller_name}#{self.action_name}"
        return self.action_name or self.controller_name


@dataclass(frozen=True)
class Message:
    sender: str
    recipients: Tuple[str, ...]
    subject: str
    sections: Mapping[str, Any]
    format: str = "text"
    headers: Mapping[str, str] = field(default_factory=_empty_mapping)
    template_name: str = "exception_notification"
    delivery_settings: Mapping[str, Any] = field(default_factory=_empty_mapping)

    def is_html(self) -> bool:
        return self.format == "html"


@dataclass(frozen=True)
class DeliveryReceipt:
    provider: str
    status_code: Optional[int] = None
    message_id: Optional[str] = None


@dataclass
class DispatchResult:
    delivered: bool
    receipt: Optional[DeliveryReceipt] = None
    error: Optional[Exception] = None
    message: Optional[Message] = None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


SectionBundle = Dict[str, Any]
