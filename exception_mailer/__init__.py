"""E-mail notifications for application errors."""

from .mailer import DeliveryError, RecordingBackend, build_backend
from .models import DeliveryReceipt, DispatchResult, ErrorEvent, Message, RequestContext
from .notifier import CallbackError, ExceptionNotifier
from .options import DEFAULT_OPTIONS, ConfigError, NotifierOptions, resolve_options
from .sections import ContextExtractor, ExtractionError

__all__ = [
    "CallbackError",
    "ConfigError",
    "ContextExtractor",
    "DEFAULT_OPTIONS",
    "DeliveryError",
    "DeliveryReceipt",
    "DispatchResult",
    "ErrorEvent",
    "ExceptionNotifier",
    "ExtractionError",
    "Message",
    "NotifierOptions",
    "RecordingBackend",
    "RequestContext",
    "build_backend",
    "resolve_options",
]
