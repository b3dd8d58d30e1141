from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .mailer import DeliveryBackend, DeliveryError
from .models import DeliveryReceipt, DispatchResult, ErrorEvent, Message, RequestContext
from .options import (
    DATA_KEY,
    DEFAULT_OPTIONS,
    ConfigError,
    NotifierOptions,
    merge_option_layers,
    require_deliverable,
    resolve_options,
)
from .sections import ContextExtractor
from .subject import build_subject

logger = logging.getLogger(__name__)


class CallbackError(Exception):
    """Raised when a pre/post delivery callback fails."""


class ExceptionNotifier:
    """E-mails application errors to operators.

    Options are resolved once at construction (instance configuration over
    ``defaults``) and again per call with the call-time overrides on top.
    ``notify`` never raises: configuration, delivery and callback failures are
    logged and reported through the returned :class:`DispatchResult`.
    """

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        *,
        backend: Optional[DeliveryBackend] = None,
        backends: Optional[Mapping[str, DeliveryBackend]] = None,
        defaults: NotifierOptions = DEFAULT_OPTIONS,
        extractor: Optional[ContextExtractor] = None,
    ):
        self._options = resolve_options(defaults, options, None)
        self._backend = backend
        self._backends: Dict[str, DeliveryBackend] = dict(backends or {})
        self._extractor = extractor or ContextExtractor()

    @property
    def options(self) -> NotifierOptions:
        return self._options

    def __call__(
        self, error: Union[BaseException, ErrorEvent], context: Optional[RequestContext] = None, **call_options: Any
    ) -> DispatchResult:
        return self.notify(error, context, **call_options)

    def notify_exception(
        self, exc: BaseException, context: Optional[RequestContext] = None, **call_options: Any
    ) -> DispatchResult:
        return self.notify(ErrorEvent.from_exception(exc), context, **call_options)

    def notify(
        self, error: Union[BaseException, ErrorEvent], context: Optional[RequestContext] = None, **call_options: Any
    ) -> DispatchResult:
        event = error if isinstance(error, ErrorEvent) else ErrorEvent.from_exception(error)
        data = call_options.get(DATA_KEY)
        context_options = context.options if context is not None else None
        options = resolve_options(self._options, None, merge_option_layers(call_options, context_options))

        try:
            require_deliverable(options)
        except ConfigError as exc:
            logger.error("Exception notification skipped: %s", exc)
            return DispatchResult(delivered=False, error=exc)

        self._run_callback("pre_callback", options.pre_callback, event, context, options)

        background = context is None
        sections = self._extractor.extract(event, context, options, background, data=data)
        action_name = context.action if context is not None else None
        message = Message(
            sender=options.sender,
            recipients=tuple(options.recipients),
            subject=build_subject(event, action_name, options),
            sections=sections,
            format="html" if options.is_html() else "text",
            headers=options.headers,
            template_name="background_exception_notification" if background else "exception_notification",
            delivery_settings=options.delivery_settings,
        )

        receipt: Optional[DeliveryReceipt] = None
        error_out: Optional[Exception] = None
        try:
            receipt = self._select_backend(options).deliver(message)
        except DeliveryError as exc:
            logger.exception("Exception notification delivery failed: %s", exc)
            error_out = exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Exception notification delivery failed: %s", exc)
            wrapped = DeliveryError(f"Delivery backend failed: {exc}")
            wrapped.__cause__ = exc
            error_out = wrapped
        else:
            logger.info(
                "Exception notification sent via %s to %s recipient(s): %s",
                receipt.provider,
                len(message.recipients),
                message.subject,
            )

        self._run_callback("post_callback", options.post_callback, event, context, options, receipt)
        return DispatchResult(delivered=error_out is None, receipt=receipt, error=error_out, message=message)

    def _select_backend(self, options: NotifierOptions) -> DeliveryBackend:
        selector = options.delivery_backend
        if selector:
            backend = self._backends.get(selector)
            if backend is None and self._backend is not None and self._backend.provider == selector:
                backend = self._backend
            if backend is None:
                raise DeliveryError(f"No delivery backend registered as {selector!r}.")
            return backend
        if self._backend is None:
            raise DeliveryError("No delivery backend configured.")
        return self._backend

    def _run_callback(self, name: str, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            if not callable(callback):
                raise TypeError(f"{callback!r} is not callable")
            callback(*args)
        except Exception as exc:  # noqa: BLE001
            wrapped = CallbackError(f"{name} failed: {exc}")
            logger.warning("Ignoring %s", wrapped, exc_info=exc)
