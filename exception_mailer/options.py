from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .config import (
    DEFAULT_BACKGROUND_SECTIONS,
    DEFAULT_EMAIL_PREFIX,
    DEFAULT_SECTIONS,
    DEFAULT_SENDER_ADDRESS,
)

logger = logging.getLogger(__name__)

# Diagnostic payload, never an option.
DATA_KEY = "data"

# Option names used by older exception notifiers.
_ALIASES = {
    "sender_address": "sender",
    "exception_recipients": "recipients",
    "email_format": "format",
    "email_headers": "headers",
    "subject_prefix": "email_prefix",
    "delivery_method": "delivery_backend",
    "mailer_settings": "delivery_settings",
}

_MERGED_KEYS = ("headers", "delivery_settings")
_TUPLE_KEYS = ("recipients", "sections", "background_sections")
_BOOL_KEYS = (
    "verbose_subject",
    "normalize_subject",
    "skip_subject_action_name",
    "skip_subject_class_name",
)


class ConfigError(Exception):
    """Raised when required notification options are unusable."""


def _frozen(mapping: Optional[Mapping[str, Any]] = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class NotifierOptions:
    sender: str = DEFAULT_SENDER_ADDRESS
    recipients: Tuple[str, ...] = ()
    email_prefix: str = DEFAULT_EMAIL_PREFIX
    format: str = "text"
    sections: Tuple[str, ...] = DEFAULT_SECTIONS
    background_sections: Tuple[str, ...] = DEFAULT_BACKGROUND_SECTIONS
    verbose_subject: bool = True
    normalize_subject: bool = False
    skip_subject_action_name: bool = False
    skip_subject_class_name: bool = False
    headers: Mapping[str, str] = field(default_factory=_frozen)
    pre_callback: Optional[Callable[..., Any]] = None
    post_callback: Optional[Callable[..., Any]] = None
    delivery_backend: Optional[str] = None
    delivery_settings: Mapping[str, Any] = field(default_factory=_frozen)

    def is_html(self) -> bool:
        return self.format == "html"


DEFAULT_OPTIONS = NotifierOptions()

_FIELD_NAMES = frozenset(f.name for f in fields(NotifierOptions))


def merge_option_layers(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Flatten option mappings into one dict; earlier layers win.

    Aliases are mapped to their canonical names, ``data`` and unknown keys are
    dropped, and ``headers``/``delivery_settings`` are merged key by key.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        if not isinstance(layer, Mapping):
            logger.warning("Ignoring non-mapping notifier options: %r", layer)
            continue
        for raw_key, value in layer.items():
            key = _ALIASES.get(raw_key, raw_key)
            if key == DATA_KEY:
                continue
            if key not in _FIELD_NAMES:
                logger.debug("Ignoring unknown notifier option %r", raw_key)
                continue
            if key in _MERGED_KEYS:
                if value is not None and not isinstance(value, Mapping):
                    logger.warning("Ignoring non-mapping value for option %r", raw_key)
                    continue
                combined = dict(value or {})
                combined.update(merged.get(key, {}))
                merged[key] = combined
            elif key not in merged:
                merged[key] = value
    return merged


def resolve_options(
    defaults: NotifierOptions,
    instance_config: Optional[Mapping[str, Any]],
    call_options: Optional[Mapping[str, Any]],
) -> NotifierOptions:
    """Build the effective options for one dispatch.

    Precedence is call options, then instance configuration, then ``defaults``.
    Never raises and never mutates its inputs; validation of required options
    happens in :func:`require_deliverable`.
    """
    layered = merge_option_layers(call_options, instance_config)
    changes: Dict[str, Any] = {}
    for key, value in layered.items():
        if key in _MERGED_KEYS:
            combined = dict(getattr(defaults, key))
            combined.update(value)
            changes[key] = _frozen(combined)
        else:
            changes[key] = _coerce(key, value)
    return replace(defaults, **changes)


def require_deliverable(options: NotifierOptions) -> None:
    if not isinstance(options.sender, str) or not options.sender.strip():
        raise ConfigError("A sender address is required.")
    if not options.recipients:
        raise ConfigError("At least one exception recipient is required.")
    for recipient in options.recipients:
        if not isinstance(recipient, str) or not recipient.strip():
            raise ConfigError(f"Invalid exception recipient: {recipient!r}")


def _coerce(key: str, value: Any) -> Any:
    if key in _TUPLE_KEYS:
        return _as_tuple(value)
    if key in _BOOL_KEYS:
        return bool(value)
    if key == "format":
        return str(value or "text").lower()
    if key == "email_prefix":
        return "" if value is None else str(value)
    return value


def _as_tuple(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(v.strip() if isinstance(v, str) else v for v in value)
    return (value,)
