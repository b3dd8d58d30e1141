from __future__ import annotations

import re
from typing import Optional

from .config import MAX_SUBJECT_LENGTH
from .models import ErrorEvent
from .options import NotifierOptions

_DIGITS_RE = re.compile(r"[0-9]+")


def normalize_digits(text: str) -> str:
    """Replace every run of digits with ``N`` so similar alerts share a subject."""
    return _DIGITS_RE.sub("N", text)


def truncate_subject(text: str, max_chars: int = MAX_SUBJECT_LENGTH) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def build_subject(event: ErrorEvent, action_name: Optional[str], options: NotifierOptions) -> str:
    subject = options.email_prefix or ""
    if action_name and not options.skip_subject_action_name:
        subject += action_name  # type: ignore[operator]
    if not options.skip_subject_class_name:
        subject = _append(subject, f"({event.class_name})")
    if options.verbose_subject:
        message = event.message or ""
        if not options.skip_subject_action_name:
            subject = _append(subject, repr(message))
        elif message:
            subject = _append(subject, message)
    if options.normalize_subject:
        subject = normalize_digits(subject)
    return truncate_subject(subject)


def _append(subject: str, piece: str) -> str:
    if not subject or subject[-1].isspace():
        return subject + piece
    return f"{subject} {piece}"
