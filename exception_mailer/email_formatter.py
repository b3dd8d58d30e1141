from __future__ import annotations

import html
import re
from typing import Any, List, Mapping

from .models import Message

_BANNER = "-------------------------------"
_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")


def inspect_object(value: Any) -> str:
    if isinstance(value, (dict, list, tuple, set, Mapping)):
        return repr(dict(value) if isinstance(value, Mapping) else value)
    return str(value)


def safe_encode(value: Any) -> str:
    """Return text that is valid UTF-8; undecodable characters become ``_``."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").replace("\ufffd", "_")
    return _SURROGATE_RE.sub("_", str(value))


def section_title(name: str) -> str:
    return name.replace("_", " ").title()


def format_section(value: Any) -> List[str]:
    if isinstance(value, Mapping):
        return [f"* {key}: {safe_encode(inspect_object(item))}" for key, item in value.items()]
    if isinstance(value, (list, tuple)):
        return [f"  {safe_encode(inspect_object(item))}" for item in value]
    return [safe_encode(inspect_object(value))]


def build_text_body(message: Message) -> str:
    lines = [safe_encode(message.subject), ""]
    for name, value in message.sections.items():
        lines.append(_BANNER)
        lines.append(section_title(name) + ":")
        lines.append(_BANNER)
        lines.append("")
        lines.extend(format_section(value))
        lines.append("")
    return "\n".join(lines)


def build_html_body(message: Message) -> str:
    parts = [
        "<!doctype html>",
        '<html><head><meta charset="UTF-8" /></head><body>',
        f"<h1>{html.escape(message.subject)}</h1>",
    ]
    for name, value in message.sections.items():
        parts.append(f"<h2>{html.escape(section_title(name))}</h2>")
        parts.append("<pre>" + html.escape("\n".join(format_section(value))) + "</pre>")
    parts.append("</body></html>")
    return "\n".join(parts)
