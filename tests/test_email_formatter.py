from __future__ import annotations

from exception_mailer.email_formatter import build_html_body, build_text_body, inspect_object, safe_encode
from exception_mailer.models import Message


def _message() -> Message:
    return Message(
        sender="notifier@example.com",
        recipients=("ops@example.com",),
        subject="[ERROR] users#show (RuntimeError) '<boom>'",
        sections={
            "request": {"url": "/users/1", "params": {"id": "1"}},
            "backtrace": ["app.py:1:in run", "lib.py:2:in call"],
        },
        format="html",
    )


def test_build_text_body_lists_sections_in_order():
    body = build_text_body(_message())
    assert body.index("Request:") < body.index("Backtrace:")
    assert "* url: /users/1" in body
    assert "* params: {'id': '1'}" in body
    assert "  app.py:1:in run" in body


def test_build_html_body_escapes_content():
    body = build_html_body(_message())
    assert "&lt;boom&gt;" in body
    assert "<boom>" not in body
    assert "<h2>Backtrace</h2>" in body


def test_inspect_object_reprs_containers_only():
    assert inspect_object({"a": 1}) == "{'a': 1}"
    assert inspect_object([1, 2]) == "[1, 2]"
    assert inspect_object(42) == "42"


def test_safe_encode_replaces_invalid_characters():
    assert safe_encode(b"caf\xe9") == "caf_"
    assert safe_encode("ok\udcff") == "ok_"
    assert safe_encode("日本語") == "日本語"
