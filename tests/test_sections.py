from __future__ import annotations

import logging
from dataclasses import replace

from exception_mailer.models import ErrorEvent, RequestContext
from exception_mailer.options import DEFAULT_OPTIONS
from exception_mailer.sections import ContextExtractor, clean_backtrace, merge_data


def _event(backtrace=("app/models/user.py:10:in save", "app/jobs/sync.py:4:in run")) -> ErrorEvent:
    return ErrorEvent(class_name="RuntimeError", message="boom", backtrace=tuple(backtrace))


def _context(**kwargs) -> RequestContext:
    defaults = dict(
        request={"url": "http://example.com/users/1", "method": "GET"},
        session={"user_id": 1},
        environment={"SERVER_NAME": "example.com"},
        controller_name="users",
        action_name="show",
    )
    defaults.update(kwargs)
    return RequestContext(**defaults)


def test_background_without_data_has_no_data_section():
    extractor = ContextExtractor()
    bundle = extractor.extract(_event(), None, DEFAULT_OPTIONS, background=True, data={})
    assert "data" not in bundle
    assert list(bundle) == ["backtrace"]


def test_background_data_is_added_even_when_not_configured():
    options = replace(DEFAULT_OPTIONS, background_sections=("backtrace",))
    bundle = ContextExtractor().extract(_event(), None, options, background=True, data={"user_id": 5})
    assert bundle["data"] == {"user_id": 5}


def test_foreground_uses_request_sections():
    bundle = ContextExtractor().extract(_event(), _context(), DEFAULT_OPTIONS, background=False)
    assert list(bundle) == ["request", "session", "environment", "backtrace"]
    assert bundle["session"] == {"user_id": 1}


def test_foreground_data_merges_ambient_and_call_data():
    context = _context(data={"user_id": 1, "tenant": "acme"})
    bundle = ContextExtractor().extract(_event(), context, DEFAULT_OPTIONS, background=False, data={"user_id": 2})
    assert bundle["data"] == {"user_id": 2, "tenant": "acme"}
    assert list(bundle)[-1] == "data"


def test_empty_sections_are_omitted():
    context = _context(session={})
    bundle = ContextExtractor().extract(_event(backtrace=()), context, DEFAULT_OPTIONS, background=False)
    assert "session" not in bundle
    assert "backtrace" not in bundle


def test_unknown_section_is_skipped_with_warning(caplog):
    options = replace(DEFAULT_OPTIONS, background_sections=("backtrace", "queue"))
    with caplog.at_level(logging.WARNING):
        bundle = ContextExtractor().extract(_event(), None, options, background=True)
    assert "queue" not in bundle
    assert "queue" in caplog.text


def test_registered_strategy_is_used():
    extractor = ContextExtractor()
    extractor.register("queue", lambda event, context: {"name": "mailers", "class": event.class_name})
    options = replace(DEFAULT_OPTIONS, background_sections=("queue",))
    bundle = extractor.extract(_event(), None, options, background=True)
    assert bundle == {"queue": {"name": "mailers", "class": "RuntimeError"}}


def test_failing_strategy_drops_only_its_section(caplog):
    def broken(event, context):
        raise KeyError("missing")

    extractor = ContextExtractor({"request": broken})
    with caplog.at_level(logging.WARNING):
        bundle = extractor.extract(_event(), _context(), DEFAULT_OPTIONS, background=False)
    assert "request" not in bundle
    assert "session" in bundle
    assert "Dropping section 'request'" in caplog.text


def test_backtrace_is_cleaned_against_root():
    extractor = ContextExtractor(backtrace_root="/srv/app")
    event = _event(backtrace=("/srv/app/models/user.py:10:in save", "  ", "/usr/lib/python3/x.py:1:in y"))
    bundle = extractor.extract(event, None, DEFAULT_OPTIONS, background=True)
    assert bundle["backtrace"] == ["models/user.py:10:in save", "/usr/lib/python3/x.py:1:in y"]


def test_clean_backtrace_of_empty_frames():
    assert clean_backtrace([]) == []


def test_merge_data_prefers_explicit_values():
    assert merge_data({"a": 1, "b": 1}, {"b": 2}) == {"a": 1, "b": 2}
    assert merge_data(None, None) == {}


def test_merge_data_skips_non_mapping_sources():
    assert merge_data(["oops"], {"a": 1}) == {"a": 1}
    assert merge_data({"a": 1}, "oops") == {"a": 1}
