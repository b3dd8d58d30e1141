from __future__ import annotations

import pytest

from exception_mailer.mailer import DeliveryError, build_backend


def test_selects_brevo_when_brevo_key_is_set():
    backend = build_backend("brevo", {"api_key": "brevo-key"})
    assert backend.provider == "brevo"


def test_selects_sendgrid_when_sendgrid_key_is_set():
    backend = build_backend("sendgrid", {"api_key": "sendgrid-key"})
    assert backend.provider == "sendgrid"


def test_selects_ses_when_region_is_set():
    backend = build_backend("ses", {"aws_region": "ap-northeast-1"})
    assert backend.provider == "ses"


def test_selects_recording_backend_for_test_provider():
    backend = build_backend("TEST")
    assert backend.provider == "test"


def test_raises_when_api_key_missing():
    with pytest.raises(DeliveryError):
        build_backend("brevo", {"api_key": "  "})


def test_raises_when_region_missing():
    with pytest.raises(DeliveryError):
        build_backend("ses", {})


def test_raises_for_unknown_provider():
    with pytest.raises(DeliveryError):
        build_backend("smtp", {"api_key": "key"})
