from __future__ import annotations

import main


def test_main_fails_without_configuration(monkeypatch):
    monkeypatch.delenv("EXCEPTION_RECIPIENTS", raising=False)
    assert main.main([]) == 1


def test_main_sends_test_notification_with_recording_backend(monkeypatch):
    monkeypatch.setenv("EXCEPTION_RECIPIENTS", "ops@example.com")
    monkeypatch.setenv("DELIVERY_PROVIDER", "test")
    assert main.main(["--message", "hello"]) == 0


def test_main_fails_for_unknown_provider(monkeypatch):
    monkeypatch.setenv("EXCEPTION_RECIPIENTS", "ops@example.com")
    monkeypatch.setenv("DELIVERY_PROVIDER", "pigeon")
    assert main.main([]) == 1
