from __future__ import annotations

import argparse
import logging
import sys

from exception_mailer import config
from exception_mailer.mailer import DeliveryError, build_backend
from exception_mailer.notifier import ExceptionNotifier


class NotifierTestError(RuntimeError):
    pass


def _backend_settings(settings: config.Settings) -> dict:
    if settings.delivery_provider == "brevo":
        return {"api_key": settings.brevo_api_key}
    if settings.delivery_provider == "sendgrid":
        return {"api_key": settings.sendgrid_api_key}
    return {
        "aws_region": settings.aws_region,
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
        "aws_session_token": settings.aws_session_token,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Send a test exception notification.")
    parser.add_argument("--message", default="This is a test notification.")
    parser.add_argument("--format", choices=("text", "html"), default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        settings = config.Settings.from_env()
    except ValueError as exc:
        logging.error("Missing configuration: %s", exc)
        return 1

    try:
        backend = build_backend(settings.delivery_provider, _backend_settings(settings))
    except DeliveryError as exc:
        logging.error("Invalid delivery configuration: %s", exc)
        return 1
    logging.info("Using delivery provider=%s", backend.provider)

    notifier = ExceptionNotifier(settings.notifier_options(), backend=backend)
    call_options = {"format": args.format} if args.format else {}
    try:
        raise NotifierTestError(args.message)
    except NotifierTestError as exc:
        result = notifier.notify_exception(exc, data={"source": "main.py"}, **call_options)

    if not result.delivered:
        logging.error("Test notification failed: %s", result.error)
        return 1
    logging.info("Test notification delivered (message_id=%s)", result.receipt.message_id if result.receipt else None)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
