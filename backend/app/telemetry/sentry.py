"""
Sentry Error Tracking
=====================

Error reporting for the signature API.

Unhandled exceptions reach Sentry through the FastAPI integration. Failures
the signature flow survives on purpose (confirmation email not delivered,
sent-email back-fill lost) are reported by hand with `capture_exception` /
`capture_message`, since the signer never sees a 500 for them.

Environment Variables:
- SENTRY_DSN: project DSN; reporting is off when unset
- ENVIRONMENT: production, staging, development (default)
- RELEASE_VERSION: release identifier from CI

Related files:
- app/main.py: calls init_sentry() in create_app()
- app/services/notification_service.py: email failures
- app/services/signature_service.py: back-fill failures
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)

# Extra keys that may carry signer PII
_SCRUBBED_EXTRAS = ("email", "name", "ip_address")


def get_sentry_dsn() -> Optional[str]:
    return os.environ.get("SENTRY_DSN")


def is_enabled() -> bool:
    return sentry_sdk.get_client().is_active()


def _scrub_event(event: dict, hint: dict) -> dict:
    extra = event.get("extra") or {}
    for key in _SCRUBBED_EXTRAS:
        if key in extra:
            extra[key] = "[scrubbed]"
    return event


def init_sentry() -> bool:
    """Start the SDK when SENTRY_DSN is configured.

    Returns True when reporting is on.
    """
    dsn = get_sentry_dsn()
    if not dsn:
        logger.debug("[SENTRY] SENTRY_DSN not set, error reporting disabled")
        return False

    environment = os.environ.get("ENVIRONMENT", "development")
    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=os.environ.get("RELEASE_VERSION"),
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                # INFO lines become breadcrumbs, ERROR lines become events
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
            before_send=_scrub_event,
        )
    except Exception as e:
        logger.error(f"[SENTRY] Failed to initialize: {e}")
        return False

    logger.info(f"[SENTRY] Reporting enabled ({environment})")
    return True


def _with_extras(extra: Optional[dict[str, Any]], report) -> None:
    with sentry_sdk.new_scope() as scope:
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        report()


def capture_exception(exception: Exception, extra: Optional[dict[str, Any]] = None) -> None:
    """Report an exception that was caught and handled.

    Example:
        except Exception as e:
            capture_exception(e, extra={"signature_id": signature.id})
    """
    if not is_enabled():
        logger.debug(f"[SENTRY] Disabled, not reporting: {exception}")
        return
    try:
        _with_extras(extra, lambda: sentry_sdk.capture_exception(exception))
    except Exception as e:
        logger.error(f"[SENTRY] Failed to capture exception: {e}")


def capture_message(message: str, level: str = "info", extra: Optional[dict[str, Any]] = None) -> None:
    """Report a notable non-exception event."""
    if not is_enabled():
        logger.log(logging.getLevelName(level.upper()), f"[SENTRY] Disabled, not reporting: {message}")
        return
    try:
        _with_extras(extra, lambda: sentry_sdk.capture_message(message, level=level))
    except Exception as e:
        logger.error(f"[SENTRY] Failed to capture message: {e}")
