"""
Telemetry Module
================

Observability stack for the signature service.

Components:
- sentry.py: Error tracking for unhandled and handled failures

Environment Variables:
- SENTRY_DSN: Sentry project DSN

Usage:
    from app.telemetry import init_sentry

    init_sentry()
"""

from app.telemetry.sentry import (
    init_sentry,
    capture_exception,
    capture_message,
)

__all__ = [
    "init_sentry",
    "capture_exception",
    "capture_message",
]
