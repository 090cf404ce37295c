"""Error reporting helpers."""

from __future__ import annotations

import logging
from typing import Optional

import sentry_sdk

logger = logging.getLogger("obs")


def init_sentry(dsn: Optional[str] = None, env: Optional[str] = None) -> None:
    """Initialize Sentry if a DSN is provided."""
    if not dsn:
        logger.info("error_dsn not set; error sink disabled")
        return
    sentry_sdk.init(dsn=dsn, environment=env)


def capture_exception(exc: BaseException) -> None:
    """Forward an exception to Sentry if configured, else log it."""
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_exception(exc)
    else:
        logger.error("printer failure", exc_info=exc)
