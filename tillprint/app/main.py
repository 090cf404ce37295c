# main.py

"""FastAPI application exposing the till's receipt printer."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from config import Settings, get_settings

from .error_handlers import install_error_handlers
from .middlewares import LoggingMiddleware
from .obs import init_sentry
from .obs.logging import configure_logging
from .printing.session import create_session
from .printing.usb import UsbPlatform
from .routes_print import router as print_router
from .services import printer_watchdog

logger = logging.getLogger("api")


def create_app(
    settings: Optional[Settings] = None, platform: Optional[UsbPlatform] = None
) -> FastAPI:
    """Build the app; ``platform`` replaces the PyUSB backend when given."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level.upper())
        init_sentry(settings.error_dsn, env=settings.env)

        session = create_session(settings, platform)
        app.state.printer = session
        reconnected = await session.start()
        logger.info("printer session started", extra={"channel": "usb" if reconnected else None})

        watchdog = None
        if settings.watchdog_interval_secs > 0:
            watchdog = asyncio.create_task(
                printer_watchdog.run(
                    session, session.transport.platform, settings.watchdog_interval_secs
                )
            )
        try:
            yield
        finally:
            if watchdog is not None:
                watchdog.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watchdog
            await session.disconnect()

    app = FastAPI(title="tillprint", version="0.1.0", lifespan=lifespan)
    app.add_middleware(LoggingMiddleware)
    install_error_handlers(app)
    app.include_router(print_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
