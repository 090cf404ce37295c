"""Destinations a receipt can be emitted to.

Sinks report failures through :class:`SinkResult` instead of raising, so
the session decides between channels with ordinary control flow.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from jinja2 import TemplateError

from ..domain.receipt import ReceiptData
from .errors import PrinterError
from .fallback import open_in_browser, render_receipt_html
from .receipt import DEFAULT_PROFILE, ReceiptProfile, build_receipt
from .transport import UsbTransportManager

logger = logging.getLogger("printer")

POPUP_BLOCKED = "Allow pop-ups to print"


@dataclass(frozen=True)
class SinkResult:
    ok: bool
    channel: str
    error: Optional[str] = None
    exc: Optional[BaseException] = None


class ReceiptSink(Protocol):
    channel: str

    async def emit(self, data: ReceiptData) -> SinkResult: ...


class UsbEscPosSink:
    """Format the receipt as ESC/POS and stream it over USB."""

    channel = "usb"

    def __init__(
        self, transport: UsbTransportManager, profile: ReceiptProfile = DEFAULT_PROFILE
    ) -> None:
        self.transport = transport
        self.profile = profile

    def unavailable_reason(self) -> Optional[str]:
        caps = self.transport.platform.capabilities()
        if not caps.usb_available:
            return caps.detail or "USB is not supported on this host"
        if self.transport.device is None:
            return "Printer not connected"
        return None

    async def emit(self, data: ReceiptData) -> SinkResult:
        buffer = build_receipt(data, self.profile)
        try:
            await self.transport.send(buffer)
        except PrinterError as exc:
            return SinkResult(False, self.channel, str(exc), exc)
        return SinkResult(True, self.channel)


class HtmlPrintSink:
    """Render the receipt as HTML and hand it to the browser print dialog."""

    channel = "html"

    def __init__(
        self,
        profile: ReceiptProfile = DEFAULT_PROFILE,
        opener: Callable[[str], bool] = open_in_browser,
    ) -> None:
        self.profile = profile
        self.opener = opener

    async def emit(self, data: ReceiptData) -> SinkResult:
        try:
            html = render_receipt_html(data, self.profile)
        except TemplateError as exc:
            logger.error("fallback render failed: %s", exc, extra={"sale": data.sale_number})
            return SinkResult(False, self.channel, str(exc))
        opened = await asyncio.to_thread(self.opener, html)
        if not opened:
            return SinkResult(False, self.channel, POPUP_BLOCKED)
        return SinkResult(True, self.channel)
