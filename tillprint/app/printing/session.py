"""Printer session used by the rest of the application.

The session owns the observable :class:`PrinterState` and the fallback
policy: a receipt that cannot reach the thermal printer is rendered for the
browser print dialog instead, so a committed sale is never held up by
hardware.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import BaseModel

from ..domain.receipt import ReceiptData
from ..obs import capture_exception
from .errors import PrinterError
from .receipt import ReceiptProfile, build_test_page
from .sinks import HtmlPrintSink, ReceiptSink, UsbEscPosSink
from .transport import UsbTransportManager
from .usb import DeviceChooser, PyUsbPlatform, UsbPlatform

logger = logging.getLogger("printer")

NO_PRINTER_SELECTED = "No printer selected"
PRINTER_DISCONNECTED = "Printer disconnected"


class PrinterState(BaseModel):
    is_connected: bool = False
    is_connecting: bool = False
    is_printing: bool = False
    last_error: Optional[str] = None


class PrintOutcome(BaseModel):
    channel: Literal["usb", "html", "none"]
    printed: bool
    error: Optional[str] = None
    warning: Optional[str] = None


class PrinterSession:
    """Connect, disconnect and print with UI-observable state."""

    def __init__(
        self,
        transport: UsbTransportManager,
        usb_sink: UsbEscPosSink,
        fallback_sink: ReceiptSink,
    ) -> None:
        self.transport = transport
        self.usb_sink = usb_sink
        self.fallback_sink = fallback_sink
        self._state = PrinterState()

    @property
    def state(self) -> PrinterState:
        return self._state.model_copy()

    async def start(self) -> bool:
        """Silently reattach a previously authorized printer.

        Finding none is the normal first-run state and records no error.
        """

        reconnected = await self.transport.reconnect()
        self._state.is_connected = reconnected
        return reconnected

    async def connect(self, chooser: DeviceChooser) -> None:
        self._state.is_connecting = True
        self._state.last_error = None
        try:
            success = await self.transport.connect(chooser)
            self._state.is_connected = success
            if not success:
                self._state.last_error = NO_PRINTER_SELECTED
        except PrinterError as exc:
            self._state.last_error = str(exc)
            self._state.is_connected = False
            raise
        finally:
            self._state.is_connecting = False

    async def disconnect(self) -> None:
        self._state.last_error = None
        await self.transport.disconnect()
        self._state.is_connected = False

    async def test_print(self) -> None:
        self._state.is_printing = True
        self._state.last_error = None
        try:
            await self.transport.send(build_test_page())
            self._state.is_connected = True
        except PrinterError as exc:
            self._state.last_error = str(exc)
            self._state.is_connected = False
            raise
        finally:
            self._state.is_printing = False

    async def print_receipt(self, data: ReceiptData) -> PrintOutcome:
        """Print ``data`` natively, falling back to the browser once.

        Printing failures are recorded on the state and never raised.
        """

        self._state.is_printing = True
        self._state.last_error = None
        try:
            error = self.usb_sink.unavailable_reason()
            if error is None:
                result = await self.usb_sink.emit(data)
                if result.ok:
                    self._state.is_connected = True
                    logger.info(
                        "receipt printed",
                        extra={"sale": data.sale_number, "channel": result.channel},
                    )
                    return PrintOutcome(channel="usb", printed=True)
                error = result.error
                capture_exception(result.exc or PrinterError(error))

            logger.warning(
                "native print failed, falling back to print dialog: %s",
                error,
                extra={"sale": data.sale_number},
            )
            self._state.last_error = error
            self._state.is_connected = False
            return await self._fallback(data, error)
        finally:
            self._state.is_printing = False

    async def _fallback(self, data: ReceiptData, error: Optional[str]) -> PrintOutcome:
        result = await self.fallback_sink.emit(data)
        if result.ok:
            return PrintOutcome(channel="html", printed=True, error=error)
        logger.warning(
            "fallback print failed: %s",
            result.error,
            extra={"sale": data.sale_number, "channel": result.channel},
        )
        return PrintOutcome(channel="none", printed=False, error=error, warning=result.error)

    def on_device_disconnected(self) -> None:
        """Reflect a physical unplug reported by the platform."""

        self.transport.forget()
        self._state.is_connected = False
        self._state.last_error = PRINTER_DISCONNECTED


def create_session(settings, platform: Optional[UsbPlatform] = None) -> PrinterSession:
    """Wire a session from application settings."""

    if platform is None:
        platform = PyUsbPlatform(
            settings.usb_authorized_devices, settings.usb_write_timeout_ms
        )
    profile = ReceiptProfile.from_settings(settings)
    transport = UsbTransportManager(platform)
    return PrinterSession(
        transport,
        UsbEscPosSink(transport, profile),
        HtmlPrintSink(profile),
    )
