from __future__ import annotations

import asyncio
import logging

from ..printing.errors import PrinterError
from ..printing.session import PrinterSession
from ..printing.usb import UsbPlatform

DEFAULT_INTERVAL = 5.0


async def check(session: PrinterSession, platform: UsbPlatform) -> bool:
    """Return whether the held printer is still attached.

    libusb offers no unplug callback through PyUSB, so presence is polled.
    When the device has vanished the session is told so it drops the handle
    and records the disconnect. Nothing held counts as present.
    """
    device = session.transport.device
    if device is None:
        return True
    try:
        present = await platform.is_present(device)
    except PrinterError as exc:
        logging.getLogger("printer").warning("printer presence check failed: %s", exc)
        return True
    if not present:
        logging.getLogger("printer").warning(
            "printer unplugged", extra={"device": device.device_id}
        )
        session.on_device_disconnected()
    return present


async def run(
    session: PrinterSession, platform: UsbPlatform, interval: float = DEFAULT_INTERVAL
) -> None:
    """Poll :func:`check` every ``interval`` seconds until cancelled."""
    while True:
        await check(session, platform)
        await asyncio.sleep(interval)
