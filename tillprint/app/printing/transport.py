"""Ownership of the one USB printer handle."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import (
    DeviceInitError,
    PrinterConnectionError,
    PrinterError,
    PrinterNotConnectedError,
    TransferError,
    UnsupportedPlatformError,
)
from .usb import DIRECTION_OUT, TRANSFER_BULK, DeviceChooser, UsbDevice, UsbPlatform

logger = logging.getLogger("printer")

# Full-speed bulk packet size
CHUNK_SIZE = 64


class UsbTransportManager:
    """Connect, stream command buffers to, and release a USB printer.

    A failed transfer leaves the handle in place but marks the session
    uninitialized; the next :meth:`send` re-initializes the device before
    writing. Connecting to another device releases the one held first.
    Sends are serialized so concurrent callers queue rather than interleave
    chunks.
    """

    def __init__(self, platform: UsbPlatform, chunk_size: int = CHUNK_SIZE) -> None:
        self._platform = platform
        self._chunk_size = chunk_size
        self._device: Optional[UsbDevice] = None
        self._endpoint = 1
        self._initialized = False
        self._send_lock = asyncio.Lock()

    @property
    def platform(self) -> UsbPlatform:
        return self._platform

    @property
    def device(self) -> Optional[UsbDevice]:
        return self._device

    @property
    def endpoint(self) -> int:
        return self._endpoint

    async def connect(self, chooser: DeviceChooser) -> bool:
        """Let the user pick a device; ``False`` if the picker is dismissed."""

        caps = self._platform.capabilities()
        if not caps.usb_available:
            raise UnsupportedPlatformError(caps.detail or "USB is not supported on this host")

        try:
            device = await self._platform.request_device(chooser)
            if device is None:
                logger.info("printer picker dismissed")
                return False
            await self._release()
            await self._initialize(device)
        except PrinterError as exc:
            raise PrinterConnectionError(f"Failed to connect: {exc}") from exc
        self._initialized = True
        logger.info("printer connected", extra={"device": device.device_id})
        return True

    async def reconnect(self) -> bool:
        """Silently re-open the first previously authorized device."""

        if not self._platform.capabilities().usb_available:
            return False
        try:
            devices = await self._platform.get_devices()
            if not devices:
                self._initialized = False
                return False
            await self._release()
            await self._initialize(devices[0])
        except PrinterError as exc:
            logger.warning("printer reconnect failed: %s", exc)
            self._initialized = False
            return False
        self._initialized = True
        logger.info("printer reconnected", extra={"device": devices[0].device_id})
        return True

    async def _initialize(self, device: UsbDevice) -> None:
        try:
            if device.opened:
                try:
                    await device.close()
                except PrinterError:
                    pass
            await device.open()

            if device.configuration is None:
                await device.select_configuration(1)
            configuration = device.configuration
            if configuration is None or not configuration.interfaces:
                raise DeviceInitError("No interface found on printer")

            iface = configuration.interfaces[0]
            await device.claim_interface(iface.number)

            endpoints = iface.alternates[0].endpoints if iface.alternates else ()
            out_ep = next(
                (
                    ep
                    for ep in endpoints
                    if ep.direction == DIRECTION_OUT and ep.transfer_type == TRANSFER_BULK
                ),
                None,
            )
            if out_ep is None:
                raise DeviceInitError("No bulk OUT endpoint found on printer")

            self._endpoint = out_ep.number
            self._device = device
        except PrinterError as exc:
            self._device = None
            raise DeviceInitError(f"Device initialization failed: {exc}") from exc

    async def send(self, buffer: bytes) -> None:
        """Write ``buffer`` to the printer in :data:`CHUNK_SIZE` pieces."""

        async with self._send_lock:
            device = self._device
            if device is None:
                raise PrinterNotConnectedError("Printer not connected")

            try:
                if not self._initialized or not device.opened:
                    await self._initialize(device)
                    self._initialized = True
                for offset in range(0, len(buffer), self._chunk_size):
                    await device.transfer_out(
                        self._endpoint, buffer[offset : offset + self._chunk_size]
                    )
            except PrinterError as exc:
                self._initialized = False
                raise TransferError(f"Print failed: {exc}") from exc
        logger.debug("sent %d bytes", len(buffer), extra={"device": device.device_id})

    async def _release(self) -> None:
        """Close and drop the held device; close errors are logged only."""

        device = self._device
        self._device = None
        self._initialized = False
        if device is not None and device.opened:
            try:
                await device.close()
            except PrinterError as exc:
                logger.error(
                    "error closing printer: %s", exc, extra={"device": device.device_id}
                )

    async def disconnect(self) -> None:
        await self._release()
        logger.info("printer disconnected")

    def forget(self) -> None:
        """Drop the handle after the platform reported the device gone."""

        self._device = None
        self._initialized = False
