"""USB platform abstraction and its PyUSB implementation.

The transport manager only talks to the :class:`UsbDevice` and
:class:`UsbPlatform` protocols. :class:`PyUsbPlatform` backs them with
libusb through PyUSB; every blocking call runs in a worker thread so the
event loop is never stalled by a slow transfer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

import usb.backend.libusb1
import usb.core
import usb.util

from .errors import DeviceIOError

logger = logging.getLogger("printer")

DIRECTION_OUT = "out"
DIRECTION_IN = "in"
TRANSFER_BULK = "bulk"
TRANSFER_INTERRUPT = "interrupt"
TRANSFER_ISOCHRONOUS = "isochronous"
TRANSFER_CONTROL = "control"

_TRANSFER_TYPES = {
    usb.util.ENDPOINT_TYPE_BULK: TRANSFER_BULK,
    usb.util.ENDPOINT_TYPE_INTR: TRANSFER_INTERRUPT,
    usb.util.ENDPOINT_TYPE_ISO: TRANSFER_ISOCHRONOUS,
    usb.util.ENDPOINT_TYPE_CTRL: TRANSFER_CONTROL,
}


@dataclass(frozen=True)
class UsbEndpoint:
    number: int
    direction: str
    transfer_type: str


@dataclass(frozen=True)
class UsbAlternate:
    endpoints: Tuple[UsbEndpoint, ...]


@dataclass(frozen=True)
class UsbInterface:
    number: int
    alternates: Tuple[UsbAlternate, ...]


@dataclass(frozen=True)
class UsbConfiguration:
    value: int
    interfaces: Tuple[UsbInterface, ...]


@dataclass(frozen=True)
class PlatformCapabilities:
    usb_available: bool
    detail: Optional[str] = None


def format_device_id(vendor_id: int, product_id: int) -> str:
    return f"{vendor_id:04x}:{product_id:04x}"


def parse_device_id(value: str) -> Tuple[int, int]:
    """Parse ``"0416:5011"`` into ``(0x0416, 0x5011)``."""
    vendor, _, product = value.strip().partition(":")
    try:
        return int(vendor, 16), int(product, 16)
    except ValueError as exc:
        raise ValueError(f"invalid USB device id {value!r}") from exc


class UsbDevice(Protocol):
    vendor_id: int
    product_id: int
    product_name: Optional[str]

    @property
    def device_id(self) -> str: ...

    @property
    def opened(self) -> bool: ...

    @property
    def configuration(self) -> Optional[UsbConfiguration]: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def select_configuration(self, value: int) -> None: ...

    async def claim_interface(self, number: int) -> None: ...

    async def transfer_out(self, endpoint: int, data: bytes) -> int: ...


# Receives every attached device and returns the one the user picked, or
# ``None`` when the picker was dismissed.
DeviceChooser = Callable[[Sequence[UsbDevice]], Optional[UsbDevice]]


class UsbPlatform(Protocol):
    def capabilities(self) -> PlatformCapabilities: ...

    async def request_device(self, chooser: DeviceChooser) -> Optional[UsbDevice]: ...

    async def get_devices(self) -> List[UsbDevice]: ...

    async def list_devices(self) -> List[UsbDevice]: ...

    async def is_present(self, device: UsbDevice) -> bool: ...


def _describe_configuration(cfg) -> UsbConfiguration:
    """Convert a PyUSB configuration descriptor into value types."""

    grouped: dict[int, list[UsbAlternate]] = {}
    for intf in cfg:
        endpoints = []
        for ep in intf:
            direction = (
                DIRECTION_OUT
                if usb.util.endpoint_direction(ep.bEndpointAddress) == usb.util.ENDPOINT_OUT
                else DIRECTION_IN
            )
            endpoints.append(
                UsbEndpoint(
                    number=ep.bEndpointAddress & 0x0F,
                    direction=direction,
                    transfer_type=_TRANSFER_TYPES.get(
                        usb.util.endpoint_type(ep.bmAttributes), TRANSFER_CONTROL
                    ),
                )
            )
        grouped.setdefault(intf.bInterfaceNumber, []).append(
            UsbAlternate(endpoints=tuple(endpoints))
        )
    interfaces = tuple(
        UsbInterface(number=number, alternates=tuple(alternates))
        for number, alternates in sorted(grouped.items())
    )
    return UsbConfiguration(value=cfg.bConfigurationValue, interfaces=interfaces)


# Everything PyUSB raises for a failed or unsupported device call
USB_ERRORS = (usb.core.USBError, ValueError, NotImplementedError)


class PyUsbDevice:
    """:class:`UsbDevice` backed by a ``usb.core.Device``.

    Construction reads string and configuration descriptors, which blocks;
    :class:`PyUsbPlatform` only builds instances inside a worker thread.
    The configuration is cached and refreshed by the calls that change it.
    """

    def __init__(self, dev, write_timeout_ms: int = 5000) -> None:
        self._dev = dev
        self._opened = False
        self._claimed: set[int] = set()
        self._write_timeout_ms = write_timeout_ms
        self.vendor_id = dev.idVendor
        self.product_id = dev.idProduct
        self.product_name = self._read_product_name()
        self._configuration = self._read_configuration()

    def _read_product_name(self) -> Optional[str]:
        try:
            if not self._dev.iProduct:
                return None
            return usb.util.get_string(self._dev, self._dev.iProduct)
        except USB_ERRORS:
            # string descriptors need access rights we may not have yet
            return None

    def _read_configuration(self) -> Optional[UsbConfiguration]:
        try:
            cfg = self._dev.get_active_configuration()
        except USB_ERRORS:
            return None
        return _describe_configuration(cfg) if cfg is not None else None

    @property
    def device_id(self) -> str:
        return format_device_id(self.vendor_id, self.product_id)

    @property
    def opened(self) -> bool:
        return self._opened

    @property
    def configuration(self) -> Optional[UsbConfiguration]:
        return self._configuration

    async def _call(self, action: str, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except USB_ERRORS as exc:
            raise DeviceIOError(f"{action} failed: {exc}") from exc

    def _open_sync(self) -> Optional[UsbConfiguration]:
        # The Linux usblp driver grabs printers on plug; release it first.
        try:
            if self._dev.is_kernel_driver_active(0):
                self._dev.detach_kernel_driver(0)
        except NotImplementedError:
            pass
        return self._read_configuration()

    def _configure_sync(self, value: int) -> Optional[UsbConfiguration]:
        self._dev.set_configuration(value)
        return self._read_configuration()

    async def open(self) -> None:
        self._configuration = await self._call("open", self._open_sync)
        self._opened = True

    async def close(self) -> None:
        for number in sorted(self._claimed):
            await self._call("release interface", usb.util.release_interface, self._dev, number)
        self._claimed.clear()
        await self._call("close", usb.util.dispose_resources, self._dev)
        self._opened = False

    async def select_configuration(self, value: int) -> None:
        self._configuration = await self._call(
            "select configuration", self._configure_sync, value
        )

    async def claim_interface(self, number: int) -> None:
        await self._call("claim interface", usb.util.claim_interface, self._dev, number)
        self._claimed.add(number)

    async def transfer_out(self, endpoint: int, data: bytes) -> int:
        if not self._opened:
            raise DeviceIOError("transfer failed: device is closed")
        return await self._call(
            "transfer", self._dev.write, endpoint, data, self._write_timeout_ms
        )


class PyUsbPlatform:
    """USB access through libusb.

    ``authorized`` seeds the devices that :meth:`get_devices` may return
    without asking; picking a device through :meth:`request_device` adds it
    for the lifetime of the process.
    """

    def __init__(
        self, authorized: Iterable[str] = (), write_timeout_ms: int = 5000
    ) -> None:
        self._authorized = {parse_device_id(d) for d in authorized}
        self._write_timeout_ms = write_timeout_ms

    def capabilities(self) -> PlatformCapabilities:
        try:
            backend = usb.backend.libusb1.get_backend()
        except usb.core.NoBackendError:
            backend = None
        if backend is None:
            return PlatformCapabilities(False, "libusb backend not available on this host")
        return PlatformCapabilities(True)

    async def _find(self, **match) -> list:
        try:
            return await asyncio.to_thread(
                lambda: list(usb.core.find(find_all=True, **match))
            )
        except (usb.core.USBError, usb.core.NoBackendError) as exc:
            raise DeviceIOError(f"device enumeration failed: {exc}") from exc

    async def _wrap(self, keep=None) -> List[UsbDevice]:
        """Enumerate and wrap devices passing ``keep`` off the event loop."""

        def scan() -> List[UsbDevice]:
            return [
                PyUsbDevice(d, self._write_timeout_ms)
                for d in usb.core.find(find_all=True)
                if keep is None or keep(d)
            ]

        try:
            return await asyncio.to_thread(scan)
        except (usb.core.USBError, usb.core.NoBackendError) as exc:
            raise DeviceIOError(f"device enumeration failed: {exc}") from exc

    async def list_devices(self) -> List[UsbDevice]:
        return await self._wrap()

    async def request_device(self, chooser: DeviceChooser) -> Optional[UsbDevice]:
        devices = await self.list_devices()
        chosen = chooser(devices)
        if chosen is not None:
            self._authorized.add((chosen.vendor_id, chosen.product_id))
            logger.info("usb device authorized", extra={"device": chosen.device_id})
        return chosen

    async def get_devices(self) -> List[UsbDevice]:
        if not self._authorized:
            return []
        return await self._wrap(lambda d: (d.idVendor, d.idProduct) in self._authorized)

    async def is_present(self, device: UsbDevice) -> bool:
        found = await self._find(idVendor=device.vendor_id, idProduct=device.product_id)
        return bool(found)
