"""PyUSB adapter tests against in-memory descriptor objects."""

import asyncio
import threading

import pytest
import usb.backend.libusb1
import usb.core
import usb.util

from tillprint.app.printing.errors import DeviceIOError, TransferError
from tillprint.app.printing.receipt import DEFAULT_PROFILE
from tillprint.app.printing.session import PrinterSession
from tillprint.app.printing.sinks import HtmlPrintSink, UsbEscPosSink
from tillprint.app.printing.transport import UsbTransportManager
from tillprint.app.printing.usb import (
    PyUsbDevice,
    PyUsbPlatform,
    format_device_id,
    parse_device_id,
)
from tests._fakes import RecordingOpener, first


class _Endpoint:
    def __init__(self, address, attributes):
        self.bEndpointAddress = address
        self.bmAttributes = attributes


class _Interface(list):
    def __init__(self, number, endpoints):
        super().__init__(endpoints)
        self.bInterfaceNumber = number


class _Configuration(list):
    bConfigurationValue = 1


class _RawDevice:
    def __init__(self, vendor=0x0416, product=0x5011, configured=True, kernel_driver=True):
        self.idVendor = vendor
        self.idProduct = product
        self.iProduct = 0
        self.kernel_driver = kernel_driver
        self.configured = configured
        self.writes = []
        self.write_error = None
        self.descriptor_threads = set()
        self.cfg = _Configuration(
            [
                _Interface(
                    0,
                    [
                        _Endpoint(0x81, usb.util.ENDPOINT_TYPE_BULK),
                        _Endpoint(0x02, usb.util.ENDPOINT_TYPE_BULK),
                    ],
                )
            ]
        )

    def is_kernel_driver_active(self, interface):
        return self.kernel_driver

    def detach_kernel_driver(self, interface):
        self.kernel_driver = False

    def get_active_configuration(self):
        self.descriptor_threads.add(threading.get_ident())
        if not self.configured:
            raise usb.core.USBError("Configuration not set")
        return self.cfg

    def set_configuration(self, value=None):
        self.configured = True

    def write(self, endpoint, data, timeout=None):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((endpoint, bytes(data), timeout))
        return len(data)


@pytest.fixture
def raw_devices(monkeypatch):
    devices = [_RawDevice(), _RawDevice(vendor=0x1234, product=0x0001)]

    def find(find_all=False, **match):
        return iter(
            [d for d in devices if all(getattr(d, k) == v for k, v in match.items())]
        )

    monkeypatch.setattr(usb.core, "find", find)
    monkeypatch.setattr(usb.backend.libusb1, "get_backend", lambda: object())
    monkeypatch.setattr(usb.util, "claim_interface", lambda dev, n: None)
    monkeypatch.setattr(usb.util, "release_interface", lambda dev, n: None)
    monkeypatch.setattr(usb.util, "dispose_resources", lambda dev: None)
    return devices


def test_device_ids_round_trip():
    assert format_device_id(0x0416, 0x5011) == "0416:5011"
    assert parse_device_id(" 0416:5011 ") == (0x0416, 0x5011)
    with pytest.raises(ValueError):
        parse_device_id("printer")


def test_capabilities_without_backend(monkeypatch):
    monkeypatch.setattr(usb.backend.libusb1, "get_backend", lambda: None)
    caps = PyUsbPlatform().capabilities()
    assert caps.usb_available is False
    assert "libusb" in caps.detail


def test_list_devices_offers_everything(raw_devices):
    devices = asyncio.run(PyUsbPlatform().list_devices())
    assert [d.device_id for d in devices] == ["0416:5011", "1234:0001"]
    assert devices[0].product_name is None


def test_get_devices_only_returns_authorized(raw_devices):
    platform = PyUsbPlatform(["1234:0001"])
    assert [d.device_id for d in asyncio.run(platform.get_devices())] == ["1234:0001"]
    assert asyncio.run(PyUsbPlatform().get_devices()) == []


def test_picking_a_device_authorizes_it(raw_devices):
    platform = PyUsbPlatform()
    chosen = asyncio.run(platform.request_device(first))
    assert chosen.device_id == "0416:5011"
    assert [d.device_id for d in asyncio.run(platform.get_devices())] == ["0416:5011"]


def test_is_present(raw_devices):
    platform = PyUsbPlatform()
    device = asyncio.run(platform.list_devices())[0]
    assert asyncio.run(platform.is_present(device)) is True
    raw_devices.pop(0)
    assert asyncio.run(platform.is_present(device)) is False


def test_configuration_is_described(raw_devices):
    device = PyUsbDevice(raw_devices[0])
    cfg = device.configuration
    assert cfg.value == 1
    (iface,) = cfg.interfaces
    endpoints = iface.alternates[0].endpoints
    assert [(e.number, e.direction, e.transfer_type) for e in endpoints] == [
        (1, "in", "bulk"),
        (2, "out", "bulk"),
    ]


def test_unconfigured_device_has_no_configuration(raw_devices):
    assert PyUsbDevice(_RawDevice(configured=False)).configuration is None


def test_open_detaches_kernel_driver(raw_devices):
    raw = raw_devices[0]
    device = PyUsbDevice(raw)
    asyncio.run(device.open())
    assert device.opened
    assert raw.kernel_driver is False
    asyncio.run(device.close())
    assert not device.opened


def test_transfer_errors_are_wrapped(raw_devices):
    raw = raw_devices[0]
    device = PyUsbDevice(raw)
    with pytest.raises(DeviceIOError, match="device is closed"):
        asyncio.run(device.transfer_out(2, b"x"))
    asyncio.run(device.open())
    raw.write_error = usb.core.USBError("Operation timed out")
    with pytest.raises(DeviceIOError, match="transfer failed"):
        asyncio.run(device.transfer_out(2, b"x"))


def test_transport_streams_through_pyusb(raw_devices):
    raw = raw_devices[0]
    raw.configured = False
    transport = UsbTransportManager(PyUsbPlatform(write_timeout_ms=1500))
    assert asyncio.run(transport.connect(first)) is True
    asyncio.run(transport.send(bytes(100)))
    assert [(ep, len(chunk), t) for ep, chunk, t in raw.writes] == [
        (2, 64, 1500),
        (2, 36, 1500),
    ]
    raw.write_error = usb.core.USBError("No such device")
    with pytest.raises(TransferError):
        asyncio.run(transport.send(b"x"))


@pytest.mark.parametrize(
    "error",
    [ValueError("Invalid endpoint address 0x2"), NotImplementedError("not supported")],
)
def test_non_usb_library_errors_are_wrapped(raw_devices, error):
    raw = raw_devices[0]
    device = PyUsbDevice(raw)
    asyncio.run(device.open())
    raw.write_error = error
    with pytest.raises(DeviceIOError, match="transfer failed"):
        asyncio.run(device.transfer_out(2, b"x"))


def test_invalid_endpoint_falls_back_to_print_dialog(raw_devices, receipt):
    raw = raw_devices[0]
    opener = RecordingOpener()
    transport = UsbTransportManager(PyUsbPlatform())
    session = PrinterSession(
        transport,
        UsbEscPosSink(transport, DEFAULT_PROFILE),
        HtmlPrintSink(DEFAULT_PROFILE, opener=opener),
    )
    asyncio.run(session.connect(first))
    raw.write_error = ValueError("Invalid endpoint address 0x2")

    outcome = asyncio.run(session.print_receipt(receipt))

    assert outcome.channel == "html"
    assert "Invalid endpoint address" in outcome.error
    assert len(opener.documents) == 1
    assert session.state.is_connected is False


def test_descriptors_are_read_off_the_event_loop(raw_devices):
    raw = raw_devices[0]
    device = asyncio.run(PyUsbPlatform().list_devices())[0]
    assert raw.descriptor_threads
    assert threading.get_ident() not in raw.descriptor_threads
    raw.descriptor_threads.clear()

    assert device.configuration is not None
    assert raw.descriptor_threads == set()

    asyncio.run(device.open())
    assert raw.descriptor_threads
    assert threading.get_ident() not in raw.descriptor_threads
