import asyncio

import pytest

from tillprint.app.printing.errors import (
    DeviceInitError,
    PrinterConnectionError,
    PrinterNotConnectedError,
    TransferError,
    UnsupportedPlatformError,
)
from tillprint.app.printing.transport import CHUNK_SIZE, UsbTransportManager
from tillprint.app.printing.usb import UsbEndpoint
from tests._fakes import FakeDevice, FakePlatform, dismiss, first


def _connected(device: FakeDevice) -> UsbTransportManager:
    transport = UsbTransportManager(FakePlatform(devices=[device]))
    assert asyncio.run(transport.connect(first)) is True
    return transport


def test_connect_initializes_chosen_device(device):
    transport = _connected(device)
    assert transport.device is device
    assert transport.endpoint == 2
    assert device.calls == ["open", ("claim_interface", 0)]


def test_connect_returns_false_when_picker_dismissed(device):
    transport = UsbTransportManager(FakePlatform(devices=[device]))
    assert asyncio.run(transport.connect(dismiss)) is False
    assert transport.device is None


def test_connect_requires_usb_support(device):
    transport = UsbTransportManager(FakePlatform(devices=[device], usb_available=False))
    with pytest.raises(UnsupportedPlatformError):
        asyncio.run(transport.connect(first))


def test_connect_selects_configuration_when_unconfigured():
    device = FakeDevice(configured=False)
    _connected(device)
    assert ("select_configuration", 1) in device.calls


def test_connect_closes_an_already_open_device_first():
    device = FakeDevice(opened=True)
    device.fail_close = True
    _connected(device)
    assert device.calls[:2] == ["close", "open"]


def test_missing_bulk_out_endpoint_is_fatal():
    device = FakeDevice(
        endpoints=(
            UsbEndpoint(number=1, direction="in", transfer_type="bulk"),
            UsbEndpoint(number=3, direction="out", transfer_type="interrupt"),
        )
    )
    transport = UsbTransportManager(FakePlatform(devices=[device]))
    with pytest.raises(PrinterConnectionError) as info:
        asyncio.run(transport.connect(first))
    assert "Device initialization failed: No bulk OUT endpoint found on printer" in str(
        info.value
    )
    assert isinstance(info.value.__cause__, DeviceInitError)
    assert transport.device is None


def test_open_failure_is_wrapped():
    device = FakeDevice()
    device.fail_open = True
    transport = UsbTransportManager(FakePlatform(devices=[device]))
    with pytest.raises(PrinterConnectionError, match="Failed to connect: Device initialization failed"):
        asyncio.run(transport.connect(first))


def test_reconnect_without_authorized_devices():
    transport = UsbTransportManager(FakePlatform(devices=[FakeDevice()]))
    assert asyncio.run(transport.reconnect()) is False
    assert transport.device is None


def test_reconnect_uses_first_authorized_device():
    a, b = FakeDevice(product_id=1), FakeDevice(product_id=2)
    transport = UsbTransportManager(FakePlatform(devices=[a, b], authorized=[a, b]))
    assert asyncio.run(transport.reconnect()) is True
    assert transport.device is a
    assert b.calls == []


def test_reconnect_swallows_initialization_errors():
    device = FakeDevice()
    device.fail_open = True
    transport = UsbTransportManager(FakePlatform(devices=[device], authorized=[device]))
    assert asyncio.run(transport.reconnect()) is False


def test_reconnect_on_unsupported_platform():
    device = FakeDevice()
    platform = FakePlatform(devices=[device], authorized=[device], usb_available=False)
    assert asyncio.run(UsbTransportManager(platform).reconnect()) is False


def test_send_splits_buffer_into_64_byte_chunks(device):
    transport = _connected(device)
    asyncio.run(transport.send(bytes(range(200))))
    assert [len(chunk) for _, chunk in device.transfers] == [64, 64, 64, 8]
    assert all(ep == 2 for ep, _ in device.transfers)
    assert device.written == bytes(range(200))
    assert CHUNK_SIZE == 64


def test_send_without_device():
    transport = UsbTransportManager(FakePlatform())
    with pytest.raises(PrinterNotConnectedError, match="Printer not connected"):
        asyncio.run(transport.send(b"\x1b@"))


def test_send_reinitializes_closed_device(device):
    transport = _connected(device)
    device.unplug()
    asyncio.run(transport.send(b"abc"))
    assert device.calls.count("open") == 2
    assert device.written == b"abc"


def test_transfer_failure_invalidates_session(device):
    transport = _connected(device)
    device.fail_transfer_at = 1
    with pytest.raises(TransferError, match="Print failed: transfer failed"):
        asyncio.run(transport.send(bytes(130)))
    assert transport.device is device
    assert len(device.transfers) == 1

    device.fail_transfer_at = None
    asyncio.run(transport.send(b"ok"))
    assert device.calls[-3:] == ["close", "open", ("claim_interface", 0)]
    assert device.written.endswith(b"ok")


def test_concurrent_sends_do_not_interleave(device):
    transport = _connected(device)
    device.yield_on_transfer = True

    async def both():
        await asyncio.gather(transport.send(b"A" * 150), transport.send(b"B" * 150))

    asyncio.run(both())
    assert device.written == b"A" * 150 + b"B" * 150


def test_disconnect_swallows_close_errors(device):
    transport = _connected(device)
    device.fail_close = True
    asyncio.run(transport.disconnect())
    assert transport.device is None
    assert device.calls[-1] == "close"


def test_forget_drops_handle(device):
    transport = _connected(device)
    transport.forget()
    assert transport.device is None
    with pytest.raises(PrinterNotConnectedError):
        asyncio.run(transport.send(b"x"))


def test_connect_releases_previously_held_device():
    held = FakeDevice()
    platform = FakePlatform(devices=[held], authorized=[held])
    transport = UsbTransportManager(platform)
    assert asyncio.run(transport.reconnect()) is True

    # enumeration hands back a new wrapper for the same printer
    fresh = FakeDevice()
    platform.devices = [fresh]
    assert asyncio.run(transport.connect(first)) is True

    assert held.calls == ["open", ("claim_interface", 0), "close"]
    assert held.opened is False
    assert transport.device is fresh
    assert fresh.opened


def test_reconnect_releases_previously_held_device(device):
    transport = _connected(device)
    fresh = FakeDevice()
    transport.platform.authorized = [fresh]
    device.fail_close = True

    assert asyncio.run(transport.reconnect()) is True
    assert device.calls[-1] == "close"
    assert transport.device is fresh


def test_dismissed_picker_keeps_held_device(device):
    transport = _connected(device)
    assert asyncio.run(transport.connect(dismiss)) is False
    assert transport.device is device
    assert device.opened
