"""Fixtures shared by the printer tests."""

import pytest

from tillprint.app.domain.receipt import ReceiptData
from tillprint.app.printing.receipt import DEFAULT_PROFILE
from tillprint.app.printing.session import PrinterSession
from tillprint.app.printing.sinks import HtmlPrintSink, UsbEscPosSink
from tillprint.app.printing.transport import UsbTransportManager
from tests._fakes import FakeDevice, FakePlatform, RecordingOpener

SAMPLE_RECEIPT = {
    "saleNumber": "INV-000123",
    "date": "2026-10-17 14:05",
    "cashier": "Nimal",
    "customerName": "Fathima",
    "customerPhone": "0771234567",
    "items": [
        {"name": "Cotton Shirt", "qty": 2, "unitPrice": 500, "total": 1000},
        {
            "name": "Denim Jeans",
            "qty": 1,
            "unitPrice": 1200,
            "total": 1080,
            "size": "32",
            "discount": 10,
            "discountType": "PERCENTAGE",
        },
    ],
    "subtotal": 2080,
    "discount": 50,
    "total": 2030,
    "payments": [{"method": "CASH", "amount": 2000}],
    "totalPaid": 2000,
    "balance": 30,
    "change": 0,
}


@pytest.fixture
def receipt() -> ReceiptData:
    return ReceiptData.model_validate(SAMPLE_RECEIPT)


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def platform(device) -> FakePlatform:
    return FakePlatform(devices=[device], authorized=[device])


@pytest.fixture
def opener() -> RecordingOpener:
    return RecordingOpener()


@pytest.fixture
def session(platform, opener) -> PrinterSession:
    transport = UsbTransportManager(platform)
    return PrinterSession(
        transport,
        UsbEscPosSink(transport, DEFAULT_PROFILE),
        HtmlPrintSink(DEFAULT_PROFILE, opener=opener),
    )
