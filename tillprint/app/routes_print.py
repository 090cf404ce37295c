"""HTTP surface for the till's receipt printer."""

from __future__ import annotations

from typing import List, Optional, Sequence

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from .domain.receipt import ReceiptData
from .printing.fallback import render_receipt_html
from .printing.session import PrinterSession, PrinterState, PrintOutcome
from .printing.usb import UsbDevice

router = APIRouter(prefix="/api/printer", tags=["printer"])


class ConnectPayload(BaseModel):
    # "vvvv:pppp"; omitted means the picker was dismissed
    device: Optional[str] = None


class DeviceInfo(BaseModel):
    device_id: str
    product_name: Optional[str] = None


def get_session(request: Request) -> PrinterSession:
    return request.app.state.printer


def choose_by_id(device_id: Optional[str]):
    """Return a chooser that picks the device whose id equals ``device_id``."""

    wanted = device_id.lower() if device_id else None

    def chooser(devices: Sequence[UsbDevice]) -> Optional[UsbDevice]:
        if wanted is None:
            return None
        return next((d for d in devices if d.device_id == wanted), None)

    return chooser


@router.get("/status", response_model=PrinterState)
async def printer_status(session: PrinterSession = Depends(get_session)) -> PrinterState:
    return session.state


@router.get("/devices", response_model=List[DeviceInfo])
async def list_devices(session: PrinterSession = Depends(get_session)) -> List[DeviceInfo]:
    """Devices the picker would offer, with no vendor filter."""
    devices = await session.transport.platform.list_devices()
    return [DeviceInfo(device_id=d.device_id, product_name=d.product_name) for d in devices]


@router.post("/connect", response_model=PrinterState)
async def connect_printer(
    payload: ConnectPayload, session: PrinterSession = Depends(get_session)
) -> PrinterState:
    await session.connect(choose_by_id(payload.device))
    return session.state


@router.post("/disconnect", response_model=PrinterState)
async def disconnect_printer(session: PrinterSession = Depends(get_session)) -> PrinterState:
    await session.disconnect()
    return session.state


@router.post("/print", response_model=PrintOutcome)
async def print_receipt(
    receipt: ReceiptData, session: PrinterSession = Depends(get_session)
) -> PrintOutcome:
    """Print a committed sale; falls back to the browser dialog on failure."""
    return await session.print_receipt(receipt)


@router.post("/test", response_model=PrinterState)
async def test_printer(session: PrinterSession = Depends(get_session)) -> PrinterState:
    await session.test_print()
    return session.state


@router.post("/preview", response_class=HTMLResponse)
async def preview_receipt(
    receipt: ReceiptData, session: PrinterSession = Depends(get_session)
) -> HTMLResponse:
    """Render the fallback HTML without opening a browser."""
    return HTMLResponse(render_receipt_html(receipt, session.usb_sink.profile))
