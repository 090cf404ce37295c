"""Turn a :class:`ReceiptData` into one ESC/POS command buffer."""

from __future__ import annotations

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..domain.receipt import DiscountType, ReceiptData, ReceiptItem
from . import escpos
from .escpos import CommandBuffer, divider, format_currency, pad, two_column

# Item table columns, separated by single spaces: 21 + 4 + 9 + 11 + 3 == 48
ITEM_COL = 21
QTY_COL = 4
PRICE_COL = 9
TOTAL_COL = 11


class ReceiptProfile(BaseModel):
    """Shop specific content printed around every receipt."""

    model_config = ConfigDict(frozen=True)

    shop_name: str = "M|N COLLECTION"
    tagline: str = "WHERE VALUE MEETS QUALITY"
    address_lines: Tuple[str, ...] = ("168/C, Fatha Hajiar Mawatha,", "Dharga Town")
    contact: str = "Tel: 0783714171 / 0774684087"
    thank_you_lines: Tuple[str, ...] = (
        "Thank you for shopping with us!",
        "We truly appreciate your trust.",
    )
    qr_invite_text: str = "Scan to join our WhatsApp:"
    qr_url: str = "https://chat.whatsapp.com/Eu3HUPRtS24LHtytOz9ziP"
    qr_module_size: int = Field(default=6, ge=1, le=8)
    qr_image_service: str = "https://api.qrserver.com/v1/create-qr-code/"

    @classmethod
    def from_settings(cls, settings) -> "ReceiptProfile":
        return cls(
            shop_name=settings.shop_name,
            tagline=settings.shop_tagline,
            address_lines=tuple(settings.shop_address_lines),
            contact=settings.shop_contact,
            thank_you_lines=tuple(settings.thank_you_lines),
            qr_invite_text=settings.qr_invite_text,
            qr_url=settings.qr_url,
            qr_module_size=settings.qr_module_size,
            qr_image_service=settings.qr_image_service,
        )


DEFAULT_PROFILE = ReceiptProfile()


def wrap_label(label: str, width: int = ITEM_COL) -> List[str]:
    """Greedy word wrap at ``width``, hard-breaking words with no space."""

    lines: List[str] = []
    remaining = label
    while len(remaining) > width:
        cut = remaining.rfind(" ", 0, width + 1)
        at = cut if cut > 0 else width
        lines.append(remaining[:at])
        remaining = remaining[at:].strip()
    if remaining or not lines:
        lines.append(remaining)
    return lines


def item_row(name: str, qty: str, price: str, total: str) -> str:
    return " ".join(
        [
            pad(name, ITEM_COL),
            pad(qty, QTY_COL, "right"),
            pad(price, PRICE_COL, "right"),
            pad(total, TOTAL_COL, "right"),
        ]
    )


def discount_text(item: ReceiptItem) -> str:
    if item.discount_type == DiscountType.PERCENTAGE:
        return f"Disc: {escpos.format_number(item.discount)}%"
    return f"Disc: -{format_currency(item.discount)}"


def _header(buf: CommandBuffer, profile: ReceiptProfile) -> None:
    buf.push(escpos.ALIGN_CENTER, escpos.BOLD_ON, escpos.SIZE_TRIPLE)
    buf.line(profile.shop_name)
    buf.push(escpos.NORMAL_SIZE, escpos.BOLD_OFF)
    buf.line(profile.tagline)
    for address in profile.address_lines:
        buf.line(address)
    buf.line(profile.contact)
    buf.push(escpos.ALIGN_LEFT)
    buf.line(divider("="))


def _meta(buf: CommandBuffer, data: ReceiptData) -> None:
    buf.line(two_column(f"Bill: {data.sale_number}", data.date))
    if data.cashier:
        buf.line(f"Cashier: {data.cashier}")
    if data.customer_name:
        buf.line(f"Customer: {data.customer_name}")
    if data.customer_phone:
        buf.line(f"Phone: {data.customer_phone}")
    buf.line(divider())


def _items(buf: CommandBuffer, data: ReceiptData) -> None:
    buf.push(escpos.BOLD_ON)
    buf.line(item_row("ITEM", "QTY", "PRICE", "TOTAL"))
    buf.push(escpos.BOLD_OFF)
    buf.line(divider())

    for item in data.items:
        first, *overflow = wrap_label(item.label)
        buf.line(
            item_row(
                first,
                escpos.format_number(item.qty),
                format_currency(item.unit_price),
                format_currency(item.total),
            )
        )
        for extra in overflow:
            buf.line("  " + extra)
        if item.has_discount:
            buf.line("  " + discount_text(item))

    buf.line(divider())


def _totals(buf: CommandBuffer, data: ReceiptData) -> None:
    if data.has_discount:
        buf.line(two_column("Subtotal:", format_currency(data.subtotal)))
        buf.line(two_column("Discount:", "-" + format_currency(data.discount)))

    buf.push(escpos.BOLD_ON, escpos.DOUBLE_HEIGHT)
    buf.line(two_column("TOTAL:", format_currency(data.total)))
    buf.push(escpos.NORMAL_SIZE, escpos.BOLD_OFF)
    buf.line(divider())


def _payments(buf: CommandBuffer, data: ReceiptData) -> None:
    for payment in data.payments:
        buf.line(two_column(payment.label, format_currency(payment.amount)))
    buf.line(two_column("Total Paid:", format_currency(data.total_paid)))

    if data.owes_balance:
        buf.push(escpos.BOLD_ON)
        buf.line(two_column("Credit Balance:", format_currency(data.balance)))
        buf.push(escpos.BOLD_OFF)
    if data.gives_change:
        buf.push(escpos.BOLD_ON)
        buf.line(two_column("Change:", format_currency(data.change)))
        buf.push(escpos.BOLD_OFF)


def _notes(buf: CommandBuffer, data: ReceiptData) -> None:
    if not data.notes:
        return
    buf.line(divider())
    for text in wrap_label(f"Note: {data.notes}", escpos.LINE_WIDTH):
        buf.line(text)


def _footer(buf: CommandBuffer, profile: ReceiptProfile) -> None:
    buf.line(divider("="))
    buf.push(escpos.ALIGN_CENTER)
    for text in profile.thank_you_lines:
        buf.line(text)
    buf.push(escpos.FEED_LINE)
    buf.line(profile.qr_invite_text)
    buf.push(escpos.FEED_LINE)
    buf.extend(escpos.qr_commands(profile.qr_url, profile.qr_module_size))
    buf.push(escpos.feed(4), escpos.CUT_PARTIAL)


def build_receipt(data: ReceiptData, profile: ReceiptProfile = DEFAULT_PROFILE) -> bytes:
    """Return the complete command buffer for ``data``."""

    buf = CommandBuffer()
    buf.push(escpos.INIT)
    if data.open_cash_drawer:
        buf.push(escpos.CASH_DRAWER)

    _header(buf, profile)
    _meta(buf, data)
    _items(buf, data)
    _totals(buf, data)
    _payments(buf, data)
    _notes(buf, data)
    _footer(buf, profile)
    return buf.to_bytes()


def build_test_page() -> bytes:
    """Minimal page used to check the printer without a sale."""

    buf = CommandBuffer()
    buf.push(escpos.INIT, escpos.ALIGN_CENTER, escpos.BOLD_ON)
    buf.line("TEST PRINT")
    buf.push(escpos.BOLD_OFF)
    buf.line("Printer is working!")
    buf.push(escpos.FEED_LINE, escpos.FEED_LINE, escpos.CUT_PARTIAL)
    return buf.to_bytes()
