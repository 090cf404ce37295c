"""Browser print fallback for when the thermal printer is unreachable."""

from __future__ import annotations

import logging
import tempfile
import time
import webbrowser
from pathlib import Path
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..domain.receipt import DiscountType, ReceiptData, ReceiptItem
from .escpos import format_currency, format_number
from .receipt import DEFAULT_PROFILE, ReceiptProfile

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates"
_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape()
)
_env.filters["money"] = format_currency
_env.filters["number"] = format_number

RECEIPT_TEMPLATE = "receipt_80mm.html"
QR_IMAGE_SIZE = "120x120"

RECEIPT_DIR = Path(tempfile.gettempdir()) / "tillprint-receipts"
# The browser may still be reading a file this young
RECEIPT_TTL_SECS = 300

logger = logging.getLogger("printer")


def qr_image_url(url: str, service: str = DEFAULT_PROFILE.qr_image_service) -> str:
    """Return the hosted QR image URL that encodes ``url``."""
    return f"{service}?{urlencode({'size': QR_IMAGE_SIZE, 'data': url})}"


def _item_discount(item: ReceiptItem) -> str:
    if not item.has_discount:
        return ""
    if item.discount_type == DiscountType.PERCENTAGE:
        return f"{format_number(item.discount)}%"
    return format_currency(item.discount)


def render_receipt_html(
    data: ReceiptData, profile: ReceiptProfile = DEFAULT_PROFILE
) -> str:
    """Render ``data`` as a self-contained 80mm HTML receipt."""

    template = _env.get_template(RECEIPT_TEMPLATE)
    rows = [
        {"item": item, "label": item.label, "discount": _item_discount(item)}
        for item in data.items
    ]
    return template.render(
        receipt=data,
        rows=rows,
        profile=profile,
        qr_src=qr_image_url(profile.qr_url, profile.qr_image_service),
    )


def purge_stale_receipts(directory: Path, max_age: float = RECEIPT_TTL_SECS) -> int:
    """Delete receipt files older than ``max_age`` seconds; return how many."""

    cutoff = time.time() - max_age
    removed = 0
    for path in directory.glob("receipt-*.html"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except FileNotFoundError:
            continue
    return removed


def open_in_browser(html: str) -> bool:
    """Open ``html`` in a new browser tab; ``False`` if none could be launched.

    The document prints itself on load and closes after the dialog. This
    blocks on disk and on the browser launch, so async callers run it in a
    worker thread.
    """

    try:
        RECEIPT_DIR.mkdir(parents=True, exist_ok=True)
        removed = purge_stale_receipts(RECEIPT_DIR)
        if removed:
            logger.debug("removed %d stale receipt files", removed)
        with tempfile.NamedTemporaryFile(
            "w",
            suffix=".html",
            prefix="receipt-",
            dir=RECEIPT_DIR,
            delete=False,
            encoding="utf-8",
        ) as fh:
            fh.write(html)
        return webbrowser.open_new_tab(Path(fh.name).as_uri())
    except (OSError, webbrowser.Error) as exc:
        logger.warning("could not open print dialog: %s", exc)
        return False
