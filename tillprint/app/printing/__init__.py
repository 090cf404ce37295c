"""ESC/POS receipt printing over USB with a browser print fallback."""

from .errors import PrinterError
from .receipt import ReceiptProfile, build_receipt, build_test_page
from .session import PrinterSession, PrinterState, PrintOutcome, create_session

__all__ = [
    "PrinterError",
    "PrinterSession",
    "PrinterState",
    "PrintOutcome",
    "ReceiptProfile",
    "build_receipt",
    "build_test_page",
    "create_session",
]
