"""Domain models and helpers."""

from .receipt import DiscountType, Payment, ReceiptData, ReceiptItem

__all__ = ["DiscountType", "Payment", "ReceiptData", "ReceiptItem"]
