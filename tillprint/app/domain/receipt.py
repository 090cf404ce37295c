"""Receipt value objects handed over by the billing workflow."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DiscountType(str, Enum):
    """How an item discount is expressed."""

    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )


class ReceiptItem(_Frozen):
    name: str
    qty: float
    unit_price: float
    total: float
    size: Optional[str] = None
    discount: Optional[float] = None
    discount_type: Optional[DiscountType] = None

    @property
    def label(self) -> str:
        """Item name with the size appended in brackets when present."""
        return f"{self.name} ({self.size})" if self.size else self.name

    @property
    def has_discount(self) -> bool:
        return bool(self.discount and self.discount > 0)


class Payment(_Frozen):
    method: str
    amount: float
    reference: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.method} ({self.reference})" if self.reference else self.method


class ReceiptData(_Frozen):
    """One printable receipt for a committed sale.

    Totals are rendered exactly as supplied; ``total`` is expected to equal
    ``subtotal - discount`` and nothing here recomputes it.
    """

    sale_number: str
    date: str
    cashier: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: Tuple[ReceiptItem, ...] = ()
    subtotal: float
    discount: Optional[float] = None
    total: float
    payments: Tuple[Payment, ...] = ()
    total_paid: float
    balance: Optional[float] = None
    change: Optional[float] = None
    notes: Optional[str] = None
    open_cash_drawer: bool = False

    @property
    def has_discount(self) -> bool:
        return bool(self.discount and self.discount > 0)

    @property
    def owes_balance(self) -> bool:
        return bool(self.balance and self.balance > 0)

    @property
    def gives_change(self) -> bool:
        return bool(self.change and self.change > 0)
