from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(slots=True, frozen=True)
class OrderLine:
    book_id: int
    quantity: int


@dataclass(slots=True, frozen=True)
class ReceiptLine:
    book_id: int
    quantity_received: int
    purchase_price: Optional[Decimal] = None
