from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bookstore.api.deps import get_db
from bookstore.core.auth import require_admin
from bookstore.core.config import settings
from bookstore.core.errors import NotFoundError
from bookstore.db.models import InventoryReason
from bookstore.kafka.producer import emit_inventory_event
from bookstore.schemas import (
    AdjustInventoryRequest, AdjustInventoryResponse, InventoryLogPage, InventoryLogRead, StockBalanceRead,
    StockReceiptCreate, StockReceiptRead,
)
from bookstore.services.inventory import adjust_stock_manually, get_inventory_history
from bookstore.services.paging import clamp_page
from bookstore.services.receipts import create_stock_receipt, get_stock_receipt, list_stock_receipts
from bookstore.services.types import ReceiptLine
from bookstore.store.catalog_store import get_book, ledger_balance

router = APIRouter()

@router.post("/v1/admin/inventory/adjust", response_model=AdjustInventoryResponse)
def adjust(payload: AdjustInventoryRequest, identity: dict = Depends(require_admin), db: Session = Depends(get_db)):
    new_qty = adjust_stock_manually(
        db, identity["user_id"], payload.book_id, payload.change_quantity, payload.reason, payload.notes,
    )
    emit_inventory_event(
        "inventory.adjusted", payload.book_id,
        change_quantity=payload.change_quantity, reason=payload.reason.value, new_quantity=new_qty,
    )
    return AdjustInventoryResponse(book_id=payload.book_id, new_quantity=new_qty)

@router.get("/v1/admin/inventory/history", response_model=InventoryLogPage)
def history(
    book_id: Optional[int] = None,
    reason: Optional[InventoryReason] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user_id: Optional[int] = None,
    order_id: Optional[int] = None,
    stock_receipt_id: Optional[int] = None,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    _=Depends(require_admin),
    db: Session = Depends(get_db),
):
    page, page_size = clamp_page(page, page_size)
    items, total = get_inventory_history(
        db, book_id=book_id, reason=reason, start_date=start_date, end_date=end_date,
        user_id=user_id, order_id=order_id, stock_receipt_id=stock_receipt_id,
        page=page, page_size=page_size,
    )
    return InventoryLogPage(
        items=[InventoryLogRead.model_validate(i) for i in items], total_count=total, page=page, page_size=page_size,
    )

@router.get("/v1/admin/inventory/books/{book_id}", response_model=StockBalanceRead)
def balance(book_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    book = get_book(db, book_id)
    if not book:
        raise NotFoundError("Book not found")
    return StockBalanceRead(book_id=book.id, stock_quantity=book.stock_quantity, ledger_balance=ledger_balance(db, book.id))

@router.post("/v1/admin/stock-receipts", response_model=StockReceiptRead, status_code=201)
def create_receipt(payload: StockReceiptCreate, identity: dict = Depends(require_admin), db: Session = Depends(get_db)):
    lines = [ReceiptLine(d.book_id, d.quantity_received, d.purchase_price) for d in payload.details]
    receipt = create_stock_receipt(
        db, identity["user_id"], lines,
        supplier_id=payload.supplier_id, notes=payload.notes, receipt_date=payload.receipt_date,
    )
    for line in lines:
        emit_inventory_event(
            "stock.received", line.book_id,
            change_quantity=line.quantity_received, stock_receipt_id=receipt.id,
        )
    return StockReceiptRead.model_validate(get_stock_receipt(db, receipt.id))

@router.get("/v1/admin/stock-receipts", response_model=List[StockReceiptRead])
def list_receipts(page: int = 1, page_size: int = 10, _=Depends(require_admin), db: Session = Depends(get_db)):
    return [StockReceiptRead.model_validate(r) for r in list_stock_receipts(db, page, page_size)]

@router.get("/v1/admin/stock-receipts/{receipt_id}", response_model=StockReceiptRead)
def get_receipt(receipt_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    receipt = get_stock_receipt(db, receipt_id)
    if not receipt:
        raise NotFoundError("Stock receipt not found")
    return StockReceiptRead.model_validate(receipt)
