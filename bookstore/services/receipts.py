from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from bookstore.core.errors import BookstoreError, NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import InventoryReason, StockReceipt, StockReceiptDetail, as_utc_naive, now_utc
from bookstore.db.session import transaction
from bookstore.services.paging import clamp_page
from bookstore.services.stock import apply_stock_change
from bookstore.services.types import ReceiptLine
from bookstore.store.catalog_store import get_book, get_supplier

logger = get_logger(__name__)


def create_stock_receipt(
    db: Session,
    user_id: int,
    details: Sequence[ReceiptLine],
    supplier_id: Optional[int] = None,
    notes: Optional[str] = None,
    receipt_date: Optional[datetime] = None,
) -> StockReceipt:
    """Record a delivery from a supplier and put the goods on the shelf.

    All-or-nothing: one unknown or deleted book aborts the whole receipt, and
    none of its ledger rows survive.
    """
    logger.info("User %s creating stock receipt with %s line(s), supplier=%s", user_id, len(details), supplier_id)
    if not details:
        raise ValidationError("A stock receipt needs at least one line.")
    for line in details:
        if line.quantity_received <= 0:
            raise ValidationError(f"Quantity received for book {line.book_id} must be greater than 0.")
        if line.purchase_price is not None and line.purchase_price < 0:
            raise ValidationError(f"Purchase price for book {line.book_id} cannot be negative.")

    try:
        with transaction(db):
            if supplier_id is not None and get_supplier(db, supplier_id) is None:
                raise NotFoundError(f"Supplier with id {supplier_id} not found.")

            for book_id in sorted({line.book_id for line in details}):
                book = get_book(db, book_id)
                if book is None or book.is_deleted:
                    raise NotFoundError(f"Book with id {book_id} not found or has been deleted.")

            receipt = StockReceipt(
                supplier_id=supplier_id,
                receipt_date=as_utc_naive(receipt_date) or now_utc(),
                notes=notes,
                created_by=user_id,
                details=[
                    StockReceiptDetail(
                        book_id=line.book_id,
                        quantity_received=line.quantity_received,
                        purchase_price=line.purchase_price,
                    )
                    for line in details
                ],
            )
            db.add(receipt)
            db.flush()

            for line in details:
                apply_stock_change(
                    db, line.book_id, line.quantity_received, InventoryReason.STOCK_RECEIPT,
                    stock_receipt_id=receipt.id, user_id=user_id, timestamp=receipt.receipt_date,
                )
    except BookstoreError as e:
        logger.warning("Stock receipt by user %s rejected: %s", user_id, e)
        raise
    except Exception:
        logger.exception("Error creating stock receipt for user %s", user_id)
        raise

    logger.info("Stock receipt %s created by user %s", receipt.id, user_id)
    return receipt


def get_stock_receipt(db: Session, receipt_id: int) -> Optional[StockReceipt]:
    stmt = (
        select(StockReceipt)
        .where(StockReceipt.id == receipt_id)
        .options(selectinload(StockReceipt.details).selectinload(StockReceiptDetail.book), selectinload(StockReceipt.supplier))
    )
    return db.execute(stmt).scalar_one_or_none()


def list_stock_receipts(db: Session, page: int = 1, page_size: int = 10) -> List[StockReceipt]:
    page, page_size = clamp_page(page, page_size)
    stmt = (
        select(StockReceipt)
        .options(selectinload(StockReceipt.details))
        .order_by(StockReceipt.receipt_date.desc(), StockReceipt.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(db.execute(stmt).scalars().all())
