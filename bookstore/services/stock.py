"""Single writer of ``Book.stock_quantity`` and sole appender to the inventory ledger.

Every producer (online/in-store orders, cancellations, stock receipts, manual
adjustments) changes stock through :func:`apply_stock_change`, inside the
caller's transaction. The counter update and its ledger row are flushed
together, so a commit carries both or neither.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from bookstore.core.errors import BookstoreError, InsufficientStockError, NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import Book, InventoryLog, InventoryReason, now_utc
from bookstore.db.session import transaction
from bookstore.store.catalog_store import get_book

logger = get_logger(__name__)


def apply_stock_change(
    db: Session,
    book_id: int,
    delta: int,
    reason: InventoryReason,
    *,
    order_id: Optional[int] = None,
    stock_receipt_id: Optional[int] = None,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> int:
    """Apply ``delta`` to a book's stock and append the matching ledger row.

    The book row is read with a write lock, and the decrement itself is a
    guarded UPDATE (``stock_quantity + delta >= 0``), so two concurrent callers
    can never both drive the counter below zero.

    Soft-deleted books raise :class:`NotFoundError`, except for order
    cancellations, which may still return units to a retired title.

    Returns the new stock quantity. Does not commit.
    """
    if delta == 0:
        raise ValidationError("Stock change cannot be zero")

    book = get_book(db, book_id, for_update=True)
    if book is None:
        raise NotFoundError(f"Book with id {book_id} not found")
    if book.is_deleted and reason != InventoryReason.ORDER_CANCELLATION:
        raise NotFoundError(f"Book with id {book_id} not found or has been deleted")

    stmt = (
        update(Book)
        .where(Book.id == book_id, Book.stock_quantity + delta >= 0)
        .values(stock_quantity=Book.stock_quantity + delta, updated_at=now_utc())
        .returning(Book.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    new_quantity = db.execute(stmt).scalar_one_or_none()
    if new_quantity is None:
        raise InsufficientStockError(book.id, book.stock_quantity, -delta, title=book.title)
    set_committed_value(book, "stock_quantity", new_quantity)

    db.add(InventoryLog(
        book_id=book_id,
        change_quantity=delta,
        reason=reason,
        timestamp_utc=timestamp or now_utc(),
        order_id=order_id,
        stock_receipt_id=stock_receipt_id,
        user_id=user_id,
        notes=notes,
    ))
    db.flush()

    logger.debug(
        "stock book=%s delta=%+d reason=%s order=%s receipt=%s user=%s -> %s",
        book_id, delta, reason.value, order_id, stock_receipt_id, user_id, new_quantity,
    )
    return new_quantity


def create_book(
    db: Session,
    title: str,
    price: Decimal,
    initial_stock: int = 0,
    user_id: Optional[int] = None,
    isbn: Optional[str] = None,
) -> Book:
    """Register a book at zero stock and book its opening quantity as InitialStock."""
    if price < 0:
        raise ValidationError("Price cannot be negative")
    if initial_stock < 0:
        raise ValidationError("Initial stock cannot be negative")

    try:
        with transaction(db):
            book = Book(title=title, price=price, isbn=isbn, stock_quantity=0)
            db.add(book)
            db.flush()
            if initial_stock:
                apply_stock_change(db, book.id, initial_stock, InventoryReason.INITIAL_STOCK, user_id=user_id)
    except BookstoreError:
        raise
    except Exception:
        logger.exception("Failed to create book title=%r user=%s", title, user_id)
        raise
    logger.info("Book %s created with initial stock %s", book.id, initial_stock)
    return book
