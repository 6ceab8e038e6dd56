from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from bookstore.core.errors import BookstoreError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import InventoryLog, InventoryReason, as_utc_naive
from bookstore.db.session import transaction
from bookstore.services.paging import clamp_page
from bookstore.services.stock import apply_stock_change

logger = get_logger(__name__)

# Only the stock mutator's system-driven callers may book these.
SYSTEM_REASONS = frozenset({
    InventoryReason.INITIAL_STOCK,
    InventoryReason.STOCK_RECEIPT,
    InventoryReason.ONLINE_SALE,
    InventoryReason.IN_STORE_SALE,
    InventoryReason.ORDER_CANCELLATION,
})


def adjust_stock_manually(
    db: Session,
    user_id: int,
    book_id: int,
    change_quantity: int,
    reason: InventoryReason = InventoryReason.ADJUSTMENT,
    notes: Optional[str] = None,
) -> int:
    """Operator correction (damage, loss, recount). Returns the new stock quantity."""
    logger.info(
        "User %s adjusting stock for book %s by %+d (%s)",
        user_id, book_id, change_quantity, reason.value,
    )
    if reason in SYSTEM_REASONS:
        raise ValidationError(f"Reason '{reason.value}' is not valid for manual inventory adjustment.")
    if change_quantity == 0:
        raise ValidationError("Change quantity cannot be zero.")
    if notes is not None and len(notes) > 500:
        raise ValidationError("Notes cannot be longer than 500 characters.")

    try:
        with transaction(db):
            new_quantity = apply_stock_change(db, book_id, change_quantity, reason, user_id=user_id, notes=notes)
    except BookstoreError as e:
        logger.warning("Stock adjustment for book %s by user %s rejected: %s", book_id, user_id, e)
        raise
    except Exception:
        logger.exception("Error adjusting stock for book %s by user %s", book_id, user_id)
        raise

    logger.info("Stock for book %s adjusted by user %s, new quantity %s", book_id, user_id, new_quantity)
    return new_quantity


def get_inventory_history(
    db: Session,
    book_id: Optional[int] = None,
    reason: Optional[InventoryReason] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user_id: Optional[int] = None,
    order_id: Optional[int] = None,
    stock_receipt_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[InventoryLog], int]:
    """Page through the ledger, newest first. ``end_date`` covers its whole day."""
    start_date, end_date = as_utc_naive(start_date), as_utc_naive(end_date)
    filters = []
    if book_id is not None:
        filters.append(InventoryLog.book_id == book_id)
    if reason is not None:
        filters.append(InventoryLog.reason == reason)
    if start_date is not None:
        filters.append(InventoryLog.timestamp_utc >= datetime(start_date.year, start_date.month, start_date.day))
    if end_date is not None:
        day_after = datetime(end_date.year, end_date.month, end_date.day) + timedelta(days=1)
        filters.append(InventoryLog.timestamp_utc < day_after)
    if user_id is not None:
        filters.append(InventoryLog.user_id == user_id)
    if order_id is not None:
        filters.append(InventoryLog.order_id == order_id)
    if stock_receipt_id is not None:
        filters.append(InventoryLog.stock_receipt_id == stock_receipt_id)

    page, page_size = clamp_page(page, page_size)
    total = db.execute(select(func.count(InventoryLog.id)).where(*filters)).scalar_one()
    stmt = (
        select(InventoryLog)
        .options(joinedload(InventoryLog.book))
        .where(*filters)
        .order_by(InventoryLog.timestamp_utc.desc(), InventoryLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(db.execute(stmt).scalars().all()), int(total)
