"""Order status transitions, including stock replenishment on cancellation.

The machine is forward-only::

    Pending   -> Confirmed | Cancelled
    Confirmed -> Shipping  | Cancelled
    Shipping  -> Completed | Cancelled

Completed and Cancelled are terminal. The order row is locked while the
transition runs, and the status itself guards replenishment: an order can
reach Cancelled once, so its stock comes back once.
"""
from typing import Dict, FrozenSet, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from bookstore.core.errors import BookstoreError, IllegalStatusTransition, NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import InventoryReason, Order, OrderStatus
from bookstore.db.session import transaction
from bookstore.services.stock import apply_stock_change

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPING, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def _load_for_update(db: Session, order_id: int) -> Optional[Order]:
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.details))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def _replenish(db: Session, order: Order, acting_user_id: int) -> None:
    if not order.details:
        logger.warning("Order %s has no details for stock replenishment", order.id)
        return
    for detail in sorted(order.details, key=lambda d: d.book_id):
        apply_stock_change(
            db, detail.book_id, detail.quantity, InventoryReason.ORDER_CANCELLATION,
            order_id=order.id, user_id=acting_user_id,
        )


def _transition(db: Session, order: Order, new_status: OrderStatus, acting_user_id: int) -> None:
    if not can_transition(order.status, new_status):
        raise IllegalStatusTransition(order.status, new_status)
    if new_status == OrderStatus.CANCELLED:
        logger.info("Order %s cancelled, replenishing stock", order.id)
        _replenish(db, order, acting_user_id)
    order.status = new_status


def update_order_status(db: Session, order_id: int, new_status: OrderStatus, acting_user_id: int) -> bool:
    """Move an order to ``new_status`` on behalf of staff.

    Returns False when the order does not exist; raises
    :class:`IllegalStatusTransition` for a move the machine does not allow.
    """
    logger.info("User %s updating order %s to %s", acting_user_id, order_id, new_status.value)
    try:
        with transaction(db):
            order = _load_for_update(db, order_id)
            if order is None:
                logger.warning("Order %s not found for status update by user %s", order_id, acting_user_id)
                return False
            previous = order.status
            _transition(db, order, new_status, acting_user_id)
    except BookstoreError as e:
        logger.warning("Status update of order %s rejected: %s", order_id, e)
        raise
    except Exception:
        logger.exception("Error updating order %s to %s by user %s", order_id, new_status.value, acting_user_id)
        raise

    logger.info("Order %s moved %s -> %s by user %s", order_id, previous.value, new_status.value, acting_user_id)
    return True


def cancel_order(db: Session, user_id: int, order_id: int) -> Order:
    """Self-service cancellation, only while the order is still Pending."""
    logger.info("User %s attempting to cancel order %s", user_id, order_id)
    try:
        with transaction(db):
            order = _load_for_update(db, order_id)
            if order is None or order.user_id != user_id:
                raise NotFoundError(f"Order with id {order_id} not found.")
            if order.status != OrderStatus.PENDING:
                raise ValidationError(f"Order cannot be cancelled because its current status is '{order.status.value}'.")
            _transition(db, order, OrderStatus.CANCELLED, user_id)
    except BookstoreError as e:
        logger.warning("Cancellation of order %s by user %s rejected: %s", order_id, user_id, e)
        raise
    except Exception:
        logger.exception("Error cancelling order %s for user %s", order_id, user_id)
        raise

    logger.info("User %s cancelled order %s", user_id, order_id)
    return order
