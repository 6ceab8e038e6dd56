"""Order Assembler: turns a cart (or a staff line list) into a committed order.

Both entry points run as one transaction. Stock is taken through the stock
mutator after the order row exists, so every OnlineSale/InStoreSale ledger row
points at its order. Any failure rolls back the order, the stock decrements,
the cart clearing and the promotion use together.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from bookstore.core.errors import BookstoreError, InsufficientStockError, NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import (
    Address, Book, DeliveryMethod, InventoryReason, Order, OrderDetail, OrderShippingAddress,
    OrderStatus, OrderType, PaymentMethod, PaymentStatus,
)
from bookstore.db.session import transaction
from bookstore.services import promotions
from bookstore.services.paging import clamp_page
from bookstore.services.stock import apply_stock_change
from bookstore.services.types import OrderLine
from bookstore.store.cart_store import clear_cart, get_cart
from bookstore.store.catalog_store import get_address_for_user, get_book

logger = get_logger(__name__)

MAX_IN_STORE_LINE_QTY = 100
ZERO = Decimal("0.00")


def _snapshot_address(address: Address) -> OrderShippingAddress:
    return OrderShippingAddress(
        street=address.street,
        village=address.village or "",
        district=address.district,
        city=address.city,
        recipient_name=address.recipient_name,
        phone_number=address.phone_number,
    )


def _price_lines(lines: Iterable[Tuple[Book, int]]) -> Tuple[List[OrderDetail], Decimal]:
    """Pre-check stock and freeze each line's unit price at the book's current price."""
    details: List[OrderDetail] = []
    subtotal = ZERO
    for book, qty in lines:
        if qty > book.stock_quantity:
            raise InsufficientStockError(book.id, book.stock_quantity, qty, title=book.title)
        details.append(OrderDetail(book_id=book.id, quantity=qty, unit_price=book.price))
        subtotal += book.price * qty
    return details, subtotal


def _take_stock(db: Session, order: Order, reason: InventoryReason, user_id: int) -> None:
    # book id order keeps row locks consistent across concurrent orders
    for detail in sorted(order.details, key=lambda d: d.book_id):
        apply_stock_change(db, detail.book_id, -detail.quantity, reason, order_id=order.id, user_id=user_id)


def create_online_order(db: Session, user_id: int, shipping_address_id: int, promotion_code: Optional[str] = None) -> Order:
    logger.info("Creating online order for user=%s address=%s promo=%s", user_id, shipping_address_id, promotion_code)
    code = promotion_code.strip() if promotion_code and promotion_code.strip() else None

    try:
        with transaction(db):
            cart = get_cart(db, user_id)
            if not cart:
                raise ValidationError("Cannot create order from an empty cart.")

            address = get_address_for_user(db, shipping_address_id, user_id)
            if address is None:
                raise NotFoundError(f"Shipping address with id {shipping_address_id} not found or does not belong to the user.")
            snapshot = _snapshot_address(address)
            db.add(snapshot)

            for item in cart:
                if item.book is None or item.book.is_deleted:
                    raise NotFoundError(f"Book with id {item.book_id} is no longer available.")
            details, subtotal = _price_lines((item.book, item.quantity) for item in cart)

            discount = ZERO
            if code:
                discount = promotions.validate_and_calculate_discount(db, code, subtotal)
            discount = min(discount, subtotal)

            order = Order(
                user_id=user_id,
                status=OrderStatus.PENDING,
                subtotal_amount=subtotal,
                discount_amount=discount,
                total_amount=subtotal - discount,
                order_type=OrderType.ONLINE,
                delivery_method=DeliveryMethod.SHIPPING,
                payment_method=PaymentMethod.ONLINE_GATEWAY,
                payment_status=PaymentStatus.PENDING,
                promotion_code=code,
                shipping_address=snapshot,
                details=details,
            )
            db.add(order)
            db.flush()

            _take_stock(db, order, InventoryReason.ONLINE_SALE, user_id)
            clear_cart(db, user_id)
            if code:
                promotions.increment_usage(db, code)
    except BookstoreError as e:
        logger.warning("Online order for user=%s rejected: %s", user_id, e)
        raise
    except Exception:
        logger.exception("Error processing online order for user=%s address=%s", user_id, shipping_address_id)
        raise

    logger.info("Order %s created for user=%s total=%s", order.id, user_id, order.total_amount)
    return order


def _merge_lines(lines: Sequence[OrderLine]) -> Dict[int, int]:
    merged: Dict[int, int] = {}
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"Quantity for book {line.book_id} must be between 1 and {MAX_IN_STORE_LINE_QTY}.")
        merged[line.book_id] = merged.get(line.book_id, 0) + line.quantity
    # the cap applies per book, after duplicate lines are folded together
    for book_id, qty in merged.items():
        if qty > MAX_IN_STORE_LINE_QTY:
            raise ValidationError(f"Quantity for book {book_id} must be between 1 and {MAX_IN_STORE_LINE_QTY}.")
    return merged


def create_in_store_order(
    db: Session,
    staff_user_id: int,
    lines: Sequence[OrderLine],
    payment_method: PaymentMethod,
    customer_user_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Order:
    """Counter sale: paid on the spot, handed over immediately, no cart or address."""
    logger.info("Staff %s creating in-store order with %s line(s)", staff_user_id, len(lines))
    if not lines:
        raise ValidationError("An in-store order needs at least one line.")
    quantities = _merge_lines(lines)

    try:
        with transaction(db):
            priced: List[Tuple[Book, int]] = []
            for book_id in sorted(quantities):
                book = get_book(db, book_id)
                if book is None or book.is_deleted:
                    raise NotFoundError(f"Book with id {book_id} not found or has been deleted.")
                priced.append((book, quantities[book_id]))
            details, subtotal = _price_lines(priced)

            order = Order(
                user_id=customer_user_id if customer_user_id is not None else staff_user_id,
                status=OrderStatus.COMPLETED,
                subtotal_amount=subtotal,
                discount_amount=ZERO,
                total_amount=subtotal,
                order_type=OrderType.IN_STORE,
                delivery_method=DeliveryMethod.PICKUP,
                payment_method=payment_method,
                payment_status=PaymentStatus.COMPLETED,
                notes=notes,
                details=details,
            )
            db.add(order)
            db.flush()

            _take_stock(db, order, InventoryReason.IN_STORE_SALE, staff_user_id)
    except BookstoreError as e:
        logger.warning("In-store order by staff %s rejected: %s", staff_user_id, e)
        raise
    except Exception:
        logger.exception("Error creating in-store order by staff %s", staff_user_id)
        raise

    logger.info("In-store order %s created by staff %s total=%s", order.id, staff_user_id, order.total_amount)
    return order


def _with_details(stmt):
    return stmt.options(
        selectinload(Order.details).selectinload(OrderDetail.book),
        selectinload(Order.shipping_address),
    )


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.execute(_with_details(select(Order).where(Order.id == order_id))).scalar_one_or_none()


def get_order_for_user(db: Session, user_id: int, order_id: int) -> Optional[Order]:
    order = get_order(db, order_id)
    if order is None or order.user_id != user_id:
        logger.warning("Order %s not found or does not belong to user %s", order_id, user_id)
        return None
    return order


def _page(page: int, page_size: int) -> Tuple[int, int]:
    page, page_size = clamp_page(page, page_size)
    return (page - 1) * page_size, page_size


def get_user_orders(db: Session, user_id: int, page: int = 1, page_size: int = 10) -> List[Order]:
    offset, limit = _page(page, page_size)
    stmt = (
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.order_date.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.execute(_with_details(stmt)).scalars().all())


def list_orders(db: Session, status: Optional[OrderStatus] = None, page: int = 1, page_size: int = 10) -> Tuple[List[Order], int]:
    offset, limit = _page(page, page_size)
    stmt = select(Order)
    count = select(func.count(Order.id))
    if status is not None:
        stmt = stmt.where(Order.status == status)
        count = count.where(Order.status == status)
    stmt = stmt.order_by(Order.order_date.desc(), Order.id.desc()).offset(offset).limit(limit)
    return list(db.execute(_with_details(stmt)).scalars().all()), int(db.execute(count).scalar_one())
