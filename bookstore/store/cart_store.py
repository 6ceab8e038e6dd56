from typing import List
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload
from bookstore.core.errors import NotFoundError, ValidationError
from bookstore.db.models import Book, CartItem, now_utc

def get_cart(db: Session, user_id: int) -> List[CartItem]:
    stmt = (
        select(CartItem)
        .options(joinedload(CartItem.book))
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.book_id)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())

def put_item(db: Session, user_id: int, book_id: int, quantity: int) -> CartItem:
    """Set the quantity of one cart line, creating the line if needed. Caller commits."""
    if quantity <= 0:
        raise ValidationError("Cart quantity must be a positive integer")
    book = db.get(Book, book_id)
    if not book or book.is_deleted:
        raise NotFoundError(f"Book with id {book_id} not found")
    item = db.get(CartItem, (user_id, book_id))
    if item is None:
        item = CartItem(user_id=user_id, book_id=book_id, quantity=quantity)
        db.add(item)
    else:
        item.quantity = quantity
        item.updated_at = now_utc()
    return item

def delete_item(db: Session, user_id: int, book_id: int) -> None:
    db.execute(delete(CartItem).where(CartItem.user_id == user_id, CartItem.book_id == book_id))

def clear_cart(db: Session, user_id: int) -> int:
    result = db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    return result.rowcount
