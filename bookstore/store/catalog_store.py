from typing import Optional
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from bookstore.db.models import Address, Book, InventoryLog, Promotion, Supplier

def get_book(db: Session, book_id: int, for_update: bool = False) -> Optional[Book]:
    stmt = select(Book).where(Book.id == book_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()

def get_address_for_user(db: Session, address_id: int, user_id: int) -> Optional[Address]:
    addr = db.get(Address, address_id)
    if not addr or addr.user_id != user_id:
        return None
    return addr

def get_supplier(db: Session, supplier_id: int) -> Optional[Supplier]:
    return db.get(Supplier, supplier_id)

def normalize_code(code: str) -> str:
    return code.strip().upper()

def get_promotion_by_code(db: Session, code: str, for_update: bool = False) -> Optional[Promotion]:
    stmt = select(Promotion).where(Promotion.code_normalized == normalize_code(code)).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()

def ledger_balance(db: Session, book_id: int) -> int:
    """Sum of every ledger change for the book; equals its stock counter."""
    stmt = select(func.coalesce(func.sum(InventoryLog.change_quantity), 0)).where(InventoryLog.book_id == book_id)
    return int(db.execute(stmt).scalar_one())
