from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bookstore.api.deps import get_db
from bookstore.core.auth import get_current_identity
from bookstore.core.errors import NotFoundError
from bookstore.schemas import CartItemAdd, CartItemUpdate, CartItemRead, CartRead
from bookstore.store.cart_store import get_cart, put_item, delete_item, clear_cart
from bookstore.db.models import CartItem
from bookstore.db.session import transaction

router = APIRouter()

def _read(db: Session, user_id: int) -> CartRead:
    items = get_cart(db, user_id)
    return CartRead(items=[
        CartItemRead(book_id=i.book_id, quantity=i.quantity, title=i.book.title, unit_price=i.book.price)
        for i in items
    ])

@router.get("/v1/cart", response_model=CartRead)
def get_my_cart(identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    return _read(db, identity["user_id"])

@router.post("/v1/cart/items", response_model=CartRead, status_code=201)
def add_item(payload: CartItemAdd, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    user_id = identity["user_id"]
    with transaction(db):
        existing = db.get(CartItem, (user_id, payload.book_id))
        qty = payload.quantity + (existing.quantity if existing else 0)
        put_item(db, user_id, payload.book_id, qty)
    return _read(db, user_id)

@router.patch("/v1/cart/items/{book_id}", response_model=CartRead)
def update_item(book_id: int, payload: CartItemUpdate, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    user_id = identity["user_id"]
    with transaction(db):
        if payload.quantity == 0:
            delete_item(db, user_id, book_id)
        else:
            if db.get(CartItem, (user_id, book_id)) is None:
                raise NotFoundError("Item not in cart")
            put_item(db, user_id, book_id, payload.quantity)
    return _read(db, user_id)

@router.delete("/v1/cart/items/{book_id}", response_model=CartRead)
def remove_item(book_id: int, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    user_id = identity["user_id"]
    with transaction(db):
        delete_item(db, user_id, book_id)
    return _read(db, user_id)

@router.post("/v1/cart/clear", response_model=CartRead)
def clear(identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    user_id = identity["user_id"]
    with transaction(db):
        clear_cart(db, user_id)
    return _read(db, user_id)
