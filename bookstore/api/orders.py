from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bookstore.api.deps import get_db
from bookstore.core.auth import get_current_identity, require_admin, require_staff
from bookstore.core.errors import NotFoundError
from bookstore.db.models import OrderStatus
from bookstore.kafka.producer import emit_order_event
from bookstore.schemas import (
    CreateOrderRequest, CreateInStoreOrderRequest, UpdateOrderStatusRequest, OrderRead, OrderPage,
)
from bookstore.services import orders as order_service
from bookstore.services import order_status
from bookstore.services.paging import clamp_page
from bookstore.services.types import OrderLine

router = APIRouter()

# --- customer ---

@router.post("/v1/orders", response_model=OrderRead, status_code=201)
def create_order(payload: CreateOrderRequest, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    order = order_service.create_online_order(db, identity["user_id"], payload.shipping_address_id, payload.promotion_code)
    order = order_service.get_order(db, order.id)
    emit_order_event("order.created", order)
    return OrderRead.model_validate(order)

@router.get("/v1/orders", response_model=List[OrderRead])
def my_orders(page: int = 1, page_size: int = 10, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    rows = order_service.get_user_orders(db, identity["user_id"], page, page_size)
    return [OrderRead.model_validate(o) for o in rows]

@router.get("/v1/orders/{order_id}", response_model=OrderRead)
def my_order(order_id: int, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    order = order_service.get_order_for_user(db, identity["user_id"], order_id)
    if not order:
        raise NotFoundError("Order not found")
    return OrderRead.model_validate(order)

@router.put("/v1/orders/{order_id}/cancel", response_model=OrderRead)
def cancel_my_order(order_id: int, identity: dict = Depends(get_current_identity), db: Session = Depends(get_db)):
    order_status.cancel_order(db, identity["user_id"], order_id)
    order = order_service.get_order(db, order_id)
    emit_order_event("order.status_changed", order, changed_by=identity["user_id"])
    return OrderRead.model_validate(order)

# --- staff ---

@router.post("/v1/staff/orders", response_model=OrderRead, status_code=201)
def create_in_store_order(payload: CreateInStoreOrderRequest, identity: dict = Depends(require_staff), db: Session = Depends(get_db)):
    lines = [OrderLine(book_id=line.book_id, quantity=line.quantity) for line in payload.order_details]
    order = order_service.create_in_store_order(
        db, identity["user_id"], lines, payload.payment_method,
        customer_user_id=payload.customer_user_id, notes=payload.staff_notes,
    )
    order = order_service.get_order(db, order.id)
    emit_order_event("order.created", order)
    return OrderRead.model_validate(order)

# --- admin ---

@router.get("/v1/admin/orders", response_model=OrderPage)
def list_orders(status: Optional[OrderStatus] = None, page: int = 1, page_size: int = 10, _=Depends(require_admin), db: Session = Depends(get_db)):
    page, page_size = clamp_page(page, page_size)
    rows, total = order_service.list_orders(db, status, page, page_size)
    return OrderPage(items=[OrderRead.model_validate(o) for o in rows], total_count=total, page=page, page_size=page_size)

@router.get("/v1/admin/orders/{order_id}", response_model=OrderRead)
def get_order(order_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return OrderRead.model_validate(order)

@router.put("/v1/admin/orders/{order_id}/status", response_model=OrderRead)
def update_status(order_id: int, payload: UpdateOrderStatusRequest, identity: dict = Depends(require_admin), db: Session = Depends(get_db)):
    if not order_status.update_order_status(db, order_id, payload.new_status, identity["user_id"]):
        raise NotFoundError("Order not found")
    order = order_service.get_order(db, order_id)
    emit_order_event("order.status_changed", order, changed_by=identity["user_id"])
    return OrderRead.model_validate(order)
