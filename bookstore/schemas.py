from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from bookstore.db.models import InventoryReason, OrderStatus, OrderType, PaymentMethod, PaymentStatus, DeliveryMethod

# --- cart ---
class CartItemAdd(BaseModel):
    book_id: int
    quantity: int = Field(ge=1)
class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=0)
class CartItemRead(BaseModel):
    book_id: int
    quantity: int
    title: str
    unit_price: Decimal
class CartRead(BaseModel):
    items: List[CartItemRead] = []

# --- orders ---
class CreateOrderRequest(BaseModel):
    shipping_address_id: int
    promotion_code: Optional[str] = None
class InStoreLine(BaseModel):
    book_id: int
    quantity: int = Field(ge=1, le=100)
class CreateInStoreOrderRequest(BaseModel):
    customer_user_id: Optional[int] = None
    order_details: List[InStoreLine] = Field(min_length=1)
    payment_method: PaymentMethod
    staff_notes: Optional[str] = None
class UpdateOrderStatusRequest(BaseModel):
    new_status: OrderStatus
class OrderShippingAddressRead(BaseModel):
    street: str
    village: Optional[str] = ""
    district: str
    city: str
    recipient_name: Optional[str] = None
    phone_number: Optional[str] = None
    class Config: from_attributes = True
class OrderDetailRead(BaseModel):
    book_id: int
    quantity: int
    unit_price: Decimal
    class Config: from_attributes = True
class OrderRead(BaseModel):
    id: int
    user_id: int
    order_date: datetime
    status: OrderStatus
    order_type: OrderType
    delivery_method: DeliveryMethod
    payment_method: Optional[PaymentMethod] = None
    payment_status: PaymentStatus
    subtotal_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    promotion_code: Optional[str] = None
    notes: Optional[str] = None
    shipping_address: Optional[OrderShippingAddressRead] = None
    details: List[OrderDetailRead] = []
    class Config: from_attributes = True
class OrderPage(BaseModel):
    items: List[OrderRead]
    total_count: int
    page: int
    page_size: int

# --- inventory ---
class AdjustInventoryRequest(BaseModel):
    book_id: int
    change_quantity: int
    reason: InventoryReason = InventoryReason.ADJUSTMENT
    notes: Optional[str] = Field(default=None, max_length=500)
class AdjustInventoryResponse(BaseModel):
    book_id: int
    new_quantity: int
class InventoryLogRead(BaseModel):
    id: int
    book_id: int
    change_quantity: int
    reason: InventoryReason
    timestamp_utc: datetime
    order_id: Optional[int] = None
    stock_receipt_id: Optional[int] = None
    user_id: Optional[int] = None
    notes: Optional[str] = None
    class Config: from_attributes = True
class InventoryLogPage(BaseModel):
    items: List[InventoryLogRead]
    total_count: int
    page: int
    page_size: int
class StockBalanceRead(BaseModel):
    book_id: int
    stock_quantity: int
    ledger_balance: int

# --- stock receipts ---
class ReceiptDetailCreate(BaseModel):
    book_id: int
    quantity_received: int = Field(ge=1)
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
class StockReceiptCreate(BaseModel):
    supplier_id: Optional[int] = None
    receipt_date: Optional[datetime] = None
    notes: Optional[str] = None
    details: List[ReceiptDetailCreate] = Field(min_length=1)
class ReceiptDetailRead(BaseModel):
    id: int
    book_id: int
    quantity_received: int
    purchase_price: Optional[Decimal] = None
    class Config: from_attributes = True
class StockReceiptRead(BaseModel):
    id: int
    supplier_id: Optional[int] = None
    receipt_date: datetime
    notes: Optional[str] = None
    created_by: Optional[int] = None
    details: List[ReceiptDetailRead] = []
    class Config: from_attributes = True

# --- promotions ---
class PromotionBase(BaseModel):
    description: Optional[str] = None
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    max_usage: Optional[int] = None
    is_active: bool = True
class PromotionCreate(PromotionBase):
    code: str = Field(min_length=1, max_length=50)
class PromotionUpdate(BaseModel):
    description: Optional[str] = None
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_usage: Optional[int] = None
    is_active: Optional[bool] = None
class PromotionRead(PromotionBase):
    id: int
    code: str
    current_usage: int
    created_at: datetime
    class Config: from_attributes = True
class DiscountQuoteRequest(BaseModel):
    code: str
    subtotal: Decimal = Field(ge=0)
class DiscountQuote(BaseModel):
    code: str
    subtotal: Decimal
    discount_amount: Decimal
    total_after_discount: Decimal
