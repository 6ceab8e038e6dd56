from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, Boolean, ForeignKey, Numeric, Enum as SAEnum, UniqueConstraint, CheckConstraint
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from bookstore.db.session import Base

def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Columns hold naive UTC; convert aware values, pass naive ones through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

class OrderStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPING = "Shipping"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class OrderType(str, Enum):
    ONLINE = "Online"
    IN_STORE = "InStore"

class PaymentMethod(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    BANK_TRANSFER = "BankTransfer"
    ONLINE_GATEWAY = "OnlineGateway"
    CASH_ON_DELIVERY = "CashOnDelivery"

class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"

class DeliveryMethod(str, Enum):
    SHIPPING = "Shipping"
    PICKUP = "Pickup"

class InventoryReason(str, Enum):
    INITIAL_STOCK = "InitialStock"
    STOCK_RECEIPT = "StockReceipt"
    ONLINE_SALE = "OnlineSale"
    IN_STORE_SALE = "InStoreSale"
    ORDER_CANCELLATION = "OrderCancellation"
    ADJUSTMENT = "Adjustment"

Money = Numeric(12, 2)

class Book(Base):
    __tablename__ = "books"
    __table_args__ = (CheckConstraint("stock_quantity >= 0", name="ck_books_stock_non_negative"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(240), nullable=False)
    isbn: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # Written only by bookstore.services.stock.apply_stock_change
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc, onupdate=now_utc)

class Address(Base):
    __tablename__ = "addresses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    village: Mapped[str] = mapped_column(String(120), default="")
    district: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

class CartItem(Base):
    __tablename__ = "cart_items"
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc, onupdate=now_utc)

    book = relationship("Book")

class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_person: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

class OrderShippingAddress(Base):
    """Copy of an Address taken when the order is placed; never follows later edits."""
    __tablename__ = "order_shipping_addresses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    village: Mapped[str] = mapped_column(String(120), default="")
    district: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime(), default=now_utc)
    status: Mapped[OrderStatus] = mapped_column(SAEnum(OrderStatus), default=OrderStatus.PENDING, index=True)
    subtotal_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    order_type: Mapped[OrderType] = mapped_column(SAEnum(OrderType), nullable=False)
    delivery_method: Mapped[DeliveryMethod] = mapped_column(SAEnum(DeliveryMethod), nullable=False)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(SAEnum(PaymentMethod), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(SAEnum(PaymentStatus), default=PaymentStatus.PENDING)
    promotion_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_shipping_address_id: Mapped[Optional[int]] = mapped_column(ForeignKey("order_shipping_addresses.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc, onupdate=now_utc)

    details = relationship("OrderDetail", back_populates="order", cascade="all, delete-orphan")
    shipping_address = relationship("OrderShippingAddress")

class OrderDetail(Base):
    __tablename__ = "order_details"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Book.price at the moment the order was placed
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    order = relationship("Order", back_populates="details")
    book = relationship("Book")

class InventoryLog(Base):
    """Append-only ledger row. One per stock change, never updated or deleted."""
    __tablename__ = "inventory_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id"), index=True, nullable=False)
    change_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[InventoryReason] = mapped_column(SAEnum(InventoryReason), nullable=False, index=True)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(), default=now_utc, index=True)
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("orders.id"), nullable=True, index=True)
    stock_receipt_id: Mapped[Optional[int]] = mapped_column(ForeignKey("stock_receipts.id"), nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    book = relationship("Book")

class Promotion(Base):
    __tablename__ = "promotions"
    __table_args__ = (UniqueConstraint("code_normalized", name="uq_promotions_code_normalized"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    # upper-cased code, enforces case-insensitive uniqueness
    code_normalized: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    max_usage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=now_utc, onupdate=now_utc)

class StockReceipt(Base):
    __tablename__ = "stock_receipts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id"), nullable=True)
    receipt_date: Mapped[datetime] = mapped_column(DateTime(), default=now_utc)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    supplier = relationship("Supplier")
    details = relationship("StockReceiptDetail", back_populates="receipt", cascade="all, delete-orphan")

class StockReceiptDetail(Base):
    __tablename__ = "stock_receipt_details"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    stock_receipt_id: Mapped[int] = mapped_column(ForeignKey("stock_receipts.id", ondelete="CASCADE"), nullable=False)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id"), nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    receipt = relationship("StockReceipt", back_populates="details")
    book = relationship("Book")
