from alembic import op
import sqlalchemy as sa

revision = "20251019101500"
down_revision = None

NOW = sa.text("CURRENT_TIMESTAMP")

order_status = sa.Enum("PENDING", "CONFIRMED", "SHIPPING", "COMPLETED", "CANCELLED", name="orderstatus")
order_type = sa.Enum("ONLINE", "IN_STORE", name="ordertype")
payment_method = sa.Enum("CASH", "CARD", "BANK_TRANSFER", "ONLINE_GATEWAY", "CASH_ON_DELIVERY", name="paymentmethod")
payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", name="paymentstatus")
delivery_method = sa.Enum("SHIPPING", "PICKUP", name="deliverymethod")
inventory_reason = sa.Enum(
    "INITIAL_STOCK", "STOCK_RECEIPT", "ONLINE_SALE", "IN_STORE_SALE", "ORDER_CANCELLATION", "ADJUSTMENT",
    name="inventoryreason",
)

def upgrade():
    op.create_table(
        'books',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=240), nullable=False),
        sa.Column('isbn', sa.String(length=20), nullable=True, unique=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=NOW),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=NOW),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_books_stock_non_negative'),
    )
    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('village', sa.String(length=120), nullable=True),
        sa.Column('district', sa.String(length=120), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('recipient_name', sa.String(length=120), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=True, server_default=sa.false()),
    )
    op.create_table(
        'cart_items',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('book_id', sa.Integer(), sa.ForeignKey('books.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=NOW),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=NOW),
    )
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('contact_person', sa.String(length=120), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
    )
    op.create_table(
        'order_shipping_addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('village', sa.String(length=120), nullable=True),
        sa.Column('district', sa.String(length=120), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('recipient_name', sa.String(length=120), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('order_date', sa.DateTime(), nullable=True, server_default=NOW),
        sa.Column('status', order_status, nullable=True, index=True),
        sa.Column('subtotal_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('order_type', order_type, nullable=False),
        sa.Column('delivery_method', delivery_method, nullable=False),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_status', payment_status, nullable=True),
        sa.Column('promotion_code', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('order_shipping_address_id', sa.Integer(), sa.ForeignKey('order_shipping_addresses.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=NOW),
    )
    op.create_table(
        'order_details',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('book_id', sa.Integer(), sa.ForeignKey('books.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
    )
    op.create_table(
        'promotions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('code_normalized', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('max_usage', sa.Integer(), nullable=True),
        sa.Column('current_usage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=NOW),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=NOW),
        sa.UniqueConstraint('code_normalized', name='uq_promotions_code_normalized'),
    )
    op.create_table(
        'stock_receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=True),
        sa.Column('receipt_date', sa.DateTime(), nullable=True, server_default=NOW),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
    )
    op.create_table(
        'stock_receipt_details',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('stock_receipt_id', sa.Integer(), sa.ForeignKey('stock_receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('book_id', sa.Integer(), sa.ForeignKey('books.id'), nullable=False),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('purchase_price', sa.Numeric(12, 2), nullable=True),
    )
    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('book_id', sa.Integer(), sa.ForeignKey('books.id'), nullable=False, index=True),
        sa.Column('change_quantity', sa.Integer(), nullable=False),
        sa.Column('reason', inventory_reason, nullable=False, index=True),
        sa.Column('timestamp_utc', sa.DateTime(), nullable=True, server_default=NOW, index=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True, index=True),
        sa.Column('stock_receipt_id', sa.Integer(), sa.ForeignKey('stock_receipts.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
    )

def downgrade():
    op.drop_table('inventory_logs')
    op.drop_table('stock_receipt_details')
    op.drop_table('stock_receipts')
    op.drop_table('promotions')
    op.drop_table('order_details')
    op.drop_table('orders')
    op.drop_table('order_shipping_addresses')
    op.drop_table('suppliers')
    op.drop_table('cart_items')
    op.drop_table('addresses')
    op.drop_table('books')
    bind = op.get_bind()
    for enum in (inventory_reason, delivery_method, payment_status, payment_method, order_type, order_status):
        enum.drop(bind, checkfirst=True)
