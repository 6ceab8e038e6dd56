"""Racing sales against the same stock and promotion from separate sessions."""
import threading
from decimal import Decimal

from sqlalchemy import select

from bookstore.core.errors import InsufficientStockError, ValidationError
from bookstore.db.models import Address, Order, PaymentMethod
from bookstore.db.session import transaction
from bookstore.services import orders as order_service
from bookstore.services.stock import create_book
from bookstore.services.types import OrderLine
from bookstore.store.catalog_store import get_book, get_promotion_by_code, ledger_balance

from conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID, STAFF_ID


def test_two_sales_cannot_oversell(db, session_factory):
    book = create_book(db, "Last Copies", Decimal("12.00"), initial_stock=5)
    db.close()

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def buy():
        session = session_factory()
        try:
            barrier.wait()
            order_service.create_in_store_order(session, STAFF_ID, [OrderLine(book.id, 3)], PaymentMethod.CASH)
            result = "ok"
        except InsufficientStockError:
            result = "short"
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=buy) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "short"]
    assert get_book(db, book.id).stock_quantity == 2
    assert ledger_balance(db, book.id) == 2


def test_racing_orders_cannot_overspend_a_promotion(db, session_factory, books, address, promotions, fill_cart):
    other_address = Address(user_id=OTHER_CUSTOMER_ID, street="3 Side Ln", district="Camden", city="London")
    with transaction(db):
        db.add(other_address)
    fill_cart(CUSTOMER_ID, (books["dune"], 1))
    fill_cart(OTHER_CUSTOMER_ID, (books["emma"], 1))
    shoppers = [(CUSTOMER_ID, address.id), (OTHER_CUSTOMER_ID, other_address.id)]
    db.close()

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def checkout(user_id, address_id):
        session = session_factory()
        try:
            barrier.wait()
            order_service.create_online_order(session, user_id, address_id, promotion_code="ONCE")
            result = "ok"
        except ValidationError:
            result = "rejected"
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=checkout, args=shopper) for shopper in shoppers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "rejected"]
    assert get_promotion_by_code(db, "ONCE").current_usage == 1
    rows = db.execute(select(Order)).scalars().all()
    assert len(rows) == 1
    assert rows[0].promotion_code == "ONCE"
    assert get_book(db, books["dune"].id).stock_quantity + get_book(db, books["emma"].id).stock_quantity == 14
