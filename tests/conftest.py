"""Pytest fixtures: a throwaway SQLite database seeded with books, an address and promotions."""
import os

# before bookstore is imported: no broker, no postgres
os.environ["KAFKA_BOOTSTRAP"] = ""
os.environ["POSTGRES_DSN"] = "sqlite://"

from datetime import timedelta
from decimal import Decimal

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from bookstore.api.deps import get_db
from bookstore.core.config import settings
from bookstore.db.models import Address, Supplier, now_utc
from bookstore.db.session import Base, make_engine, transaction
from bookstore.main import app
from bookstore.services.promotions import create_promotion
from bookstore.services.stock import create_book
from bookstore.store.cart_store import put_item

ADMIN_ID = 1
CUSTOMER_ID = 2
OTHER_CUSTOMER_ID = 3
STAFF_ID = 10


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'bookstore.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def books(db):
    dune = create_book(db, "Dune", Decimal("10.00"), initial_stock=10, user_id=ADMIN_ID, isbn="9780441013593")
    emma = create_book(db, "Emma", Decimal("25.50"), initial_stock=5, user_id=ADMIN_ID)
    retired = create_book(db, "Retired Title", Decimal("7.00"), initial_stock=3, user_id=ADMIN_ID)
    with transaction(db):
        retired.is_deleted = True
    return {"dune": dune, "emma": emma, "retired": retired}


@pytest.fixture
def address(db):
    addr = Address(
        user_id=CUSTOMER_ID, street="12 Baker St", village="Marylebone", district="Westminster",
        city="London", recipient_name="Ada Reader", phone_number="555-0101", is_default=True,
    )
    with transaction(db):
        db.add(addr)
    return addr


@pytest.fixture
def supplier(db):
    sup = Supplier(name="Paper Trail Distribution", contact_person="Sam", email="sam@papertrail.example")
    with transaction(db):
        db.add(sup)
    return sup


@pytest.fixture
def promotions(db):
    now = now_utc()
    return {
        "save10": create_promotion(db, "SAVE10", now - timedelta(days=1), discount_percentage=Decimal("10")),
        "fiveoff": create_promotion(db, "FIVEOFF", now - timedelta(days=1), discount_amount=Decimal("5.00")),
        "once": create_promotion(db, "ONCE", now - timedelta(days=1), discount_amount=Decimal("2.00"), max_usage=1),
        "expired": create_promotion(
            db, "EXPIRED", now - timedelta(days=10), discount_percentage=Decimal("20"), end_date=now - timedelta(days=1),
        ),
        "inactive": create_promotion(
            db, "SLEEPING", now - timedelta(days=1), discount_percentage=Decimal("15"), is_active=False,
        ),
        "future": create_promotion(db, "SOON", now + timedelta(days=3), discount_percentage=Decimal("5")),
    }


@pytest.fixture
def fill_cart(db):
    def _fill(user_id, *lines):
        with transaction(db):
            for book, qty in lines:
                put_item(db, user_id, book.id, qty)
    return _fill


def make_token(user_id: int, role: str) -> str:
    return jwt.encode(
        {"sub": str(user_id), "role": role, "type": "access"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def auth_headers(user_id: int, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers():
    return auth_headers(CUSTOMER_ID, "customer")


@pytest.fixture
def staff_headers():
    return auth_headers(STAFF_ID, "staff")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, "admin")
