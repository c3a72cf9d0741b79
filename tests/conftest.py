"""
Shared fixtures: every test gets its own app bound to a fresh in-memory
SQLite store, plus small factories for the rows the services expect.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from sqlalchemy.orm import Session

from carryon import create_app
from carryon.config import TestConfig
from carryon.extensions import db as _db
from carryon.model import (
    User, Driver, Address, Booking, Coupon, Vehicle,
    BookingStatus, PaymentMethod, PaymentStatus, DiscountType,
)
from carryon.services.ledger_service import LedgerService
from carryon.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def session(app):
    return _db.session


@pytest.fixture
def open_session(app):
    """Independent ORM sessions on the shared engine, one per simulated request."""
    opened = []

    def _open():
        s = Session(_db.engine)
        opened.append(s)
        return s
    yield _open
    for s in opened:
        s.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ledger(session):
    return LedgerService(session)


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(name=None, referral_code=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            phone=f"+60 12-000 00{n:02d}",
            referral_code=referral_code or f"REF{n:05d}",
        )
        session.add(user)
        session.commit()
        return user
    return _make


@pytest.fixture
def make_driver(session):
    def _make(name="Ali Driver"):
        driver = Driver(name=name, phone="+60 13-111 2222", vehicle_number="WXY 1234", vehicle_model="Hiace")
        session.add(driver)
        session.commit()
        return driver
    return _make


@pytest.fixture
def make_booking(session):
    def _make(user, estimated_price="100.00", status=BookingStatus.PENDING,
              payment_method=PaymentMethod.CASH, payment_status=PaymentStatus.PENDING,
              driver=None, otp="1234", discount="0", final_price="0", duration=25):
        pickup = Address(user_id=user.id, label="Home", address="1 Jalan Ampang")
        delivery = Address(user_id=user.id, label="Office", address="88 Jalan Tun Razak")
        session.add_all([pickup, delivery])
        session.flush()
        booking = Booking(
            user_id=user.id,
            pickup_address_id=pickup.id,
            delivery_address_id=delivery.id,
            driver_id=driver.id if driver else None,
            vehicle_type="VAN",
            estimated_price=Decimal(estimated_price),
            discount_amount=Decimal(discount),
            final_price=Decimal(final_price),
            duration=duration,
            status=status,
            payment_method=payment_method,
            payment_status=payment_status,
            otp=otp,
        )
        session.add(booking)
        session.commit()
        return booking
    return _make


@pytest.fixture
def make_coupon(session):
    def _make(code="SAVE10", discount_type=DiscountType.PERCENTAGE, value="10", max_discount=None,
              min_order="0", usage_limit=100, used_count=0, is_active=True, expires_in=timedelta(days=30)):
        coupon = Coupon(
            code=code,
            description=f"{code} promo",
            discount_type=discount_type,
            discount_value=Decimal(value),
            max_discount=Decimal(max_discount) if max_discount is not None else None,
            min_order_value=Decimal(min_order),
            usage_limit=usage_limit,
            used_count=used_count,
            is_active=is_active,
            expires_at=utcnow() + expires_in if expires_in is not None else None,
        )
        session.add(coupon)
        session.commit()
        return coupon
    return _make


@pytest.fixture
def make_vehicle(session):
    def _make(name="Van", base_price="20.00", available=True):
        v = Vehicle(name=name, base_price=Decimal(base_price), price_per_km=Decimal("1.50"), is_available=available)
        session.add(v)
        session.commit()
        return v
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers
