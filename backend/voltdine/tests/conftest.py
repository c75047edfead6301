"""
Pytest configuration and fixtures for Voltdine backend tests.

Every test gets its own in-memory SQLite database, so nothing leaks between
tests and the configured MySQL database is never touched.
"""
import os
from datetime import datetime
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from voltdine.db.base import Base
from voltdine.models import (
    AdjustmentStatus,
    AdjustmentType,
    ChargingSession,
    ChargingStatus,
    FoodOrder,
    OrderStatus,
    PaymentAdjustment,
    PaymentStatus,
    Vendor,
)


@pytest.fixture(scope="function")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    """Provide a clean database session for each test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db):
    """FastAPI TestClient whose requests share the test session."""
    from fastapi.testclient import TestClient
    from voltdine.main import app
    from voltdine.db.session import get_db

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def vendor(db):
    """Vendor with a payout account on file."""
    vendor = Vendor(
        name="Asha Rao",
        business_name="Highway Plug & Dine",
        account_number="001234567890",
        account_holder_name="Asha Rao",
        bank_name="State Bank",
        ifsc_code="SBIN0000001",
    )
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return vendor


@pytest.fixture
def make_charging(db):
    """Create a charging session; completed and paid unless told otherwise."""
    def _make(vendor, gross, end_time=None, status=ChargingStatus.COMPLETED,
              payment_status=PaymentStatus.PAID, created_at=None, **fields):
        session = ChargingSession(
            vendor_id=vendor.id,
            gross_amount=Decimal(str(gross)),
            status=status,
            payment_status=payment_status,
            station_name="Bay 1",
            actual_end_time=end_time,
            created_at=created_at or end_time or datetime(2024, 1, 1),
            **fields
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session
    return _make


@pytest.fixture
def make_food(db):
    """Create a food order; completed and paid unless told otherwise."""
    def _make(vendor, gross, completed_at=None, status=OrderStatus.COMPLETED,
              payment_status=PaymentStatus.PAID, created_at=None, **fields):
        order = FoodOrder(
            vendor_id=vendor.id,
            gross_amount=Decimal(str(gross)),
            status=status,
            payment_status=payment_status,
            restaurant_name="Dhaba Express",
            item_count=2,
            completed_at=completed_at,
            created_at=created_at or completed_at or datetime(2024, 1, 1),
            **fields
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


@pytest.fixture
def add_adjustment(db):
    """Attach an adjustment to a transaction directly, bypassing the workflow."""
    def _add(transaction, adjustment_type, amount, status=AdjustmentStatus.PROCESSED):
        adjustment = PaymentAdjustment(
            type=AdjustmentType(adjustment_type),
            amount=Decimal(str(amount)),
            status=status,
            reason="test adjustment",
        )
        transaction.adjustments.append(adjustment)
        db.commit()
        db.refresh(transaction)
        return adjustment
    return _add


@pytest.fixture
def vendor_headers(vendor):
    from voltdine.core.security import create_vendor_token
    return {"Authorization": f"Bearer {create_vendor_token(vendor.id)}"}


@pytest.fixture
def admin_headers():
    from voltdine.core.security import create_admin_token
    return {"Authorization": f"Bearer {create_admin_token('ops')}"}
