"""
Shared fixtures: a throwaway SQLite file database per test, a TestClient
wired to it, and a small seeded marketplace (clients, providers, services).
"""
import os

# must be set before app modules build the engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.security import create_access_token
from app.db.base import Base, get_db
from app.db.models.booking import BookingStatus
from app.db.models.provider import ServiceProvider
from app.db.models.service import Service, ServiceOption
from app.db.models.user import User
from app.main import app
from app.schemas.booking import BookingCreate
from app.services import booking_service


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# --------------------------
# Seed data
# --------------------------
def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def client_user(db):
    return _add(db, User(email="awa@example.com", name="Awa Diallo", phone="+221770000001", role="client"))


@pytest.fixture
def other_client(db):
    return _add(db, User(email="moussa@example.com", name="Moussa Ba", phone="+221770000002", role="client"))


@pytest.fixture
def admin_user(db):
    return _add(db, User(email="admin@example.com", name="Admin", role="admin"))


@pytest.fixture
def provider_user(db):
    user = _add(db, User(email="plombier@example.com", name="Ibrahima Sow", phone="+221770000010", role="provider"))
    _add(db, ServiceProvider(
        owner_id=user.id,
        business_name="Sow Plomberie",
        phone_number="+221770000010",
        city="Dakar",
    ))
    db.refresh(user)
    return user


@pytest.fixture
def provider(db, provider_user):
    return provider_user.provider_profile


@pytest.fixture
def other_provider_user(db):
    user = _add(db, User(email="elec@example.com", name="Fatou Ndiaye", role="provider"))
    _add(db, ServiceProvider(
        owner_id=user.id,
        business_name="Ndiaye Electricite",
        phone_number="+221770000020",
        city="Thies",
    ))
    db.refresh(user)
    return user


@pytest.fixture
def provider_without_profile(db):
    return _add(db, User(email="noprofile@example.com", name="No Profile", role="provider"))


@pytest.fixture
def service_a(db, provider):
    return _add(db, Service(provider_id=provider.id, title="Leak repair", category="Plumbing", base_price=1000))


@pytest.fixture
def service_b(db, provider):
    return _add(db, Service(provider_id=provider.id, title="Boiler install", category="Plumbing", base_price=2000))


@pytest.fixture
def service_with_options(db, provider):
    svc = _add(db, Service(
        provider_id=provider.id,
        title="Bathroom cleaning",
        category="Cleaning",
        base_price=5000,
        has_discount=True,
        discounted_price=4000,
    ))
    _add(db, ServiceOption(service_id=svc.id, name="Eco products", price=500))
    _add(db, ServiceOption(service_id=svc.id, name="Same day", price=1500))
    db.refresh(svc)
    return svc


@pytest.fixture
def other_service(db, other_provider_user):
    return _add(db, Service(
        provider_id=other_provider_user.provider_profile.id,
        title="Socket install",
        category="Electricity",
        base_price=700,
    ))


# --------------------------
# Helpers
# --------------------------
@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
def booking_payload():
    def _payload(*service_ids, **overrides):
        body = {
            "services": [{"service_id": sid} for sid in service_ids],
            "scheduled_date": (date.today() + timedelta(days=2)).isoformat(),
            "scheduled_time": "14:30",
            "service_location": {
                "type": "client_address",
                "address": "12 Rue Carnot",
                "city": "Dakar",
                "coordinates": {"lat": 14.69, "lng": -17.44},
            },
            "client_notes": "Second floor",
            "payment_method": "mobile_money",
        }
        body.update(overrides)
        return body
    return _payload


@pytest.fixture
def make_booking(db, client_user, admin_user, service_a, service_b, booking_payload):
    """Create a booking through the service layer and walk it to `status` as admin."""
    path = {
        BookingStatus.PENDING: [],
        BookingStatus.CONFIRMED: ["confirmed"],
        BookingStatus.IN_PROGRESS: ["confirmed", "in_progress"],
        BookingStatus.COMPLETED: ["confirmed", "in_progress", "completed"],
        BookingStatus.CANCELLED: ["cancelled"],
        BookingStatus.NO_SHOW: ["no_show"],
    }

    def _make(status=BookingStatus.PENDING, owner=None, service_ids=None):
        ids = service_ids or (service_a.id, service_b.id)
        payload = BookingCreate(**booking_payload(*ids))
        booking = booking_service.create_booking(db, owner or client_user, payload)
        for step in path[BookingStatus(status)]:
            booking = booking_service.update_status(db, booking.id, admin_user, step, "")
        return booking

    return _make
