"""
Shared fixtures: an in-memory SQLite database per test, a session bound
to it, a TestClient whose get_db yields that session, and factories for
technicians and bookings.
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hvac_dispatch.api.app import app
from hvac_dispatch.lib.business_rules import reset_business_rules
from hvac_dispatch.lib.db import drop_db, get_db, init_db
from hvac_dispatch.lib.metrics import reset_metrics
from hvac_dispatch.models.bookings import Booking, BookingStatus, ServiceType, TimeSlot
from hvac_dispatch.models.technicians import Technician, TechnicianLevel, TechnicianSkill, AvailabilityStatus


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    drop_db(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def reset_globals():
    """Fresh counters and rules built from settings for every test."""
    reset_metrics()
    reset_business_rules()
    yield
    reset_metrics()
    reset_business_rules()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session
    
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_technician(db_session):
    """Persist an active, approved technician; keyword arguments override defaults."""
    counter = {"n": 0}
    
    def _make(**overrides) -> Technician:
        counter["n"] += 1
        fields = {
            "display_name": f"Tech {counter['n']}",
            "email": f"tech{counter['n']}@vrm.test",
            "phone": "+233200000000",
            "is_active": True,
            "is_approved": True,
            "level": TechnicianLevel.TECHNICIAN,
            "skills": [TechnicianSkill.AC_INSTALLATION.value, TechnicianSkill.AC_REPAIR.value],
            "service_areas": ["Accra"],
            "availability_status": AvailabilityStatus.AVAILABLE,
            "current_job_ids": [],
            "max_jobs_per_day": 8,
        }
        fields.update(overrides)
        technician = Technician(**fields)
        db_session.add(technician)
        db_session.commit()
        return technician
    
    return _make


@pytest.fixture
def make_booking(db_session):
    """Persist a pending booking; keyword arguments override defaults."""
    counter = {"n": 0}
    
    def _make(**overrides) -> Booking:
        counter["n"] += 1
        fields = {
            "booking_number": f"VRM{10000 + counter['n']}P",
            "customer_id": "customer-1",
            "customer_name": "Ama Mensah",
            "service_type": ServiceType.REPAIR,
            "service_details": {},
            "agreed_price": 200.0,
            "preferred_date": date(2026, 11, 2),
            "preferred_time_slot": TimeSlot.MORNING,
            "address": "12 Ring Road",
            "city": "Accra",
            "status": BookingStatus.PENDING,
        }
        fields.update(overrides)
        booking = Booking(**fields)
        db_session.add(booking)
        db_session.commit()
        return booking
    
    return _make
