"""
Shared fixtures: in-memory SQLite database, seeded users of each role,
stations and batteries, and a TestClient bound to the app
"""
import os

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import models
from auth import create_user_token, get_password_hash
from database import Base, SessionLocal, engine
from main import app

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)

# Nairobi CBD, Westlands (~2.2 km away) and Mombasa (~440 km away)
CBD = (Decimal("-1.28640000"), Decimal("36.81720000"))
WESTLANDS = (Decimal("-1.26760000"), Decimal("36.81080000"))
MOMBASA = (Decimal("-4.04350000"), Decimal("39.66820000"))


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


def make_user(db, email, role="customer", is_active=True, full_name=None):
    user = models.User(
        email=email,
        password_hash=PASSWORD_HASH,
        full_name=full_name or email.split("@")[0].title(),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    db.add(models.UserProfile(user_id=user.user_id))
    db.commit()
    db.refresh(user)
    return user


def make_station(db, name, coords=CBD, **kwargs):
    values = dict(
        name=name,
        address=f"{name} Road",
        latitude=coords[0],
        longitude=coords[1],
        station_type="both",
        total_slots=10,
        available_batteries=0,
    )
    values.update(kwargs)
    station = models.Station(**values)
    db.add(station)
    db.commit()
    db.refresh(station)
    return station


def make_battery(db, code, station=None, **kwargs):
    values = dict(
        battery_code=code,
        serial_number=f"SN-{code}",
        model="EL-48V",
        capacity_kwh=Decimal("2.50"),
        charge_percentage=Decimal("100"),
        status="available",
        health_status="good",
        cycle_count=0,
        current_station_id=station.station_id if station else None,
    )
    values.update(kwargs)
    battery = models.Battery(**values)
    db.add(battery)
    db.commit()
    if battery.current_station_id is not None:
        count = db.query(models.Battery).filter(
            models.Battery.current_station_id == battery.current_station_id,
            models.Battery.status == "available",
        ).count()
        db.query(models.Station).filter(
            models.Station.station_id == battery.current_station_id
        ).update({"available_batteries": count})
        db.commit()
    db.refresh(battery)
    return battery


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def users(db):
    return {
        "admin": make_user(db, "admin@ecolith.co.ke", role="admin"),
        "manager": make_user(db, "manager@ecolith.co.ke", role="station_manager"),
        "customer": make_user(db, "wanjiku@example.com"),
        "other": make_user(db, "otieno@example.com"),
    }


@pytest.fixture
def headers(users):
    return {role: auth_headers(user) for role, user in users.items()}


@pytest.fixture
def network(db, users):
    """Two Nairobi stations; B1 and B2 docked at S1"""
    s1 = make_station(db, "CBD Hub", CBD, manager_id=users["manager"].user_id)
    s2 = make_station(db, "Westlands", WESTLANDS)
    b1 = make_battery(db, "B1", s1)
    b2 = make_battery(db, "B2", s1)
    return {"s1": s1, "s2": s2, "b1": b1, "b2": b2}
