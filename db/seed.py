#!/usr/bin/env python3
"""
EcolithSwap demo data loader

Creates sample users, stations and batteries so a fresh database can be
explored through the API. Seeding is skipped when users already exist.

Usage:
    python db/seed.py           # Seed if the database is empty
    python db/seed.py --reset   # Drop all tables, recreate and seed
    python db/seed.py --stats   # Print row counts only
"""
import argparse
import logging
import sys
from decimal import Decimal

from sqlalchemy import func

from auth import get_password_hash
from database import Base, SessionLocal, engine, init_db
from models import Battery, Station, User, UserProfile
from services.rentals import refresh_station_inventory

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

SAMPLE_USERS = [
    {"full_name": "System Administrator", "email": "admin@ecolithswap.com",
     "phone": "+254700000001", "location": "Nairobi", "role": "admin"},
    {"full_name": "Station Manager", "email": "manager@ecolithswap.com",
     "phone": "+254700000002", "location": "Nairobi", "role": "station_manager"},
    {"full_name": "John Doe", "email": "john.doe@email.com",
     "phone": "+254700000003", "location": "Nairobi", "role": "customer"},
    {"full_name": "Jane Smith", "email": "jane.smith@email.com",
     "phone": "+254700000004", "location": "Mombasa", "role": "customer"},
]

SAMPLE_STATIONS = [
    {"name": "Nairobi CBD Station", "address": "Tom Mboya Street, Nairobi",
     "latitude": "-1.2864", "longitude": "36.8172", "station_type": "both",
     "total_slots": 20, "operating_hours": "24/7", "is_active": True},
    {"name": "Westlands Station", "address": "Westlands Road, Nairobi",
     "latitude": "-1.2630", "longitude": "36.8063", "station_type": "swap",
     "total_slots": 15, "operating_hours": "06:00-22:00", "is_active": True},
    {"name": "Mombasa Station", "address": "Moi Avenue, Mombasa",
     "latitude": "-4.0435", "longitude": "39.6682", "station_type": "charge",
     "total_slots": 10, "operating_hours": "08:00-20:00", "is_active": True},
    {"name": "Kisumu Station", "address": "Oginga Odinga Street, Kisumu",
     "latitude": "-0.0917", "longitude": "34.7680", "station_type": "both",
     "total_slots": 12, "operating_hours": "24/7", "is_active": True},
    {"name": "Karen Station", "address": "Karen Road, Nairobi",
     "latitude": "-1.3197", "longitude": "36.6859", "station_type": "swap",
     "total_slots": 10, "operating_hours": "07:00-21:00", "is_active": False},
]

# (capacity_kwh, charge_percentage, health_status, status)
SAMPLE_BATTERIES = [
    ("5.00", 100, "good", "available"),
    ("5.00", 85, "good", "available"),
    ("5.00", 92, "good", "available"),
    ("7.50", 78, "good", "available"),
    ("7.50", 95, "good", "available"),
    ("5.00", 88, "good", "available"),
    ("7.50", 100, "good", "available"),
    ("5.00", 65, "fair", "available"),
    ("7.50", 90, "good", "maintenance"),
    ("5.00", 100, "good", "charging"),
]


def seed_users(db) -> dict:
    password_hash = get_password_hash(DEMO_PASSWORD)
    users = {}
    for data in SAMPLE_USERS:
        user = User(password_hash=password_hash, email_verified=True, **data)
        db.add(user)
        db.flush()
        db.add(UserProfile(user_id=user.user_id))
        users[user.role] = user
    logger.info(f"Created {len(SAMPLE_USERS)} users")
    return users


def seed_stations(db, manager: User) -> list:
    stations = []
    for data in SAMPLE_STATIONS:
        values = dict(data)
        values["latitude"] = Decimal(values["latitude"])
        values["longitude"] = Decimal(values["longitude"])
        station = Station(manager_id=manager.user_id, **values)
        db.add(station)
        stations.append(station)
    db.flush()
    logger.info(f"Created {len(stations)} stations")
    return stations


def seed_batteries(db, stations: list) -> int:
    # Batteries are spread round-robin across the stations
    for index, (capacity, charge, health, battery_status) in enumerate(SAMPLE_BATTERIES, start=1):
        station = stations[(index - 1) % len(stations)]
        db.add(Battery(
            battery_code=f"ECOL-BAT-{index:03d}",
            serial_number=f"SN-ECOL-{index:05d}",
            model="Lithium-Ion",
            manufacturer="EcolithSwap",
            capacity_kwh=Decimal(capacity),
            charge_percentage=Decimal(charge),
            health_status=health,
            status=battery_status,
            current_station_id=station.station_id
        ))

    for station in stations:
        refresh_station_inventory(db, station.station_id)
    logger.info(f"Created {len(SAMPLE_BATTERIES)} batteries")
    return len(SAMPLE_BATTERIES)


def seed(reset: bool = False) -> bool:
    """Seed the database; returns False when data already exists"""
    if reset:
        logger.warning("Dropping all tables")
        Base.metadata.drop_all(bind=engine)
    init_db()

    db = SessionLocal()
    try:
        existing = db.query(func.count(User.user_id)).scalar()
        if existing:
            logger.info(f"Database already has {existing} users, skipping seed")
            return False

        users = seed_users(db)
        stations = seed_stations(db, users["station_manager"])
        seed_batteries(db, stations)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Seeding failed, rolled back")
        raise
    finally:
        db.close()

    logger.info(f"Demo accounts use the password '{DEMO_PASSWORD}'")
    return True


def get_stats() -> dict:
    db = SessionLocal()
    try:
        return {
            "users": db.query(func.count(User.user_id)).scalar(),
            "stations": db.query(func.count(Station.station_id)).scalar(),
            "batteries": db.query(func.count(Battery.battery_id)).scalar(),
        }
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description='EcolithSwap demo data loader')
    parser.add_argument('--reset', action='store_true', help='Drop and recreate all tables before seeding')
    parser.add_argument('--stats', action='store_true', help='Only print row counts')
    args = parser.parse_args()

    if args.stats:
        for table, count in get_stats().items():
            print(f"  {table}: {count}")
        return 0

    seed(reset=args.reset)
    for table, count in get_stats().items():
        logger.info(f"  {table}: {count}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
