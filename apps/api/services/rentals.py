"""
Battery rental lifecycle

    available --start_rental--> rented --end_rental----> available (return station)
                                       --cancel_rental-> available (pickup station)

Each transition touches the battery row, the rental row and the station
inventory count; all of it is committed together or rolled back together.
The battery claim and the rental close are conditional updates so that two
requests racing for the same row cannot both win.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from exceptions import ConflictError, NotFoundError
from models import Battery, Rental, Station
from services.pricing import billed_hours, compute_cost
from services.profiles import get_or_create_profile

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_eligible_for_rental(battery) -> bool:
    """A battery may be rented when it is available, charged and not in poor health"""
    return (
        battery.status == "available"
        and float(battery.charge_percentage or 0) >= settings.min_rental_charge_percentage
        and battery.health_status != "poor"
    )


def refresh_station_inventory(db: Session, station_id: Optional[int]) -> None:
    """Recount available batteries docked at a station"""
    if station_id is None:
        return
    db.flush()
    count = db.query(func.count(Battery.battery_id)).filter(
        Battery.current_station_id == station_id,
        Battery.status == "available"
    ).scalar()
    db.query(Station).filter(Station.station_id == station_id).update(
        {"available_batteries": count}, synchronize_session="fetch"
    )


def get_rental(db: Session, rental_id: int) -> Rental:
    rental = db.query(Rental).filter(Rental.rental_id == rental_id).first()
    if not rental:
        raise NotFoundError("Rental", rental_id)
    return rental


def get_active_rental(db: Session, user_id: int) -> Optional[Rental]:
    return db.query(Rental).filter(
        Rental.user_id == user_id,
        Rental.status == "active"
    ).first()


def _get_station(db: Session, station_id: int) -> Station:
    station = db.query(Station).filter(Station.station_id == station_id).first()
    if not station:
        raise NotFoundError("Station", station_id)
    return station


def start_rental(
    db: Session,
    user_id: int,
    battery_id: int,
    pickup_station_id: int,
    now: Optional[datetime] = None,
) -> Rental:
    """Hand an eligible battery at a station to a user"""
    station = _get_station(db, pickup_station_id)

    battery = db.query(Battery).filter(Battery.battery_id == battery_id).first()
    if not battery:
        raise NotFoundError("Battery", battery_id)

    if not station.is_active or station.maintenance_mode:
        raise ConflictError(
            f"Station '{station.name}' is not accepting rentals",
            context={"station_id": station.station_id, "maintenance_mode": station.maintenance_mode},
        )

    if not is_eligible_for_rental(battery):
        logger.warning(f"Rental refused: battery {battery.battery_id} not eligible (status={battery.status})")
        raise ConflictError(
            f"Battery {battery.battery_code} is not available for rental",
            context={
                "battery_id": battery.battery_id,
                "status": battery.status,
                "charge_percentage": float(battery.charge_percentage or 0),
                "health_status": battery.health_status,
            },
        )

    if battery.current_station_id != station.station_id and not station.self_service:
        raise ConflictError(
            f"Battery {battery.battery_code} is not docked at station '{station.name}'",
            context={"battery_station_id": battery.current_station_id, "pickup_station_id": station.station_id},
        )

    if get_active_rental(db, user_id):
        raise ConflictError("You already have an active rental")

    now = now or utcnow()
    previous_station_id = battery.current_station_id

    try:
        rental = Rental(
            user_id=user_id,
            battery_id=battery.battery_id,
            pickup_station_id=station.station_id,
            start_time=now,
            initial_charge_percentage=battery.charge_percentage,
            hourly_rate=settings.rental_hourly_rate,
            base_cost=settings.rental_base_cost,
            status="active",
            payment_status="pending"
        )
        db.add(rental)
        db.flush()

        claimed = db.query(Battery).filter(
            Battery.battery_id == battery.battery_id,
            Battery.status == "available"
        ).update(
            {
                "status": "rented",
                "current_station_id": None,
                "current_rental_id": rental.rental_id,
            },
            synchronize_session="fetch"
        )
        if claimed != 1:
            raise ConflictError(f"Battery {battery.battery_code} was rented by someone else")

        refresh_station_inventory(db, station.station_id)
        if previous_station_id != station.station_id:
            refresh_station_inventory(db, previous_station_id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rental)
    logger.info(
        f"Rental {rental.rental_id} started: user={user_id} battery={battery_id} station={pickup_station_id}"
    )
    return rental


def end_rental(
    db: Session,
    rental_id: int,
    return_station_id: int,
    now: Optional[datetime] = None,
    final_charge_percentage=None,
) -> Rental:
    """Close an active rental, bill it and dock the battery at the return station"""
    rental = get_rental(db, rental_id)

    if rental.status != "active":
        raise ConflictError(
            f"Rental is not active (current status: {rental.status})",
            context={"rental_id": rental_id, "status": rental.status},
        )

    station = _get_station(db, return_station_id)

    now = now or utcnow()
    total_cost = compute_cost(rental.start_time, now, rental.hourly_rate, rental.base_cost)

    try:
        values = {
            "end_time": now,
            "return_station_id": station.station_id,
            "total_cost": total_cost,
            "status": "completed",
        }
        if final_charge_percentage is not None:
            values["final_charge_percentage"] = final_charge_percentage

        closed = db.query(Rental).filter(
            Rental.rental_id == rental_id,
            Rental.status == "active"
        ).update(values, synchronize_session="fetch")
        if closed != 1:
            raise ConflictError("Rental was closed by another request", context={"rental_id": rental_id})

        battery = db.query(Battery).filter(Battery.battery_id == rental.battery_id).first()
        battery.status = "available"
        battery.current_station_id = station.station_id
        battery.current_rental_id = None
        battery.cycle_count = (battery.cycle_count or 0) + 1
        if final_charge_percentage is not None:
            battery.charge_percentage = final_charge_percentage

        profile = get_or_create_profile(db, rental.user_id)
        profile.total_swaps = (profile.total_swaps or 0) + 1
        profile.total_amount_spent = (profile.total_amount_spent or 0) + total_cost

        refresh_station_inventory(db, station.station_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rental)
    logger.info(f"Rental {rental_id} completed at station {return_station_id}: total_cost={total_cost}")
    return rental


def cancel_rental(db: Session, rental_id: int, now: Optional[datetime] = None) -> Rental:
    """Abort an active rental without charge; the battery goes back to its pickup station"""
    rental = get_rental(db, rental_id)

    if rental.status != "active":
        raise ConflictError(
            "Can only cancel active rentals",
            context={"rental_id": rental_id, "status": rental.status},
        )

    now = now or utcnow()

    try:
        cancelled = db.query(Rental).filter(
            Rental.rental_id == rental_id,
            Rental.status == "active"
        ).update({"status": "cancelled", "end_time": now}, synchronize_session="fetch")
        if cancelled != 1:
            raise ConflictError("Rental was closed by another request", context={"rental_id": rental_id})

        battery = db.query(Battery).filter(Battery.battery_id == rental.battery_id).first()
        battery.status = "available"
        battery.current_station_id = rental.pickup_station_id
        battery.current_rental_id = None

        refresh_station_inventory(db, rental.pickup_station_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rental)
    logger.info(f"Rental {rental_id} cancelled")
    return rental


def rental_hours(rental: Rental) -> Optional[int]:
    """Billed hours of a closed rental"""
    if rental.end_time is None:
        return None
    return billed_hours(rental.start_time, rental.end_time)
