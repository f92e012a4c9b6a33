"""
Batteries router
"""
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import Optional

from database import get_db
from exceptions import ConflictError, NotFoundError
from models import User, Battery, Station
from schemas import BatteryCreate, BatteryUpdate, ChargeUpdate
from auth import get_current_user, get_admin, get_manager
from services.rentals import is_eligible_for_rental, refresh_station_inventory
from services.formatters import battery_health_color, charge_level_color, status_label

router = APIRouter()

MAINTENANCE_CYCLE_THRESHOLD = 200

def battery_to_dict(battery: Battery) -> dict:
    return {
        "battery_id": battery.battery_id,
        "battery_code": battery.battery_code,
        "serial_number": battery.serial_number,
        "model": battery.model,
        "manufacturer": battery.manufacturer,
        "capacity_kwh": float(battery.capacity_kwh),
        "charge_percentage": float(battery.charge_percentage or 0),
        "status": battery.status,
        "status_label": status_label(battery.status),
        "health_status": battery.health_status,
        "health_color": battery_health_color(battery.health_status),
        "charge_color": charge_level_color(battery.charge_percentage),
        "is_eligible_for_rental": is_eligible_for_rental(battery),
        "cycle_count": battery.cycle_count,
        "last_maintenance_date": battery.last_maintenance_date,
        "next_maintenance_due": battery.next_maintenance_due,
        "current_station_id": battery.current_station_id,
        "station_name": battery.station.name if battery.station else None,
        "current_rental_id": battery.current_rental_id,
        "notes": battery.notes,
        "created_at": battery.created_at
    }

def _get_battery(db: Session, battery_id: int) -> Battery:
    battery = db.query(Battery).filter(Battery.battery_id == battery_id).first()
    if not battery:
        raise NotFoundError("Battery", battery_id)
    return battery

def _ensure_station(db: Session, station_id: Optional[int]) -> None:
    if station_id is not None and not db.query(Station).filter(Station.station_id == station_id).first():
        raise NotFoundError("Station", station_id)

@router.get("")
async def get_batteries(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    station_id: Optional[int] = None,
    status: Optional[str] = None,
    health_status: Optional[str] = None,
    min_charge: Optional[float] = Query(None, ge=0, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get batteries with filters
    """
    query = db.query(Battery)

    if station_id is not None:
        query = query.filter(Battery.current_station_id == station_id)
    if status:
        query = query.filter(Battery.status == status)
    if health_status:
        query = query.filter(Battery.health_status == health_status)
    if min_charge is not None:
        query = query.filter(Battery.charge_percentage >= min_charge)

    total = query.count()
    batteries = query.order_by(Battery.battery_code).offset(skip).limit(limit).all()

    return {
        "batteries": [battery_to_dict(b) for b in batteries],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/maintenance/needed")
async def get_batteries_needing_maintenance(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Batteries in poor/critical health, past their maintenance date or over
    the cycle threshold
    """
    batteries = db.query(Battery).filter(
        Battery.status != "retired",
        or_(
            Battery.health_status.in_(["poor", "critical"]),
            Battery.next_maintenance_due <= date.today(),
            Battery.cycle_count > MAINTENANCE_CYCLE_THRESHOLD
        )
    ).order_by(Battery.battery_code).all()

    return {
        "batteries": [battery_to_dict(b) for b in batteries],
        "total": len(batteries)
    }

@router.get("/stats/overview")
async def get_battery_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    by_status = dict(
        db.query(Battery.status, func.count(Battery.battery_id)).group_by(Battery.status).all()
    )
    by_health = dict(
        db.query(Battery.health_status, func.count(Battery.battery_id)).group_by(Battery.health_status).all()
    )
    averages = db.query(func.avg(Battery.charge_percentage), func.avg(Battery.cycle_count)).one()

    return {
        "total_batteries": sum(by_status.values()),
        "by_status": by_status,
        "by_health": by_health,
        "average_charge_percentage": round(float(averages[0]), 2) if averages[0] is not None else 0,
        "average_cycle_count": round(float(averages[1]), 1) if averages[1] is not None else 0
    }

@router.get("/{battery_id}")
async def get_battery(
    battery_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return battery_to_dict(_get_battery(db, battery_id))

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_battery(
    battery_data: BatteryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Register a new battery (admin only)
    """
    existing = db.query(Battery).filter(
        or_(
            Battery.battery_code == battery_data.battery_code,
            Battery.serial_number == battery_data.serial_number
        )
    ).first()
    if existing:
        raise ConflictError("Battery code or serial number already exists")

    _ensure_station(db, battery_data.current_station_id)

    battery = Battery(**battery_data.model_dump(), status="available", cycle_count=0)
    try:
        db.add(battery)
        refresh_station_inventory(db, battery.current_station_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(battery)

    return {"message": "Battery created successfully", "battery": battery_to_dict(battery)}

@router.put("/{battery_id}")
async def update_battery(
    battery_id: int,
    battery_data: BatteryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Update battery details (station managers and admins)

    A rented battery cannot be moved or have its status changed here.
    """
    battery = _get_battery(db, battery_id)
    update_data = battery_data.model_dump(exclude_unset=True)

    if battery.status == "rented" and ({"status", "current_station_id"} & update_data.keys()):
        raise ConflictError("Cannot change status or station of a rented battery")

    _ensure_station(db, update_data.get("current_station_id"))

    old_station_id = battery.current_station_id
    try:
        for field, value in update_data.items():
            setattr(battery, field, value)
        refresh_station_inventory(db, battery.current_station_id)
        if old_station_id != battery.current_station_id:
            refresh_station_inventory(db, old_station_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(battery)

    return {"message": "Battery updated successfully", "battery": battery_to_dict(battery)}

@router.patch("/{battery_id}/charge")
async def update_charge(
    battery_id: int,
    charge_data: ChargeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Report a new charge level (0-100)
    """
    battery = _get_battery(db, battery_id)
    battery.charge_percentage = charge_data.charge_percentage
    db.commit()
    db.refresh(battery)

    return {"message": "Battery charge updated successfully", "battery": battery_to_dict(battery)}

@router.delete("/{battery_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_battery(
    battery_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Delete a battery (admin only); rented batteries cannot be deleted
    """
    battery = _get_battery(db, battery_id)
    if battery.status == "rented":
        raise ConflictError("Cannot delete a battery that is currently rented")
    if battery.rentals:
        raise ConflictError("Battery has rental history; retire it instead of deleting")

    station_id = battery.current_station_id
    try:
        db.delete(battery)
        refresh_station_inventory(db, station_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return None
