"""
Battery Rentals router
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from database import get_db
from models import User, Rental
from schemas import RentalStart, RentalReturn
from auth import get_current_user, get_manager, ensure_owner_or_staff
from services import rentals as rental_service
from services.formatters import rental_status_color, status_label, format_rental_duration

router = APIRouter()

def _money(value) -> Optional[float]:
    return float(value) if value is not None else None

def rental_to_dict(rental: Rental) -> dict:
    return {
        "rental_id": rental.rental_id,
        "user_id": rental.user_id,
        "battery_id": rental.battery_id,
        "battery_code": rental.battery.battery_code if rental.battery else None,
        "pickup_station_id": rental.pickup_station_id,
        "pickup_station_name": rental.pickup_station.name if rental.pickup_station else None,
        "return_station_id": rental.return_station_id,
        "return_station_name": rental.return_station.name if rental.return_station else None,
        "start_time": rental.start_time,
        "end_time": rental.end_time,
        "initial_charge_percentage": _money(rental.initial_charge_percentage),
        "final_charge_percentage": _money(rental.final_charge_percentage),
        "hourly_rate": _money(rental.hourly_rate),
        "base_cost": _money(rental.base_cost),
        "total_cost": _money(rental.total_cost),
        "status": rental.status,
        "payment_status": rental.payment_status,
        "status_color": rental_status_color(rental.status),
        "status_label": status_label(rental.status),
        "duration_label": format_rental_duration(rental.start_time, rental.end_time),
        "notes": rental.notes,
        "created_at": rental.created_at
    }

@router.get("")
async def get_rentals(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    battery_id: Optional[int] = None,
    station_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get rentals with filters

    Customers only see their own rentals.
    """
    query = db.query(Rental)

    if current_user.role == "customer":
        query = query.filter(Rental.user_id == current_user.user_id)
    elif user_id is not None:
        query = query.filter(Rental.user_id == user_id)

    if status:
        query = query.filter(Rental.status == status)
    if battery_id is not None:
        query = query.filter(Rental.battery_id == battery_id)
    if station_id is not None:
        query = query.filter(
            (Rental.pickup_station_id == station_id) | (Rental.return_station_id == station_id)
        )

    total = query.count()
    rentals = query.order_by(Rental.start_time.desc()).offset(skip).limit(limit).all()

    return {
        "rentals": [rental_to_dict(r) for r in rentals],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/current")
async def get_current_rental(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    The caller's active rental, or null when there is none
    """
    rental = rental_service.get_active_rental(db, current_user.user_id)
    return {"rental": rental_to_dict(rental) if rental else None}

@router.get("/stats/overview")
async def get_rental_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Rental counts by status and revenue from completed rentals
    """
    counts = dict(
        db.query(Rental.status, func.count(Rental.rental_id)).group_by(Rental.status).all()
    )
    completed = db.query(
        func.coalesce(func.sum(Rental.total_cost), 0),
        func.avg(Rental.total_cost)
    ).filter(Rental.status == "completed").one()

    return {
        "total_rentals": sum(counts.values()),
        "active_rentals": counts.get("active", 0),
        "completed_rentals": counts.get("completed", 0),
        "cancelled_rentals": counts.get("cancelled", 0),
        "overdue_rentals": counts.get("overdue", 0),
        "total_revenue": float(completed[0] or 0),
        "average_rental_cost": round(float(completed[1]), 2) if completed[1] is not None else 0
    }

@router.get("/{rental_id}")
async def get_rental(
    rental_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get a specific rental by ID
    """
    rental = rental_service.get_rental(db, rental_id)
    ensure_owner_or_staff(current_user, rental.user_id)
    return rental_to_dict(rental)

@router.post("", status_code=status.HTTP_201_CREATED)
async def start_rental(
    rental_data: RentalStart,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Start a new battery rental

    - Battery must be available, charged to at least 20% and not in poor health
    - Battery must be docked at the pickup station (unless it is self-service)
    - The caller must not already have an active rental
    """
    rental = rental_service.start_rental(
        db,
        user_id=current_user.user_id,
        battery_id=rental_data.battery_id,
        pickup_station_id=rental_data.pickup_station_id
    )
    return {
        "message": "Battery rental started successfully",
        "rental": rental_to_dict(rental)
    }

@router.patch("/{rental_id}/return")
async def return_rental(
    rental_id: int,
    return_data: RentalReturn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Return a rented battery

    - Bills base cost plus every started hour (minimum one hour)
    - Docks the battery at the return station
    """
    rental = rental_service.get_rental(db, rental_id)
    ensure_owner_or_staff(current_user, rental.user_id)

    rental = rental_service.end_rental(
        db,
        rental_id,
        return_station_id=return_data.return_station_id,
        final_charge_percentage=return_data.final_charge_percentage
    )
    return {
        "message": "Battery returned successfully",
        "rental_hours": rental_service.rental_hours(rental),
        "total_cost": _money(rental.total_cost),
        "rental": rental_to_dict(rental)
    }

@router.patch("/{rental_id}/cancel")
async def cancel_rental(
    rental_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Cancel an active rental without charge
    """
    rental = rental_service.get_rental(db, rental_id)
    ensure_owner_or_staff(current_user, rental.user_id)

    rental = rental_service.cancel_rental(db, rental_id)
    return {
        "message": "Rental cancelled successfully",
        "rental": rental_to_dict(rental)
    }
