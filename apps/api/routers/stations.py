"""
Stations router
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import Optional

from database import get_db
from exceptions import ConflictError, NotFoundError, PermissionDeniedError
from models import User, Station, Battery, Rental
from schemas import StationCreate, StationUpdate, StationResponse, MaintenanceToggle, PaginatedResponse
from auth import get_current_user, get_admin, get_manager
from geo_utils import within_radius
from routers.batteries import battery_to_dict

router = APIRouter()

def station_to_dict(station: Station) -> dict:
    return StationResponse.model_validate(station).model_dump()

def _get_station(db: Session, station_id: int) -> Station:
    station = db.query(Station).filter(Station.station_id == station_id).first()
    if not station:
        raise NotFoundError("Station", station_id)
    return station

@router.get("", response_model=PaginatedResponse)
async def get_stations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    station_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    maintenance_mode: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get stations with search and filters
    """
    query = db.query(Station)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Station.name.ilike(pattern), Station.address.ilike(pattern)))
    if station_type:
        query = query.filter(Station.station_type == station_type)
    if is_active is not None:
        query = query.filter(Station.is_active == is_active)
    if maintenance_mode is not None:
        query = query.filter(Station.maintenance_mode == maintenance_mode)

    total = query.count()
    stations = query.order_by(Station.name).offset((page - 1) * limit).limit(limit).all()

    return {
        "items": [station_to_dict(s) for s in stations],
        "total": total,
        "page": page,
        "page_size": limit,
        "total_pages": (total + limit - 1) // limit
    }

@router.get("/nearby")
async def get_nearby_stations(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10, gt=0, le=100),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Active stations within radius_km of a point, nearest first
    """
    candidates = db.query(Station).filter(
        Station.is_active == True,
        Station.maintenance_mode == False
    ).all()

    results = []
    for station, distance in within_radius(candidates, lat, lng, radius_km)[:limit]:
        data = station_to_dict(station)
        data["distance_km"] = round(distance, 2)
        results.append(data)

    return {"stations": results, "total": len(results)}

@router.get("/stats/overview")
async def get_station_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    totals = db.query(
        func.count(Station.station_id),
        func.coalesce(func.sum(Station.total_slots), 0),
        func.coalesce(func.sum(Station.available_batteries), 0)
    ).one()
    active = db.query(func.count(Station.station_id)).filter(Station.is_active == True).scalar()
    in_maintenance = db.query(func.count(Station.station_id)).filter(Station.maintenance_mode == True).scalar()
    by_type = dict(
        db.query(Station.station_type, func.count(Station.station_id)).group_by(Station.station_type).all()
    )

    total_slots = int(totals[1])
    available = int(totals[2])
    return {
        "total_stations": totals[0],
        "active_stations": active,
        "stations_in_maintenance": in_maintenance,
        "by_type": by_type,
        "total_slots": total_slots,
        "available_batteries": available,
        "utilization_percent": round((1 - available / total_slots) * 100, 2) if total_slots else 0
    }

@router.get("/{station_id}")
async def get_station(
    station_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get a station with the batteries currently docked there
    """
    station = _get_station(db, station_id)
    data = station_to_dict(station)
    data["batteries"] = [battery_to_dict(b) for b in station.batteries]
    return data

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_station(
    station_data: StationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Create a station (admin only)
    """
    station = Station(**station_data.model_dump(), available_batteries=0)
    db.add(station)
    db.commit()
    db.refresh(station)

    return {"message": "Station created successfully", "station": station_to_dict(station)}

@router.put("/{station_id}")
async def update_station(
    station_id: int,
    station_data: StationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    station = _get_station(db, station_id)

    for field, value in station_data.model_dump(exclude_unset=True).items():
        setattr(station, field, value)

    db.commit()
    db.refresh(station)
    return {"message": "Station updated successfully", "station": station_to_dict(station)}

@router.patch("/{station_id}/maintenance")
async def toggle_maintenance(
    station_id: int,
    maintenance_data: MaintenanceToggle,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Put a station into (or take it out of) maintenance mode

    Station managers may only toggle stations they manage.
    """
    station = _get_station(db, station_id)
    if current_user.role == "station_manager" and station.manager_id != current_user.user_id:
        raise PermissionDeniedError("You can only manage your own stations")

    station.maintenance_mode = maintenance_data.maintenance_mode
    station.maintenance_notes = maintenance_data.maintenance_notes
    db.commit()
    db.refresh(station)

    state = "enabled" if station.maintenance_mode else "disabled"
    return {"message": f"Maintenance mode {state}", "station": station_to_dict(station)}

@router.delete("/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_station(
    station_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Delete a station (admin only); stations with docked batteries cannot be deleted
    """
    station = _get_station(db, station_id)
    docked = db.query(func.count(Battery.battery_id)).filter(Battery.current_station_id == station_id).scalar()
    if docked:
        raise ConflictError(
            "Cannot delete a station with batteries docked",
            context={"station_id": station_id, "docked_batteries": docked}
        )
    history = db.query(func.count(Rental.rental_id)).filter(
        or_(Rental.pickup_station_id == station_id, Rental.return_station_id == station_id)
    ).scalar()
    if history:
        raise ConflictError("Station has rental history; deactivate it instead of deleting")

    db.delete(station)
    db.commit()
    return None
