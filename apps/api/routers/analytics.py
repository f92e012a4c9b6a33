"""
Analytics router - station heatmap, environmental impact and revenue views
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
from datetime import datetime

from database import get_db
from models import User, Station, Rental
from auth import get_manager
from geo_utils import point_geometry, make_geojson_feature, make_feature_collection
from services import analytics as analytics_service

router = APIRouter()

@router.get("/station-heatmap")
async def get_station_heatmap(
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Generate station activity heatmap data

    Returns station points with the number of rentals picked up there and an
    intensity value from 0-1 relative to the busiest station.
    """
    query = db.query(Rental.pickup_station_id, func.count(Rental.rental_id))
    if start_time:
        query = query.filter(Rental.start_time >= start_time)
    if end_time:
        query = query.filter(Rental.start_time <= end_time)
    rental_counts = dict(query.group_by(Rental.pickup_station_id).all())

    stations = db.query(Station).filter(Station.is_active == True).all()
    busiest = max(rental_counts.values(), default=0)

    features = []
    for station in stations:
        count = rental_counts.get(station.station_id, 0)
        intensity = count / busiest if busiest else 0.0
        features.append(make_geojson_feature(
            point_geometry(float(station.latitude), float(station.longitude)),
            {
                "station_id": station.station_id,
                "name": station.name,
                "rental_count": count,
                "available_batteries": station.available_batteries,
                "total_slots": station.total_slots,
                "maintenance_mode": station.maintenance_mode,
                "intensity": round(intensity, 3)
            }
        ))

    features.sort(key=lambda f: f["properties"]["intensity"], reverse=True)
    return make_feature_collection(features, metadata={
        "start_time": start_time,
        "end_time": end_time,
        "total_rentals": sum(rental_counts.values())
    })

@router.get("/environmental")
async def get_environmental_impact(
    period: str = Query("30d"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Verified recycling by type and by day, the recycler leaderboard and
    the estimated CO2 saved over the period
    """
    return analytics_service.environmental_impact(db, period=period)

@router.get("/financial")
async def get_financial_summary(
    period: str = Query("30d"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    return analytics_service.financial_summary(db, period=period)
