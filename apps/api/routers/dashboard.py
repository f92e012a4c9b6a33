"""
Admin dashboard router
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from database import get_db
from models import User, Battery, Station, Rental, WasteLog, Payment
from auth import get_manager
from schemas import UserResponse
from services import analytics as analytics_service
from routers.rentals import rental_to_dict
from routers.waste import waste_log_to_dict
from routers.payments import payment_to_dict

router = APIRouter()

def _count_by(db: Session, column) -> dict:
    return dict(db.query(column, func.count()).group_by(column).all())

@router.get("/stats")
async def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Platform-wide totals for the admin dashboard
    """
    users_by_role = _count_by(db, User.role)
    batteries_by_status = _count_by(db, Battery.status)
    rentals_by_status = _count_by(db, Rental.status)
    waste_by_status = _count_by(db, WasteLog.status)

    station_totals = db.query(
        func.count(Station.station_id),
        func.coalesce(func.sum(Station.available_batteries), 0)
    ).filter(Station.is_active == True).one()

    waste_totals = db.query(
        func.coalesce(func.sum(WasteLog.weight_kg), 0),
        func.coalesce(func.sum(WasteLog.co2_saved_kg), 0)
    ).filter(WasteLog.status != "rejected").one()

    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status.in_(["completed", "refunded"]), Payment.amount > 0
    ).scalar()
    refunded = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == "completed", Payment.amount < 0
    ).scalar()
    pending = db.query(func.count(Payment.payment_id)).filter(Payment.status == "pending").scalar()

    return {
        "users": {
            "total": sum(users_by_role.values()),
            "by_role": users_by_role,
            "active": db.query(func.count(User.user_id)).filter(User.is_active == True).scalar()
        },
        "batteries": {
            "total": sum(batteries_by_status.values()),
            "by_status": batteries_by_status
        },
        "stations": {
            "active": station_totals[0],
            "available_batteries": int(station_totals[1])
        },
        "rentals": {
            "total": sum(rentals_by_status.values()),
            "by_status": rentals_by_status
        },
        "waste": {
            "submissions": sum(waste_by_status.values()),
            "by_status": waste_by_status,
            "total_weight_kg": round(float(waste_totals[0]), 3),
            "co2_saved_kg": round(float(waste_totals[1]), 3)
        },
        "payments": {
            "gross_revenue": float(revenue),
            "refunded": abs(float(refunded)),
            "net_revenue": float(revenue) + float(refunded),
            "pending": pending
        }
    }

@router.get("/activities")
async def get_recent_activities(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Latest platform activity for the dashboard feed
    """
    activity = analytics_service.recent_activity(db, limit=limit)
    return {
        "recent_users": [UserResponse.model_validate(u).model_dump() for u in activity["recent_users"]],
        "recent_rentals": [rental_to_dict(r) for r in activity["recent_rentals"]],
        "recent_waste": [waste_log_to_dict(w) for w in activity["recent_waste"]],
        "recent_payments": [payment_to_dict(p) for p in activity["recent_payments"]]
    }
