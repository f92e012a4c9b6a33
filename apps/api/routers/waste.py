"""
Plastic waste router
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from database import get_db
from models import User, WasteLog
from schemas import WasteCreate, WasteVerify
from auth import get_current_user, get_manager, ensure_owner_or_staff
from services import waste as waste_service
from services import analytics as analytics_service
from services.formatters import status_label

router = APIRouter()

def waste_log_to_dict(log: WasteLog) -> dict:
    return {
        "waste_log_id": log.waste_log_id,
        "user_id": log.user_id,
        "station_id": log.station_id,
        "station_name": log.station.name if log.station else None,
        "waste_type": log.waste_type,
        "weight_kg": float(log.weight_kg),
        "verified_weight_kg": float(log.verified_weight_kg) if log.verified_weight_kg is not None else None,
        "points_earned": log.points_earned,
        "co2_saved_kg": float(log.co2_saved_kg) if log.co2_saved_kg is not None else None,
        "description": log.description,
        "status": log.status,
        "status_label": status_label(log.status),
        "verified": log.verified,
        "verified_by": log.verified_by,
        "verified_at": log.verified_at,
        "verification_notes": log.verification_notes,
        "created_at": log.created_at
    }

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_waste(
    waste_data: WasteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Log a plastic drop-off at a station

    Points are provisional until a station manager verifies the submission.
    """
    log = waste_service.submit_waste(
        db,
        user_id=current_user.user_id,
        station_id=waste_data.station_id,
        waste_type=waste_data.waste_type,
        weight_kg=waste_data.weight_kg,
        description=waste_data.description
    )
    return {
        "message": "Waste submission logged successfully",
        "wasteLog": waste_log_to_dict(log),
        "creditEarned": log.points_earned,
        "co2Saved": float(log.co2_saved_kg)
    }

@router.get("")
async def get_waste_logs(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    status: Optional[str] = None,
    waste_type: Optional[str] = None,
    station_id: Optional[int] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get waste logs with filters

    Customers only see their own submissions.
    """
    query = db.query(WasteLog)

    if current_user.role == "customer":
        query = query.filter(WasteLog.user_id == current_user.user_id)
    elif user_id is not None:
        query = query.filter(WasteLog.user_id == user_id)

    if status:
        query = query.filter(WasteLog.status == status)
    if waste_type:
        query = query.filter(WasteLog.waste_type == waste_type.upper())
    if station_id is not None:
        query = query.filter(WasteLog.station_id == station_id)

    total = query.count()
    logs = query.order_by(WasteLog.created_at.desc(), WasteLog.waste_log_id.desc()).offset(skip).limit(limit).all()

    return {
        "waste_logs": [waste_log_to_dict(log) for log in logs],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/stats/overview")
async def get_waste_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Submission counts by status and verified totals (station managers and admins)
    """
    return analytics_service.waste_overview(db)

@router.get("/stats/breakdown")
async def get_waste_breakdown(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Weight, points and CO2 totals per waste type

    Customers get their own breakdown; staff get the platform-wide one.
    """
    query = db.query(
        WasteLog.waste_type,
        func.count(WasteLog.waste_log_id),
        func.coalesce(func.sum(WasteLog.weight_kg), 0),
        func.coalesce(func.sum(WasteLog.points_earned), 0),
        func.coalesce(func.sum(WasteLog.co2_saved_kg), 0)
    ).filter(WasteLog.status != "rejected")

    if current_user.role == "customer":
        query = query.filter(WasteLog.user_id == current_user.user_id)

    rows = query.group_by(WasteLog.waste_type).all()
    breakdown = [
        {
            "waste_type": row[0],
            "submissions": row[1],
            "total_weight_kg": round(float(row[2]), 3),
            "total_points": int(row[3]),
            "co2_saved_kg": round(float(row[4]), 3)
        }
        for row in rows
    ]
    breakdown.sort(key=lambda item: item["total_weight_kg"], reverse=True)

    return {
        "breakdown": breakdown,
        "total_weight_kg": round(sum(item["total_weight_kg"] for item in breakdown), 3),
        "total_points": sum(item["total_points"] for item in breakdown),
        "total_co2_saved_kg": round(sum(item["co2_saved_kg"] for item in breakdown), 3)
    }

@router.get("/{waste_log_id}")
async def get_waste_log(
    waste_log_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    log = waste_service.get_waste_log(db, waste_log_id)
    ensure_owner_or_staff(current_user, log.user_id)
    return waste_log_to_dict(log)

@router.patch("/{waste_log_id}/verify")
async def verify_waste(
    waste_log_id: int,
    verify_data: WasteVerify,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Verify or reject a pending submission (station managers and admins)

    A corrected weight recalculates the points before they are credited.
    """
    log = waste_service.verify_waste(
        db,
        waste_log_id,
        verifier_id=current_user.user_id,
        status=verify_data.status,
        verified_weight_kg=verify_data.verified_weight_kg,
        notes=verify_data.notes
    )
    return {
        "message": f"Waste submission {log.status}",
        "wasteLog": waste_log_to_dict(log),
        "creditEarned": log.points_earned
    }
