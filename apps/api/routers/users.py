"""
Users router
"""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from exceptions import ConflictError, NotFoundError, ValidationError
from models import User, PointsTransaction
from schemas import (
    UserResponse, UserStatusUpdate, ProfileUpdate, ProfileResponse,
    PointsAdjustment, PointsTransactionResponse
)
from auth import get_current_user, get_admin, ensure_owner_or_admin
from services.profiles import get_or_create_profile, apply_points
from services import analytics as analytics_service
from routers.rentals import rental_to_dict
from routers.waste import waste_log_to_dict
from routers.payments import payment_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()

USER_FIELDS = {"full_name", "phone", "location"}

def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user

@router.get("")
async def get_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Get all users (admin only)
    """
    query = db.query(User)

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        query = query.filter((User.full_name.ilike(pattern)) | (User.email.ilike(pattern)))

    total = query.count()
    users = query.order_by(User.user_id).offset(skip).limit(limit).all()
    return {
        "users": [UserResponse.model_validate(u).model_dump() for u in users],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get user by ID
    """
    ensure_owner_or_admin(current_user, user_id)
    return _get_user(db, user_id)

@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    status_data: UserStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Activate/deactivate a user or change their role (admin only)
    """
    user = _get_user(db, user_id)
    if user.user_id == current_user.user_id and status_data.is_active is False:
        raise ValidationError("You cannot deactivate your own account", field="is_active")

    for field, value in status_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)

    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} updated by admin {current_user.user_id}: active={user.is_active} role={user.role}")
    return user

@router.get("/{user_id}/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_owner_or_admin(current_user, user_id)
    _get_user(db, user_id)
    profile = get_or_create_profile(db, user_id)
    db.commit()
    db.refresh(profile)
    return profile

@router.put("/{user_id}/profile", response_model=ProfileResponse)
async def update_profile(
    user_id: int,
    profile_data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Update contact details and profile preferences
    """
    ensure_owner_or_admin(current_user, user_id)
    user = _get_user(db, user_id)
    changes = profile_data.model_dump(exclude_unset=True)

    phone = changes.get("phone")
    if phone and db.query(User).filter(User.phone == phone, User.user_id != user_id).first():
        raise ConflictError("Phone number already registered", context={"phone": phone})

    try:
        profile = get_or_create_profile(db, user_id)
        for field, value in changes.items():
            target = user if field in USER_FIELDS else profile
            setattr(target, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(profile)
    return profile

@router.post("/{user_id}/points")
async def adjust_points(
    user_id: int,
    adjustment: PointsAdjustment,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Manually add or deduct points (admin only); the balance cannot go negative
    """
    _get_user(db, user_id)
    try:
        profile = apply_points(
            db,
            user_id,
            adjustment.points_adjustment,
            reason=adjustment.reason,
            processed_by=current_user.user_id
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {
        "message": "Points adjusted successfully",
        "current_points": profile.current_points,
        "total_points_earned": profile.total_points_earned,
        "total_points_redeemed": profile.total_points_redeemed
    }

@router.get("/{user_id}/points/history")
async def get_points_history(
    user_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_owner_or_admin(current_user, user_id)
    query = db.query(PointsTransaction).filter(PointsTransaction.user_id == user_id)
    total = query.count()
    transactions = query.order_by(
        PointsTransaction.created_at.desc(), PointsTransaction.transaction_id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "transactions": [PointsTransactionResponse.model_validate(t).model_dump() for t in transactions],
        "total": total
    }

@router.get("/{user_id}/activity")
async def get_user_activity(
    user_id: int,
    period: str = Query("30d"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Recent rentals, waste submissions and payments for a user over a
    trailing period (7d, 30d, 90d or 1y), with totals
    """
    ensure_owner_or_admin(current_user, user_id)
    _get_user(db, user_id)

    activity = analytics_service.user_activity(db, user_id, period=period, limit=limit)
    return {
        "period": activity["period"],
        "recent_rentals": [rental_to_dict(r) for r in activity["recent_rentals"]],
        "recent_waste": [waste_log_to_dict(w) for w in activity["recent_waste"]],
        "recent_payments": [payment_to_dict(p) for p in activity["recent_payments"]],
        "stats": activity["stats"]
    }
