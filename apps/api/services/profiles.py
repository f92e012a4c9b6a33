"""
User profile bookkeeping shared by rentals, waste verification and the
admin points endpoint
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import ValidationError
from models import PointsTransaction, UserProfile

logger = logging.getLogger(__name__)


def get_or_create_profile(db: Session, user_id: int) -> UserProfile:
    """Return the user's profile, adding an empty one to the session if missing"""
    profile = db.query(UserProfile).filter(UserProfile.user_id == user_id).first()
    if profile is None:
        profile = UserProfile(
            user_id=user_id,
            total_swaps=0,
            total_amount_spent=0,
            plastic_recycled_kg=0,
            co2_saved_kg=0,
            current_points=0,
            total_points_earned=0,
            total_points_redeemed=0,
        )
        db.add(profile)
        db.flush()
    return profile


def apply_points(
    db: Session,
    user_id: int,
    points_change: int,
    reason: str,
    processed_by: Optional[int] = None,
) -> UserProfile:
    """
    Add (or, when negative, redeem) points and record the transaction.

    Does not commit; callers own the transaction.
    """
    profile = get_or_create_profile(db, user_id)
    new_balance = (profile.current_points or 0) + points_change
    if new_balance < 0:
        raise ValidationError(
            "Insufficient points balance",
            field="points_adjustment",
            context={"current_points": profile.current_points, "points_change": points_change},
        )

    profile.current_points = new_balance
    if points_change > 0:
        profile.total_points_earned = (profile.total_points_earned or 0) + points_change
    elif points_change < 0:
        profile.total_points_redeemed = (profile.total_points_redeemed or 0) + abs(points_change)

    db.add(PointsTransaction(
        user_id=user_id,
        points_change=points_change,
        reason=reason,
        processed_by=processed_by,
    ))
    logger.info(f"Points {points_change:+d} for user {user_id} ({reason}); balance {new_balance}")
    return profile
