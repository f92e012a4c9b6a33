"""
Plastic waste submissions and their verification
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import ConflictError, NotFoundError, ValidationError
from models import Station, WasteLog
from services.pricing import compute_co2_saved, compute_credits
from services.profiles import apply_points, get_or_create_profile

logger = logging.getLogger(__name__)

WASTE_TYPES = ["PET", "HDPE", "PVC", "LDPE", "PP", "PS", "OTHER"]
VERIFICATION_OUTCOMES = ["verified", "rejected"]


def get_waste_log(db: Session, waste_log_id: int) -> WasteLog:
    waste_log = db.query(WasteLog).filter(WasteLog.waste_log_id == waste_log_id).first()
    if not waste_log:
        raise NotFoundError("Waste log", waste_log_id)
    return waste_log


def submit_waste(
    db: Session,
    user_id: int,
    station_id: int,
    waste_type: str,
    weight_kg,
    description: Optional[str] = None,
) -> WasteLog:
    """
    Record a drop-off. Points are provisional until a station manager
    verifies the weight; the recycled weight and CO2 totals are credited
    to the profile right away.
    """
    station = db.query(Station).filter(Station.station_id == station_id).first()
    if not station:
        raise NotFoundError("Station", station_id)
    if not station.accepts_plastic:
        raise ValidationError("This station does not accept plastic waste", field="station_id")

    waste_type = waste_type.upper()
    points = compute_credits(waste_type, weight_kg)
    co2_saved = compute_co2_saved(weight_kg)

    try:
        waste_log = WasteLog(
            user_id=user_id,
            station_id=station_id,
            waste_type=waste_type,
            weight_kg=weight_kg,
            points_earned=points,
            co2_saved_kg=co2_saved,
            description=description,
            status="pending_verification",
            verified=False
        )
        db.add(waste_log)

        profile = get_or_create_profile(db, user_id)
        profile.plastic_recycled_kg = (profile.plastic_recycled_kg or 0) + Decimal(str(weight_kg))
        profile.co2_saved_kg = (profile.co2_saved_kg or 0) + co2_saved

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(waste_log)
    logger.info(f"Waste log {waste_log.waste_log_id}: {weight_kg}kg {waste_type} at station {station_id}")
    return waste_log


def verify_waste(
    db: Session,
    waste_log_id: int,
    verifier_id: int,
    status: str,
    verified_weight_kg=None,
    notes: Optional[str] = None,
) -> WasteLog:
    """Accept or reject a pending submission; accepted credits go to the user's balance"""
    if status not in VERIFICATION_OUTCOMES:
        raise ValidationError(f"Status must be one of: {VERIFICATION_OUTCOMES}", field="status")

    waste_log = get_waste_log(db, waste_log_id)
    if waste_log.status != "pending_verification":
        raise ConflictError(
            "Waste log has already been processed",
            context={"waste_log_id": waste_log_id, "status": waste_log.status},
        )

    final_weight = verified_weight_kg if verified_weight_kg is not None else waste_log.weight_kg
    final_credit = compute_credits(waste_log.waste_type, final_weight) if status == "verified" else 0

    try:
        processed = db.query(WasteLog).filter(
            WasteLog.waste_log_id == waste_log_id,
            WasteLog.status == "pending_verification"
        ).update(
            {
                "status": status,
                "verified": status == "verified",
                "verified_weight_kg": final_weight,
                "points_earned": final_credit,
                "verification_notes": notes,
                "verified_by": verifier_id,
                "verified_at": datetime.now(timezone.utc),
            },
            synchronize_session="fetch"
        )
        if processed != 1:
            raise ConflictError("Waste log has already been processed", context={"waste_log_id": waste_log_id})

        if final_credit > 0:
            apply_points(
                db,
                waste_log.user_id,
                final_credit,
                reason=f"Verified waste submission #{waste_log_id}",
                processed_by=verifier_id,
            )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(waste_log)
    logger.info(f"Waste log {waste_log_id} {status} by user {verifier_id}: {final_credit} points")
    return waste_log
