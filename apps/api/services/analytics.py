"""
Reporting queries over a trailing time window: per-user activity, waste
and environmental impact, revenue
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from exceptions import ValidationError
from models import Payment, Rental, User, WasteLog

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

# Verified weight wins over the weight declared at drop-off
WASTE_WEIGHT = func.coalesce(WasteLog.verified_weight_kg, WasteLog.weight_kg)

COLLECTED_STATUSES = ["completed", "refunded"]


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    if period not in PERIOD_DAYS:
        raise ValidationError(f"Period must be one of: {list(PERIOD_DAYS)}", field="period")
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=PERIOD_DAYS[period])


def _float(value) -> float:
    return float(value or 0)


def user_activity(db: Session, user_id: int, period: str = "30d", limit: int = 10) -> dict:
    """Recent rentals, waste drop-offs and payments for one user, with period totals"""
    since = period_start(period)

    recent_rentals = db.query(Rental).filter(
        Rental.user_id == user_id, Rental.created_at >= since
    ).order_by(Rental.created_at.desc(), Rental.rental_id.desc()).limit(limit).all()

    recent_waste = db.query(WasteLog).filter(
        WasteLog.user_id == user_id, WasteLog.created_at >= since
    ).order_by(WasteLog.created_at.desc(), WasteLog.waste_log_id.desc()).limit(limit).all()

    recent_payments = db.query(Payment).filter(
        Payment.user_id == user_id, Payment.created_at >= since
    ).order_by(Payment.created_at.desc(), Payment.payment_id.desc()).limit(limit).all()

    rental_totals = db.query(
        func.count(Rental.rental_id), func.sum(Rental.total_cost)
    ).filter(Rental.user_id == user_id, Rental.created_at >= since).one()

    waste_totals = db.query(
        func.count(WasteLog.waste_log_id), func.sum(WASTE_WEIGHT), func.sum(WasteLog.points_earned)
    ).filter(
        WasteLog.user_id == user_id,
        WasteLog.created_at >= since,
        WasteLog.status != "rejected"
    ).one()

    return {
        "period": period,
        "recent_rentals": recent_rentals,
        "recent_waste": recent_waste,
        "recent_payments": recent_payments,
        "stats": {
            "rentals": {"count": rental_totals[0], "total_spent": _float(rental_totals[1])},
            "waste": {
                "submissions": waste_totals[0],
                "total_weight_kg": _float(waste_totals[1]),
                "total_points": int(waste_totals[2] or 0)
            }
        }
    }


def waste_overview(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    by_status = dict(
        db.query(WasteLog.status, func.count(WasteLog.waste_log_id)).group_by(WasteLog.status).all()
    )
    verified = db.query(
        func.sum(WASTE_WEIGHT), func.sum(WasteLog.points_earned), func.sum(WasteLog.co2_saved_kg)
    ).filter(WasteLog.status == "verified").one()
    today = db.query(func.count(WasteLog.waste_log_id)).filter(
        WasteLog.created_at >= now - timedelta(hours=24)
    ).scalar()

    return {
        "total_submissions": sum(by_status.values()),
        "verified_submissions": by_status.get("verified", 0),
        "pending_verification": by_status.get("pending_verification", 0),
        "rejected_submissions": by_status.get("rejected", 0),
        "total_weight_processed_kg": _float(verified[0]),
        "total_credits_awarded": int(verified[1] or 0),
        "total_co2_saved_kg": _float(verified[2]),
        "submissions_today": today
    }


def environmental_impact(db: Session, period: str = "30d", leaderboard_size: int = 10) -> dict:
    """Verified recycling by type and by day, top contributors, and the CO2 estimate"""
    since = period_start(period)
    verified = (WasteLog.status == "verified", WasteLog.created_at >= since)

    by_type = db.query(
        WasteLog.waste_type, func.sum(WASTE_WEIGHT), func.count(WasteLog.waste_log_id)
    ).filter(*verified).group_by(WasteLog.waste_type).order_by(func.sum(WASTE_WEIGHT).desc()).all()

    day = func.date(WasteLog.created_at)
    by_day = db.query(
        day, func.sum(WASTE_WEIGHT), func.count(WasteLog.waste_log_id)
    ).filter(*verified).group_by(day).order_by(day).all()

    contributors = db.query(
        User.user_id,
        User.full_name,
        func.sum(WASTE_WEIGHT),
        func.sum(WasteLog.points_earned),
        func.count(WasteLog.waste_log_id)
    ).join(WasteLog, WasteLog.user_id == User.user_id).filter(*verified).group_by(
        User.user_id, User.full_name
    ).order_by(func.sum(WASTE_WEIGHT).desc(), User.user_id).limit(leaderboard_size).all()

    totals = db.query(
        func.sum(WASTE_WEIGHT), func.sum(WasteLog.points_earned), func.count(WasteLog.waste_log_id)
    ).filter(*verified).one()
    total_weight = _float(totals[0])

    return {
        "period": period,
        "waste_by_type": [
            {"waste_type": row[0], "total_weight_kg": _float(row[1]), "submissions": row[2]}
            for row in by_type
        ],
        "waste_over_time": [
            {"date": str(row[0]), "weight_kg": _float(row[1]), "submissions": row[2]}
            for row in by_day
        ],
        "top_contributors": [
            {
                "rank": rank,
                "user_id": row[0],
                "full_name": row[1],
                "total_weight_kg": _float(row[2]),
                "total_points": int(row[3] or 0),
                "submissions": row[4]
            }
            for rank, row in enumerate(contributors, start=1)
        ],
        "total_impact": {
            "total_weight_kg": total_weight,
            "total_credits": int(totals[1] or 0),
            "total_submissions": totals[2],
            "co2_saved_kg": round(total_weight * settings.co2_saved_per_kg, 2)
        }
    }


def financial_summary(db: Session, period: str = "30d") -> dict:
    """Collected revenue by method and by day, and refunds, over the period"""
    since = period_start(period)
    collected = (Payment.status.in_(COLLECTED_STATUSES), Payment.amount > 0, Payment.created_at >= since)

    by_method = db.query(
        Payment.payment_method, func.sum(Payment.amount), func.count(Payment.payment_id)
    ).filter(*collected).group_by(Payment.payment_method).order_by(func.sum(Payment.amount).desc()).all()

    day = func.date(Payment.created_at)
    by_day = db.query(
        day, func.sum(Payment.amount), func.count(Payment.payment_id)
    ).filter(*collected).group_by(day).order_by(day).all()

    refunds = db.query(func.sum(Payment.amount), func.count(Payment.payment_id)).filter(
        Payment.status == "completed", Payment.amount < 0, Payment.created_at >= since
    ).one()

    revenue = sum(_float(row[1]) for row in by_method)
    refunded = abs(_float(refunds[0]))

    return {
        "period": period,
        "currency": settings.currency,
        "revenue_by_method": [
            {"payment_method": row[0], "revenue": _float(row[1]), "transactions": row[2]}
            for row in by_method
        ],
        "revenue_over_time": [
            {"date": str(row[0]), "revenue": _float(row[1]), "transactions": row[2]}
            for row in by_day
        ],
        "refunds": {"count": refunds[1], "total": refunded},
        "total_revenue": revenue,
        "net_revenue": round(revenue - refunded, 2)
    }


def recent_activity(db: Session, limit: int = 5) -> dict:
    """Newest sign-ups, rentals, waste drop-offs and payments across the platform"""
    return {
        "recent_users": db.query(User).order_by(User.created_at.desc(), User.user_id.desc()).limit(limit).all(),
        "recent_rentals": db.query(Rental).order_by(
            Rental.created_at.desc(), Rental.rental_id.desc()
        ).limit(limit).all(),
        "recent_waste": db.query(WasteLog).order_by(
            WasteLog.created_at.desc(), WasteLog.waste_log_id.desc()
        ).limit(limit).all(),
        "recent_payments": db.query(Payment).order_by(
            Payment.created_at.desc(), Payment.payment_id.desc()
        ).limit(limit).all()
    }
