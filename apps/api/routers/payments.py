"""
Payments router
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from database import get_db
from models import User, Payment
from schemas import PaymentCreate, PaymentStatusUpdate, RefundRequest, PaymentResponse
from auth import get_current_user, get_manager, get_admin, ensure_owner_or_staff
from services import payments as payment_service
from services.rentals import get_rental
from services.formatters import status_label

router = APIRouter()

# Refunded payments were collected first; the refund itself is a separate negative row
COLLECTED_STATUSES = ["completed", "refunded"]

def payment_to_dict(payment: Payment) -> dict:
    data = PaymentResponse.model_validate(payment).model_dump()
    data["amount"] = float(payment.amount)
    data["status_label"] = status_label(payment.status)
    return data

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Record a payment

    Customers pay for themselves; staff may record a payment for any user.
    A payment against a rental always belongs to the rental's owner.
    """
    user_id = current_user.user_id
    if current_user.role != "customer" and payment_data.user_id is not None:
        user_id = payment_data.user_id

    if payment_data.rental_id is not None:
        rental = get_rental(db, payment_data.rental_id)
        ensure_owner_or_staff(current_user, rental.user_id)
        if current_user.role != "customer" and payment_data.user_id is None:
            user_id = rental.user_id

    payment = payment_service.create_payment(
        db,
        user_id=user_id,
        amount=payment_data.amount,
        payment_method=payment_data.payment_method,
        rental_id=payment_data.rental_id,
        currency=payment_data.currency,
        payment_reference=payment_data.payment_reference,
        description=payment_data.description
    )
    return {
        "message": "Payment created successfully",
        "payment": payment_to_dict(payment)
    }

@router.get("")
async def get_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    status: Optional[str] = None,
    payment_method: Optional[str] = None,
    user_id: Optional[int] = None,
    rental_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get payments with filters

    Customers only see their own payments.
    """
    query = db.query(Payment)

    if current_user.role == "customer":
        query = query.filter(Payment.user_id == current_user.user_id)
    elif user_id is not None:
        query = query.filter(Payment.user_id == user_id)

    if status:
        query = query.filter(Payment.status == status)
    if payment_method:
        query = query.filter(Payment.payment_method == payment_method)
    if rental_id is not None:
        query = query.filter(Payment.rental_id == rental_id)

    total = query.count()
    payments = query.order_by(Payment.created_at.desc(), Payment.payment_id.desc()).offset(skip).limit(limit).all()

    return {
        "payments": [payment_to_dict(p) for p in payments],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/stats/overview")
async def get_payment_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Payment counts and revenue by status and method
    """
    by_status = {
        row[0]: {"count": row[1], "amount": float(row[2] or 0)}
        for row in db.query(Payment.status, func.count(Payment.payment_id), func.sum(Payment.amount))
        .group_by(Payment.status).all()
    }
    by_method = {
        row[0]: {"count": row[1], "amount": float(row[2] or 0)}
        for row in db.query(Payment.payment_method, func.count(Payment.payment_id), func.sum(Payment.amount))
        .filter(Payment.status.in_(COLLECTED_STATUSES), Payment.amount > 0)
        .group_by(Payment.payment_method).all()
    }

    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status.in_(COLLECTED_STATUSES), Payment.amount > 0
    ).scalar()
    refunds = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == "completed", Payment.amount < 0
    ).scalar()

    return {
        "total_payments": sum(item["count"] for item in by_status.values()),
        "total_revenue": float(revenue),
        "total_refunded": abs(float(refunds)),
        "net_revenue": float(revenue) + float(refunds),
        "by_status": by_status,
        "by_method": by_method
    }

@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    payment = payment_service.get_payment(db, payment_id)
    ensure_owner_or_staff(current_user, payment.user_id)
    return payment_to_dict(payment)

@router.patch("/{payment_id}/status")
async def update_payment_status(
    payment_id: int,
    status_data: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Update payment status (station managers and admins)
    """
    payment = payment_service.update_payment_status(
        db, payment_id, status=status_data.status, notes=status_data.notes
    )
    return {
        "message": "Payment status updated successfully",
        "payment": payment_to_dict(payment)
    }

@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: int,
    refund_data: RefundRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin)
):
    """
    Refund a completed payment (admin only)

    Omitting refund_amount refunds the full payment.
    """
    refund = payment_service.refund_payment(
        db,
        payment_id,
        reason=refund_data.reason,
        processed_by=current_user.user_id,
        refund_amount=refund_data.refund_amount,
        refund_method=refund_data.refund_method
    )
    return {
        "message": "Refund processed successfully",
        "refund": payment_to_dict(refund),
        "original_payment": payment_to_dict(payment_service.get_payment(db, payment_id))
    }
