"""
Payment recording, status changes and refunds
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from config import settings
from exceptions import ConflictError, NotFoundError, ValidationError
from models import Payment, Rental, User

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ["mpesa", "card", "cash", "points", "bank_transfer"]
PAYMENT_STATUSES = ["pending", "completed", "failed", "cancelled", "refunded"]

# Statuses reachable through a plain status update. Completed payments only
# move on through refund_payment; refunded and cancelled are final.
STATUS_TRANSITIONS = {
    "pending": {"completed", "failed", "cancelled"},
    "failed": {"pending", "cancelled"},
    "completed": set(),
    "cancelled": set(),
    "refunded": set(),
}


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.payment_id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment", payment_id)
    return payment


def create_payment(
    db: Session,
    user_id: int,
    amount,
    payment_method: str,
    rental_id: Optional[int] = None,
    currency: Optional[str] = None,
    payment_reference: Optional[str] = None,
    description: Optional[str] = None,
) -> Payment:
    if not db.query(User).filter(User.user_id == user_id).first():
        raise NotFoundError("User", user_id)
    if rental_id is not None:
        rental = db.query(Rental).filter(Rental.rental_id == rental_id).first()
        if not rental:
            raise NotFoundError("Rental", rental_id)
        if rental.user_id != user_id:
            raise ValidationError(
                "Payment user must be the rental's owner",
                field="user_id",
                context={"rental_id": rental_id, "rental_user_id": rental.user_id},
            )
    if payment_reference and db.query(Payment).filter(Payment.payment_reference == payment_reference).first():
        raise ConflictError("A payment with this reference already exists", context={"payment_reference": payment_reference})

    payment = Payment(
        user_id=user_id,
        rental_id=rental_id,
        amount=amount,
        currency=currency or settings.currency,
        payment_method=payment_method,
        payment_reference=payment_reference,
        description=description,
        status="pending"
    )
    try:
        db.add(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    logger.info(f"Payment {payment.payment_id} created: {amount} {payment.currency} via {payment_method}")
    return payment


def update_payment_status(db: Session, payment_id: int, status: str, notes: Optional[str] = None) -> Payment:
    """Move a payment to a new status; a completed rental payment settles the rental"""
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"Status must be one of: {PAYMENT_STATUSES}", field="status")
    if status == "refunded":
        raise ValidationError("Use the refund endpoint to refund a payment", field="status")

    payment = get_payment(db, payment_id)
    current = payment.status
    if status not in STATUS_TRANSITIONS.get(current, set()):
        raise ConflictError(
            f"Cannot change payment status from {current} to {status}",
            context={"payment_id": payment_id, "status": current, "requested": status},
        )

    values = {"status": status}
    if status in ("completed", "failed"):
        values["processed_at"] = datetime.now(timezone.utc)
    if notes:
        values["description"] = notes

    try:
        changed = db.query(Payment).filter(
            Payment.payment_id == payment_id,
            Payment.status == current
        ).update(values, synchronize_session="fetch")
        if changed != 1:
            raise ConflictError("Payment status changed concurrently", context={"payment_id": payment_id})

        if payment.rental_id and status == "completed":
            db.query(Rental).filter(Rental.rental_id == payment.rental_id).update(
                {"payment_status": "completed"}, synchronize_session="fetch"
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    logger.info(f"Payment {payment_id} status -> {status}")
    return payment


def refund_payment(
    db: Session,
    payment_id: int,
    reason: str,
    processed_by: int,
    refund_amount=None,
    refund_method: Optional[str] = None,
) -> Payment:
    """
    Refund a completed payment, fully or partially.

    The refund is recorded as a separate completed payment with a negative
    amount; the original payment is marked refunded.
    """
    if refund_method is not None and refund_method not in PAYMENT_METHODS:
        raise ValidationError(f"Refund method must be one of: {PAYMENT_METHODS}", field="refund_method")

    payment = get_payment(db, payment_id)

    if payment.status != "completed":
        raise ConflictError(
            "Can only refund completed payments",
            context={"payment_id": payment_id, "status": payment.status},
        )
    if payment.amount < 0:
        raise ConflictError("A refund cannot itself be refunded", context={"payment_id": payment_id})

    amount = Decimal(str(refund_amount)) if refund_amount is not None else Decimal(str(payment.amount))
    if amount <= 0:
        raise ValidationError("Refund amount must be positive", field="refund_amount")
    if amount > Decimal(str(payment.amount)):
        raise ValidationError("Refund amount cannot exceed original payment amount", field="refund_amount")

    now = datetime.now(timezone.utc)
    try:
        claimed = db.query(Payment).filter(
            Payment.payment_id == payment_id,
            Payment.status == "completed"
        ).update({"status": "refunded"}, synchronize_session="fetch")
        if claimed != 1:
            raise ConflictError("Payment has already been refunded", context={"payment_id": payment_id})

        refund = Payment(
            user_id=payment.user_id,
            rental_id=payment.rental_id,
            amount=-amount,
            currency=payment.currency,
            payment_method=refund_method or payment.payment_method,
            payment_reference=f"REFUND-{payment.payment_reference or payment.payment_id}",
            description=f"Refund for payment {payment.payment_id}: {reason}",
            status="completed",
            processed_at=now
        )
        db.add(refund)

        payment.description = f"{payment.description or ''} | REFUNDED: {reason}".lstrip(" |")

        if payment.rental_id:
            db.query(Rental).filter(Rental.rental_id == payment.rental_id).update(
                {"payment_status": "refunded"}, synchronize_session="fetch"
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(refund)
    logger.info(f"Payment {payment_id} refunded ({amount}) by user {processed_by}: {reason}")
    return refund
