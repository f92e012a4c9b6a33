"""
Customer support tickets and their message threads
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import ConflictError, NotFoundError, ValidationError
from models import Rental, SupportTicket, TicketMessage, User

logger = logging.getLogger(__name__)

STAFF_ROLES = ("admin", "station_manager")


def get_ticket(db: Session, ticket_id: int) -> SupportTicket:
    ticket = db.query(SupportTicket).filter(SupportTicket.ticket_id == ticket_id).first()
    if not ticket:
        raise NotFoundError("Support ticket", ticket_id)
    return ticket


def create_ticket(
    db: Session,
    user_id: int,
    subject: str,
    message: str,
    category: str = "other",
    priority: str = "medium",
    rental_id: Optional[int] = None,
) -> SupportTicket:
    if rental_id is not None:
        rental = db.query(Rental).filter(Rental.rental_id == rental_id).first()
        if not rental:
            raise NotFoundError("Rental", rental_id)
        if rental.user_id != user_id:
            raise ValidationError("Tickets can only reference your own rentals", field="rental_id")

    ticket = SupportTicket(
        user_id=user_id,
        rental_id=rental_id,
        subject=subject,
        message=message,
        category=category,
        priority=priority,
        status="open"
    )
    try:
        db.add(ticket)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(ticket)
    logger.info(f"Support ticket {ticket.ticket_id} opened by user {user_id}: {subject}")
    return ticket


def add_message(db: Session, ticket_id: int, sender: User, message: str) -> TicketMessage:
    """
    Append a message to a ticket thread.

    Closed tickets accept no more messages. A staff reply picks up an open
    ticket; a customer reply reopens a resolved one.
    """
    ticket = get_ticket(db, ticket_id)
    if ticket.status == "closed":
        raise ConflictError("Ticket is closed", context={"ticket_id": ticket_id})

    try:
        reply = TicketMessage(ticket_id=ticket_id, sender_id=sender.user_id, message=message)
        db.add(reply)

        if sender.role in STAFF_ROLES:
            if ticket.status == "open":
                ticket.status = "in_progress"
            if ticket.agent_id is None:
                ticket.agent_id = sender.user_id
        elif ticket.status == "resolved":
            ticket.status = "open"
            ticket.resolved_at = None

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(reply)
    return reply


def update_ticket(
    db: Session,
    ticket_id: int,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    agent_id: Optional[int] = None,
) -> SupportTicket:
    """Staff triage: change status or priority, or assign an agent"""
    ticket = get_ticket(db, ticket_id)
    if ticket.status == "closed":
        raise ConflictError("Ticket is closed", context={"ticket_id": ticket_id})

    if agent_id is not None:
        agent = db.query(User).filter(User.user_id == agent_id).first()
        if not agent:
            raise NotFoundError("User", agent_id)
        if agent.role not in STAFF_ROLES:
            raise ValidationError("Tickets can only be assigned to staff", field="agent_id")

    try:
        if status is not None:
            ticket.status = status
            ticket.resolved_at = datetime.now(timezone.utc) if status in ("resolved", "closed") else None
        if priority is not None:
            ticket.priority = priority
        if agent_id is not None:
            ticket.agent_id = agent_id
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(ticket)
    logger.info(f"Support ticket {ticket_id} updated: status={ticket.status} priority={ticket.priority} agent={ticket.agent_id}")
    return ticket
