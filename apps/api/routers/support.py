"""
Support tickets router
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from database import get_db
from models import User, SupportTicket
from schemas import TicketCreate, TicketUpdate, TicketMessageCreate, TicketResponse, TicketMessageResponse
from auth import get_current_user, get_manager, ensure_owner_or_staff
from services import support as support_service
from services.formatters import status_label

router = APIRouter()

def ticket_to_dict(ticket: SupportTicket, with_messages: bool = False) -> dict:
    data = TicketResponse.model_validate(ticket).model_dump()
    data["status_label"] = status_label(ticket.status)
    data["user_name"] = ticket.user.full_name if ticket.user else None
    data["agent_name"] = ticket.agent.full_name if ticket.agent else None
    if with_messages:
        data["messages"] = [
            {
                **TicketMessageResponse.model_validate(m).model_dump(),
                "sender_name": m.sender.full_name if m.sender else None,
                "from_staff": m.sender is not None and m.sender.role != "customer"
            }
            for m in ticket.messages
        ]
    return data

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    ticket_data: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = support_service.create_ticket(
        db,
        user_id=current_user.user_id,
        subject=ticket_data.subject,
        message=ticket_data.message,
        category=ticket_data.category,
        priority=ticket_data.priority,
        rental_id=ticket_data.rental_id
    )
    return {
        "message": "Support ticket created successfully",
        "ticket": ticket_to_dict(ticket)
    }

@router.get("")
async def get_tickets(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    agent_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    List support tickets, newest first

    Customers only see their own tickets.
    """
    query = db.query(SupportTicket)
    if current_user.role == "customer":
        query = query.filter(SupportTicket.user_id == current_user.user_id)

    if status:
        query = query.filter(SupportTicket.status == status)
    if priority:
        query = query.filter(SupportTicket.priority == priority)
    if category:
        query = query.filter(SupportTicket.category == category)
    if agent_id is not None:
        query = query.filter(SupportTicket.agent_id == agent_id)

    total = query.count()
    tickets = query.order_by(
        SupportTicket.created_at.desc(), SupportTicket.ticket_id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "tickets": [ticket_to_dict(t) for t in tickets],
        "total": total,
        "skip": skip,
        "limit": limit
    }

@router.get("/stats/overview")
async def get_ticket_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    by_status = dict(
        db.query(SupportTicket.status, func.count(SupportTicket.ticket_id))
        .group_by(SupportTicket.status).all()
    )
    by_priority = dict(
        db.query(SupportTicket.priority, func.count(SupportTicket.ticket_id))
        .filter(SupportTicket.status.in_(["open", "in_progress"]))
        .group_by(SupportTicket.priority).all()
    )
    unassigned = db.query(func.count(SupportTicket.ticket_id)).filter(
        SupportTicket.agent_id.is_(None),
        SupportTicket.status.in_(["open", "in_progress"])
    ).scalar()

    return {
        "total_tickets": sum(by_status.values()),
        "by_status": by_status,
        "open_by_priority": by_priority,
        "unassigned_open": unassigned
    }

@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Ticket details with its message thread
    """
    ticket = support_service.get_ticket(db, ticket_id)
    ensure_owner_or_staff(current_user, ticket.user_id)
    return ticket_to_dict(ticket, with_messages=True)

@router.post("/{ticket_id}/messages", status_code=status.HTTP_201_CREATED)
async def add_ticket_message(
    ticket_id: int,
    message_data: TicketMessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = support_service.get_ticket(db, ticket_id)
    ensure_owner_or_staff(current_user, ticket.user_id)

    reply = support_service.add_message(db, ticket_id, current_user, message_data.message)
    db.refresh(ticket)
    return {
        "message": "Reply added successfully",
        "ticket_message": TicketMessageResponse.model_validate(reply).model_dump(),
        "ticket": ticket_to_dict(ticket)
    }

@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: int,
    ticket_data: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_manager)
):
    """
    Change status or priority, or assign an agent (station managers and admins)
    """
    ticket = support_service.update_ticket(
        db,
        ticket_id,
        status=ticket_data.status,
        priority=ticket_data.priority,
        agent_id=ticket_data.agent_id
    )
    return {
        "message": "Support ticket updated successfully",
        "ticket": ticket_to_dict(ticket)
    }
