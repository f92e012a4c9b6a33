"""
Display helpers for status enums (colors and labels shown by the mobile app
and the admin dashboard)
"""
from datetime import datetime, timezone
from typing import Optional

from services.pricing import as_utc

DEFAULT_COLOR = "#9E9E9E"  # Grey

BATTERY_HEALTH_COLORS = {
    "excellent": "#4CAF50",  # Green
    "good": "#8BC34A",       # Light green
    "fair": "#FF9800",       # Orange
    "poor": "#F44336",       # Red
    "critical": "#B71C1C",   # Dark red
}

RENTAL_STATUS_COLORS = {
    "active": "#4CAF50",
    "completed": "#2196F3",
    "cancelled": "#F44336",
    "overdue": "#FF5722",
    "pending": "#FF9800",
}

STATUS_LABELS = {
    "available": "Available",
    "rented": "Rented",
    "charging": "Charging",
    "maintenance": "Under maintenance",
    "retired": "Retired",
    "active": "Active",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "overdue": "Overdue",
    "pending": "Pending",
    "pending_verification": "Pending verification",
    "verified": "Verified",
    "rejected": "Rejected",
    "failed": "Failed",
    "refunded": "Refunded",
    "open": "Open",
    "in_progress": "In progress",
    "resolved": "Resolved",
    "closed": "Closed",
}


def battery_health_color(health_status: Optional[str]) -> str:
    return BATTERY_HEALTH_COLORS.get(health_status, DEFAULT_COLOR)


def charge_level_color(charge_percentage) -> str:
    level = float(charge_percentage or 0)
    if level >= 80:
        return "#4CAF50"
    if level >= 50:
        return "#FF9800"
    if level >= 20:
        return "#FF5722"
    return "#F44336"


def rental_status_color(status: Optional[str]) -> str:
    return RENTAL_STATUS_COLORS.get(status, DEFAULT_COLOR)


def status_label(status: Optional[str]) -> str:
    if not status:
        return "Unknown"
    return STATUS_LABELS.get(status, status.replace("_", " ").capitalize())


def format_rental_duration(start_time: datetime, end_time: Optional[datetime] = None) -> str:
    """'2h 15m' style duration; open rentals are measured up to now"""
    end = end_time or datetime.now(timezone.utc)
    total_minutes = max(0, int((as_utc(end) - as_utc(start_time)).total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
