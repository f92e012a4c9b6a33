"""
Rental cost and recycling credit calculations

Pure functions: no database access, no clock reads.
"""
import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from config import settings
from exceptions import ValidationError

Number = Union[int, float, Decimal]

SECONDS_PER_HOUR = 3600

# Points per kg of plastic, keyed by resin code
CREDIT_RATES = {
    "PET": 10,
    "HDPE": 8,
    "LDPE": 6,
    "PP": 7,
    "PS": 5,
    "OTHER": 4,
}


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite hands these back) as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def billed_hours(start_time: datetime, end_time: datetime) -> int:
    """
    Whole hours charged for a rental: elapsed time rounded up, minimum one.

    Raises ValidationError when end_time precedes start_time instead of
    silently billing the one-hour minimum.
    """
    elapsed = (as_utc(end_time) - as_utc(start_time)).total_seconds()
    if elapsed < 0:
        raise ValidationError(
            "Rental end time cannot be earlier than its start time",
            field="end_time",
            context={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )
    return max(1, math.ceil(elapsed / SECONDS_PER_HOUR))


def compute_cost(start_time: datetime, end_time: datetime, hourly_rate: Number, base_cost: Number):
    """base_cost + billed_hours * hourly_rate"""
    return base_cost + billed_hours(start_time, end_time) * hourly_rate


def credit_rate(waste_type: str) -> int:
    return CREDIT_RATES.get((waste_type or "").upper(), CREDIT_RATES["OTHER"])


def compute_credits(waste_type: str, weight_kg: Number) -> int:
    """Points earned for a waste submission, rounded half-up to a whole point"""
    points = Decimal(str(weight_kg)) * credit_rate(waste_type)
    return int(points.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_co2_saved(weight_kg: Number) -> Decimal:
    """Estimated kg of CO2 avoided by recycling weight_kg of plastic"""
    saved = Decimal(str(weight_kg)) * Decimal(str(settings.co2_saved_per_kg))
    return saved.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
