"""
Tests for rental eligibility, cost and recycling credit rules

Run with: pytest apps/api/tests/test_pricing.py -v
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from exceptions import ValidationError
from services.pricing import billed_hours, compute_co2_saved, compute_cost, compute_credits, credit_rate
from services.rentals import is_eligible_for_rental

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


def battery(status="available", charge=100, health="good"):
    return SimpleNamespace(status=status, charge_percentage=charge, health_status=health)


class TestEligibility:
    """A battery is rentable only when available, charged and healthy"""

    def test_available_charged_healthy_battery_is_eligible(self):
        assert is_eligible_for_rental(battery(charge=25)) is True

    def test_low_charge_is_not_eligible(self):
        assert is_eligible_for_rental(battery(charge=10)) is False

    def test_charge_threshold_is_inclusive(self):
        assert is_eligible_for_rental(battery(charge=20)) is True
        assert is_eligible_for_rental(battery(charge=Decimal("19.99"))) is False

    @pytest.mark.parametrize("status", ["rented", "charging", "maintenance", "retired"])
    def test_unavailable_status_is_not_eligible(self, status):
        assert is_eligible_for_rental(battery(status=status)) is False

    def test_poor_health_is_not_eligible(self):
        assert is_eligible_for_rental(battery(health="poor")) is False

    @pytest.mark.parametrize("health", ["excellent", "good", "fair"])
    def test_other_health_levels_are_eligible(self, health):
        assert is_eligible_for_rental(battery(health=health)) is True

    def test_critical_health_is_still_eligible(self):
        # Only "poor" blocks a rental
        assert is_eligible_for_rental(battery(health="critical")) is True


class TestCost:
    """Base cost plus every started hour, never less than one hour"""

    def test_ten_minutes_bills_one_hour(self):
        assert compute_cost(T0, T0 + timedelta(minutes=10), 25, 50) == 75

    def test_zero_duration_bills_one_hour(self):
        assert compute_cost(T0, T0, 25, 50) == 75

    def test_exactly_one_hour_bills_one_hour(self):
        assert compute_cost(T0, T0 + timedelta(hours=1), 25, 50) == 75

    def test_one_second_over_an_hour_bills_two(self):
        assert compute_cost(T0, T0 + timedelta(hours=1, seconds=1), 25, 50) == 100

    def test_two_hours_fifteen_minutes_bills_three_hours(self):
        assert billed_hours(T0, T0 + timedelta(hours=2, minutes=15)) == 3
        assert compute_cost(T0, T0 + timedelta(hours=2, minutes=15), Decimal("25.00"), Decimal("50.00")) == Decimal("125.00")

    def test_cost_never_decreases_with_duration(self):
        costs = [compute_cost(T0, T0 + timedelta(minutes=m), 25, 50) for m in range(0, 600, 7)]
        assert costs == sorted(costs)

    def test_naive_and_aware_times_are_comparable(self):
        naive_start = T0.replace(tzinfo=None)
        assert compute_cost(naive_start, T0 + timedelta(minutes=90), 25, 50) == 100

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_cost(T0, T0 - timedelta(minutes=1), 25, 50)
        assert exc_info.value.field == "end_time"


class TestCredits:
    """Points per kg by plastic type"""

    def test_pet(self):
        assert compute_credits("PET", 2.5) == 25

    def test_unknown_type_uses_other_rate(self):
        assert compute_credits("UNKNOWN", 1) == 4

    def test_pvc_uses_other_rate(self):
        assert credit_rate("PVC") == 4

    @pytest.mark.parametrize("waste_type, rate", [
        ("PET", 10), ("HDPE", 8), ("LDPE", 6), ("PP", 7), ("PS", 5), ("OTHER", 4),
    ])
    def test_rate_table(self, waste_type, rate):
        assert compute_credits(waste_type, 1) == rate

    def test_lookup_is_case_insensitive(self):
        assert compute_credits("pet", 2) == 20
        assert compute_credits("Hdpe", 1) == 8

    def test_half_points_round_up(self):
        # 0.25 kg * 10 = 2.5
        assert compute_credits("PET", 0.25) == 3
        # 0.5 kg * 5 = 2.5
        assert compute_credits("PS", Decimal("0.5")) == 3

    def test_result_is_int(self):
        assert isinstance(compute_credits("PP", Decimal("1.234")), int)

    def test_co2_saved(self):
        assert compute_co2_saved(2.5) == Decimal("4.500")
        assert compute_co2_saved(Decimal("0.333")) == Decimal("0.599")
