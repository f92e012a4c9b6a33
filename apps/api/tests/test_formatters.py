"""
Tests for status colors and labels
"""
from datetime import datetime, timedelta, timezone

import pytest

from services.formatters import (
    DEFAULT_COLOR,
    battery_health_color,
    charge_level_color,
    format_rental_duration,
    rental_status_color,
    status_label,
)

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


class TestColors:

    @pytest.mark.parametrize("charge, color", [
        (100, "#4CAF50"), (80, "#4CAF50"), (79.9, "#FF9800"), (50, "#FF9800"),
        (49, "#FF5722"), (20, "#FF5722"), (19, "#F44336"), (None, "#F44336"),
    ])
    def test_charge_level_bands(self, charge, color):
        assert charge_level_color(charge) == color

    def test_health_colors(self):
        assert battery_health_color("excellent") == "#4CAF50"
        assert battery_health_color("poor") == "#F44336"

    def test_unknown_values_fall_back_to_grey(self):
        assert battery_health_color("mystery") == DEFAULT_COLOR
        assert rental_status_color(None) == DEFAULT_COLOR

    def test_rental_status_colors(self):
        assert rental_status_color("active") == "#4CAF50"
        assert rental_status_color("completed") == "#2196F3"


class TestLabels:

    def test_known_status(self):
        assert status_label("pending_verification") == "Pending verification"

    def test_unknown_status_is_humanized(self):
        assert status_label("awaiting_pickup") == "Awaiting pickup"

    def test_missing_status(self):
        assert status_label(None) == "Unknown"


class TestDuration:

    def test_hours_and_minutes(self):
        assert format_rental_duration(T0, T0 + timedelta(hours=2, minutes=15)) == "2h 15m"

    def test_minutes_only(self):
        assert format_rental_duration(T0, T0 + timedelta(minutes=42)) == "42m"

    def test_naive_start_from_database(self):
        assert format_rental_duration(T0.replace(tzinfo=None), T0 + timedelta(hours=1)) == "1h 0m"
