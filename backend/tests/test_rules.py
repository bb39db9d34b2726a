# tests/test_rules.py - Calibration expiry and quality classification rules
from datetime import date

import pytest

from models import QualityStatus, Trend
from rules import (
    add_months, next_calibration_date, is_calibration_expired,
    classify_indicator, indicator_trend,
)


class TestAddMonths:
    def test_keeps_day_of_month(self):
        assert add_months(date(2023, 1, 15), 12) == date(2024, 1, 15)

    def test_crosses_year_boundary(self):
        assert add_months(date(2023, 11, 10), 3) == date(2024, 2, 10)

    def test_clamps_to_end_of_short_month(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_clamps_to_leap_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_zero_months(self):
        assert add_months(date(2024, 5, 20), 0) == date(2024, 5, 20)


class TestCalibrationExpiry:
    @pytest.mark.parametrize("months", [1, 6, 12, 24])
    def test_never_calibrated_is_expired(self, months):
        assert is_calibration_expired(None, months) is True

    def test_overdue_instrument_is_expired(self):
        assert is_calibration_expired(date(2023, 1, 15), 12, today=date(2024, 2, 1)) is True

    def test_due_today_is_not_expired(self):
        assert is_calibration_expired(date(2023, 1, 15), 12, today=date(2024, 1, 15)) is False

    def test_day_after_due_is_expired(self):
        assert is_calibration_expired(date(2023, 1, 15), 12, today=date(2024, 1, 16)) is True

    def test_within_period_is_not_expired(self):
        assert is_calibration_expired(date(2024, 1, 10), 6, today=date(2024, 3, 1)) is False

    def test_defaults_to_current_date(self):
        assert is_calibration_expired(date.today(), 1) is False

    def test_next_date_absent_without_calibration(self):
        assert next_calibration_date(None, 12) is None
        assert next_calibration_date(date(2024, 8, 31), 6) == date(2025, 2, 28)


class TestIndicatorClassification:
    @pytest.mark.parametrize("current,expected", [
        (100, QualityStatus.CONFORMING),
        (98, QualityStatus.CONFORMING),       # deviation 2
        (97, QualityStatus.ATTENTION),        # deviation 3 > 2.5
        (104, QualityStatus.ATTENTION),       # deviation 4 > 2.5
        (104.5, QualityStatus.ATTENTION),     # deviation 4.5
        (105, QualityStatus.ATTENTION),       # deviation equal to tolerance
        (106, QualityStatus.NON_CONFORMING),  # deviation 6
        (107, QualityStatus.NON_CONFORMING),  # deviation 7
        (102.5, QualityStatus.CONFORMING),    # deviation equal to half tolerance
        (93, QualityStatus.NON_CONFORMING),
    ])
    def test_target_100(self, current, expected):
        assert classify_indicator(100, current) == expected

    def test_zero_target_exact_match_conforms(self):
        assert classify_indicator(0, 0) == QualityStatus.CONFORMING

    def test_zero_target_any_deviation_fails(self):
        assert classify_indicator(0, 0.001) == QualityStatus.NON_CONFORMING
        assert classify_indicator(0, -1) == QualityStatus.NON_CONFORMING


class TestIndicatorTrend:
    @pytest.mark.parametrize("current,expected", [
        (100, Trend.FLAT),
        (102, Trend.FLAT),
        (98, Trend.FLAT),
        (102.1, Trend.UP),
        (97.9, Trend.DOWN),
    ])
    def test_two_percent_band(self, current, expected):
        assert indicator_trend(100, current) == expected

    def test_trend_ignores_stored_status(self):
        # within the flat band yet in attention for conformance
        assert indicator_trend(100, 101.5) == Trend.FLAT
        assert classify_indicator(100, 104) == QualityStatus.ATTENTION
        assert indicator_trend(100, 104) == Trend.UP

    def test_zero_target(self):
        assert indicator_trend(0, 0) == Trend.FLAT
        assert indicator_trend(0, 0.5) == Trend.UP
        assert indicator_trend(0, -0.5) == Trend.DOWN
