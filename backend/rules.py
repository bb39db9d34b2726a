# rules.py - Derived-status rules for instruments and quality indicators
"""
Pure functions deriving presentation status from stored values.

- Calibration expiry is recomputed on every read and never persisted.
- Quality conformance is computed once when an indicator is recorded and
  stored with it.
- Quality trend is a separate cosmetic classification recomputed on every
  read; it is not kept in sync with the stored conformance status.
"""

from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from models import QualityStatus, Trend

TOLERANCE_RATIO = 0.05
ATTENTION_RATIO = 0.5
TREND_FLAT_PERCENT = 2.0


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic.

    The day of month is kept where the target month has it; otherwise it is
    clamped to the last day of the target month (Jan 31 + 1 month = Feb 28/29).
    """
    return start + relativedelta(months=months)


def next_calibration_date(last_calibration: Optional[date], frequency_months: int) -> Optional[date]:
    if last_calibration is None:
        return None
    return add_months(last_calibration, frequency_months)


def is_calibration_expired(
    last_calibration: Optional[date],
    frequency_months: int,
    today: Optional[date] = None,
) -> bool:
    """True when the instrument was never calibrated or its due date has passed.

    An instrument due today is not expired.
    """
    if last_calibration is None:
        return True
    today = today or date.today()
    return add_months(last_calibration, frequency_months) < today


def classify_indicator(target: float, current: float) -> QualityStatus:
    """Conformance of a measured value against its target (±5% tolerance)."""
    tolerance = target * TOLERANCE_RATIO
    deviation = abs(current - target)
    if deviation > tolerance:
        return QualityStatus.NON_CONFORMING
    if deviation > tolerance * ATTENTION_RATIO:
        return QualityStatus.ATTENTION
    return QualityStatus.CONFORMING


def indicator_trend(target: float, current: float) -> Trend:
    """Direction of the deviation, flat within ±2% of the target."""
    difference = current - target
    if target == 0:
        # no percentage against a zero target: only exact equality is flat
        if difference == 0:
            return Trend.FLAT
        return Trend.UP if difference > 0 else Trend.DOWN
    percent = difference / abs(target) * 100
    if abs(percent) <= TREND_FLAT_PERCENT:
        return Trend.FLAT
    return Trend.UP if percent > 0 else Trend.DOWN
