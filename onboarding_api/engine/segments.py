"""
Calendar segment builder for period-based dashboard metrics.

Turns a requested period (month, quarter, year) and a reference time into an
ordered list of half-open TimeSegments. All segments are aligned to the first
day of a month and the window always ends at the start of the current month,
so only completed months are ever reported.
"""

from datetime import datetime
from typing import Optional, Union

import structlog

from onboarding_api.models.dashboard import TimeSegment
from onboarding_api.models.enums import MetricFamily, Period

from .errors import InvalidParameterError

logger = structlog.get_logger()

# Number of completed months covered by each period
WINDOW_MONTHS = {
    Period.MONTH: 1,
    Period.QUARTER: 3,
    Period.YEAR: 12,
}


def month_start(moment: datetime) -> datetime:
    """Midnight on the first day of the month containing ``moment``."""
    return datetime(moment.year, moment.month, 1)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift a month-start datetime by ``months`` (negative goes back)."""
    index = moment.year * 12 + (moment.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1)


def parse_period(raw: Optional[str], default: Optional[Period] = Period.QUARTER) -> Period:
    """
    Normalise a raw period parameter.

    Args:
        raw: Caller-supplied value, case-insensitive; None or blank means absent
        default: Period used when raw is absent; None makes the period mandatory

    Returns:
        Parsed Period

    Raises:
        InvalidParameterError: Unknown value, or absent while mandatory
    """
    if raw is None or not str(raw).strip():
        if default is None:
            raise InvalidParameterError("period", "period is required for this request")
        return default

    value = str(raw).strip().lower()
    try:
        return Period(value)
    except ValueError:
        raise InvalidParameterError(
            "period", f"Invalid period '{raw}'. Must be one of: month, quarter, year"
        ) from None


def _coerce_period(period: Union[Period, str]) -> Period:
    if isinstance(period, Period):
        return period
    try:
        return Period(str(period).strip().lower())
    except ValueError:
        logger.warning("unknown_period_fallback", period=str(period), fallback=Period.QUARTER.value)
        return Period.QUARTER


def _monthly_segments(end: datetime, count: int) -> list[TimeSegment]:
    first = add_months(end, -count)
    segments = []
    for offset in range(count):
        start = add_months(first, offset)
        segments.append(
            TimeSegment(start=start, end=add_months(start, 1), label=start.strftime("%B %Y"))
        )
    return segments


def _quarterly_segments(end: datetime) -> list[TimeSegment]:
    first = add_months(end, -12)
    return [
        TimeSegment(
            start=add_months(first, q * 3),
            end=add_months(first, (q + 1) * 3),
            label=f"Q{q + 1}",
        )
        for q in range(4)
    ]


def build_segments(
    period: Union[Period, str],
    now: datetime,
    family: MetricFamily = MetricFamily.STATUS_TRANSITION,
) -> list[TimeSegment]:
    """
    Build the ordered reporting segments for a period.

    Args:
        period: month, quarter or year; unknown values fall back to quarter
        now: Reference time; its month is treated as in progress
        family: Metric family, which decides how a year is split

    Returns:
        Segments oldest first. month gives 1, quarter gives 3, year gives
        4 quarters for status transitions and 12 months for AI prefill.
    """
    resolved = _coerce_period(period)
    end = month_start(now)

    if resolved == Period.YEAR and family == MetricFamily.STATUS_TRANSITION:
        segments = _quarterly_segments(end)
    else:
        segments = _monthly_segments(end, WINDOW_MONTHS[resolved])

    logger.debug(
        "segments_built",
        period=resolved.value,
        family=family.value,
        count=len(segments),
        window_start=segments[0].start.isoformat(),
        window_end=segments[-1].end.isoformat(),
    )
    return segments


def period_window(period: Union[Period, str], now: datetime) -> tuple[datetime, datetime]:
    """Overall ``[start, end)`` covered by a period, ending at the current month start."""
    resolved = _coerce_period(period)
    end = month_start(now)
    return add_months(end, -WINDOW_MONTHS[resolved]), end
