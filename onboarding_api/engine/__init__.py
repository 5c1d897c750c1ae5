"""
Dashboard metrics engine.

Pure, synchronous building blocks (segments, dedup, transition
reconstruction, aggregation, weekly grids) plus the async
DashboardMetricsService that wires them to storage per request.
"""

from .aggregation import aggregate_by_segment, blend_trend
from .clock import Clock, FixedClock, SystemClock
from .dashboard_service import DashboardMetricsService
from .dedup import deduplicate_snapshots
from .errors import DashboardError, InvalidParameterError, MetricsUnavailableError
from .segments import build_segments, parse_period, period_window
from .transitions import TRANSITION_KEYS, TransitionReconstructor, is_valid_transition
from .weekly_grid import WeeklyGridComputer, weekly_category

__all__ = [
    "Clock",
    "DashboardError",
    "DashboardMetricsService",
    "FixedClock",
    "InvalidParameterError",
    "MetricsUnavailableError",
    "SystemClock",
    "TRANSITION_KEYS",
    "TransitionReconstructor",
    "WeeklyGridComputer",
    "aggregate_by_segment",
    "blend_trend",
    "build_segments",
    "deduplicate_snapshots",
    "is_valid_transition",
    "parse_period",
    "period_window",
    "weekly_category",
]
