"""
Pydantic v2 data models for the onboarding dashboard.

Model Organization:
    - enums: Status chain, periods, scopes and filters
    - records: Read-only upstream records (BrdSnapshot, AuditEvent)
    - dashboard: Derived aggregation values and API response contracts

Usage:
    >>> from onboarding_api.models import AuditEvent, BrdStatus
    >>> event = AuditEvent(
    ...     entity_key="FORM-1001",
    ...     action="STATUS_UPDATE",
    ...     event_timestamp=datetime(2023, 5, 3, 14, 0),
    ...     new_values={"status": BrdStatus.IN_PROGRESS.value},
    ... )
"""

from .enums import (
    AuditAction,
    BrdScope,
    BrdStatus,
    BrdType,
    MetricFamily,
    Period,
    Scope,
    UploadFilter,
)
from .records import AuditEvent, BrdSnapshot
from .dashboard import (
    AdditionalFactorsResponse,
    AiPrefillAccuracyResponse,
    AiPrefillRateResponse,
    BrdSnapshotMetricsResponse,
    BrdStatusCountResponse,
    BrdTypeCountResponse,
    BrdUploadMetricsResponse,
    BrdVerticalCountResponse,
    FactorStats,
    PeriodMetrics,
    PrefillSegment,
    PrefillTrendPoint,
    SnapshotMetrics,
    StatusCount,
    StatusTransitionTimeResponse,
    TimeSegment,
    TransitionSample,
    TrendPoint,
    TypeMetrics,
    UploadMetrics,
    VerticalCount,
    WeeklyCounts,
    WeeklyTypeCounts,
)

__all__ = [
    # Enumerations
    "AuditAction",
    "BrdScope",
    "BrdStatus",
    "BrdType",
    "MetricFamily",
    "Period",
    "Scope",
    "UploadFilter",
    # Records
    "AuditEvent",
    "BrdSnapshot",
    # Derived values
    "PeriodMetrics",
    "TimeSegment",
    "TransitionSample",
    "TrendPoint",
    "WeeklyCounts",
    "WeeklyTypeCounts",
    # Responses
    "AdditionalFactorsResponse",
    "AiPrefillAccuracyResponse",
    "AiPrefillRateResponse",
    "BrdSnapshotMetricsResponse",
    "BrdStatusCountResponse",
    "BrdTypeCountResponse",
    "BrdUploadMetricsResponse",
    "BrdVerticalCountResponse",
    "FactorStats",
    "PrefillSegment",
    "PrefillTrendPoint",
    "SnapshotMetrics",
    "StatusCount",
    "StatusTransitionTimeResponse",
    "TypeMetrics",
    "UploadMetrics",
    "VerticalCount",
]
