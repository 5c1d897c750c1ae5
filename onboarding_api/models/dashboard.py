"""
Dashboard data models: derived values and API response contracts.

Derived values (TimeSegment, TransitionSample, PeriodMetrics, TrendPoint,
WeeklyCounts) are built fresh inside one aggregation call and never stored.
Response models wrap them for the HTTP layer.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Derived values
# =============================================================================


class TimeSegment(BaseModel):
    """
    One calendar-aligned reporting bucket.

    ``start`` is inclusive and ``end`` is exclusive, so consecutive segments
    share a boundary without overlapping.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    label: str

    @model_validator(mode="after")
    def validate_bounds(self) -> "TimeSegment":
        if self.end <= self.start:
            raise ValueError("Segment end must be after its start")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class TransitionSample(BaseModel):
    """Time one BRD spent moving between two neighbouring statuses."""

    model_config = ConfigDict(frozen=True)

    entity_key: str
    from_status: str
    to_status: str
    elapsed_days: float = Field(ge=0.0)
    completed_at: datetime = Field(
        description="Timestamp of the event that entered to_status"
    )


class PeriodMetrics(BaseModel):
    """Average days per transition type for one segment."""

    label: str
    averages: dict[str, float]


class TrendPoint(BaseModel):
    """
    Blended trend value for one segment.

    ``blended_average`` is None when no transition happened in the segment,
    which is different from a segment whose transitions averaged to zero.
    """

    label: str
    blended_average: Optional[float] = None


class WeeklyCounts(BaseModel):
    """
    Upload counts on a fixed backward-looking week grid.

    Every list has one slot per week; index 0 is the most recent complete
    week.
    """

    weeks: list[str]
    total_new: list[int]
    total_update: list[int]
    ssd_new: list[int]
    ssd_update: list[int]
    contract_new: list[int]
    contract_update: list[int]


class WeeklyTypeCounts(BaseModel):
    """BRD creation counts by type on the same week grid as WeeklyCounts."""

    weeks: list[str]
    new_counts: list[int]
    update_counts: list[int]
    triage_counts: list[int]
    total_counts: list[int]


# =============================================================================
# Response contracts
# =============================================================================


class StatusCount(BaseModel):
    status: str
    count: int


class BrdStatusCountResponse(BaseModel):
    scope: str
    loggedin_pm: Optional[str] = None
    brd_status_counts: list[StatusCount]


class VerticalCount(BaseModel):
    vertical: str
    brd_count: int
    percentage: float


class BrdVerticalCountResponse(BaseModel):
    scope: str
    brd_scope: str
    period: Optional[str] = None
    loggedin_pm: Optional[str] = None
    vertical_counts: list[VerticalCount]


class FactorStats(BaseModel):
    yes_count: int = 0
    no_count: int = 0
    yes_percentage: float = 0.0
    no_percentage: float = 0.0


class AdditionalFactorsResponse(BaseModel):
    scope: str
    brd_scope: str
    period: Optional[str] = None
    loggedin_pm: Optional[str] = None
    walletron: FactorStats
    ach_form: FactorStats


class SnapshotMetrics(BaseModel):
    total_brds: int
    open_brds: int
    walletron_enabled_brds: int


class BrdSnapshotMetricsResponse(BaseModel):
    scope: str
    snapshot_metrics: SnapshotMetrics


class AiPrefillAccuracyResponse(BaseModel):
    ai_prefill_accuracy: float


class StatusTransitionTimeResponse(BaseModel):
    """Per-segment transition averages plus the blended trend line."""

    period: str
    segments: list[PeriodMetrics]
    trend: list[TrendPoint]


class PrefillSegment(BaseModel):
    label: str
    average_prefill_rate: float
    brd_count: int


class PrefillTrendPoint(BaseModel):
    label: str
    prefill_rate: float


class AiPrefillRateResponse(BaseModel):
    period: str
    segments: list[PrefillSegment]
    trend: list[PrefillTrendPoint]


class BrdTypeCountResponse(BaseModel):
    scope: str
    weekly_metrics: WeeklyTypeCounts


class TypeMetrics(BaseModel):
    total_count: int
    uploaded_count: int
    uploaded_percentage: int
    not_uploaded_count: int
    not_uploaded_percentage: int


class UploadMetrics(BaseModel):
    new_brds: TypeMetrics
    update_brds: TypeMetrics


class BrdUploadMetricsResponse(BaseModel):
    filter_type: str
    scope: str
    ssd_uploads: UploadMetrics
    contract_uploads: UploadMetrics
    weekly_metrics: Optional[WeeklyCounts] = None
