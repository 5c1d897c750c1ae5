"""
Dashboard Metrics Service: per-request orchestration of the dashboard cards.

Validates request parameters, pulls snapshots and audit events through the
storage contract, runs them through the engine pieces (dedup, segments,
transition reconstruction, aggregation, weekly grid) and assembles the
response models. Each call builds its own accumulators; nothing is shared
between requests.
"""

import math
from collections import Counter
from typing import AsyncIterator, Optional, TypeVar, Union

import structlog

from onboarding_api.models.dashboard import (
    AdditionalFactorsResponse,
    AiPrefillAccuracyResponse,
    AiPrefillRateResponse,
    BrdSnapshotMetricsResponse,
    BrdStatusCountResponse,
    BrdTypeCountResponse,
    BrdUploadMetricsResponse,
    BrdVerticalCountResponse,
    FactorStats,
    PrefillSegment,
    PrefillTrendPoint,
    SnapshotMetrics,
    StatusCount,
    StatusTransitionTimeResponse,
    TypeMetrics,
    UploadMetrics,
    VerticalCount,
)
from onboarding_api.models.enums import (
    BrdScope,
    BrdStatus,
    BrdType,
    MetricFamily,
    Period,
    Scope,
    UploadFilter,
)
from onboarding_api.models.records import BrdSnapshot
from onboarding_api.storage.base import (
    AuditEventCriteria,
    SnapshotCriteria,
    StorageBackend,
    StorageError,
)

from .aggregation import aggregate_by_segment, blend_trend
from .clock import Clock, SystemClock
from .dedup import deduplicate_snapshots
from .errors import InvalidParameterError, MetricsUnavailableError
from .segments import build_segments, parse_period, period_window
from .transitions import TransitionReconstructor
from .weekly_grid import DEFAULT_WEEKS, WeeklyGridComputer, weekly_category

logger = structlog.get_logger()

T = TypeVar("T")

SUBMITTED_STATUS = BrdStatus.SUBMITTED.value
OPEN_STATUSES = [status.value for status in BrdStatus if status != BrdStatus.SUBMITTED]
OTHER_VERTICAL = "Other"


# =============================================================================
# Parameter parsing
# =============================================================================


def parse_scope(raw: Union[Scope, str, None]) -> Scope:
    if raw is None:
        return Scope.ME
    try:
        return Scope(str(raw.value if isinstance(raw, Scope) else raw).strip().lower())
    except ValueError:
        raise InvalidParameterError("scope", f"Invalid scope '{raw}'. Must be one of: me, team") from None


def parse_brd_scope(raw: Union[BrdScope, str, None]) -> BrdScope:
    if raw is None:
        return BrdScope.OPEN
    try:
        return BrdScope(str(raw.value if isinstance(raw, BrdScope) else raw).strip().lower())
    except ValueError:
        raise InvalidParameterError(
            "brdScope", f"Invalid brdScope '{raw}'. Must be one of: open, all"
        ) from None


def parse_upload_filter(raw: Union[UploadFilter, str, None]) -> UploadFilter:
    if raw is None:
        raise InvalidParameterError("filter", "Invalid filter. Must be one of: OPEN, ALL")
    try:
        return UploadFilter(str(raw.value if isinstance(raw, UploadFilter) else raw).strip().upper())
    except ValueError:
        raise InvalidParameterError("filter", "Invalid filter. Must be one of: OPEN, ALL") from None


def resolve_creator(scope: Scope, username: Optional[str]) -> Optional[str]:
    """Creator filter for a scope; ``me`` requires a username."""
    if scope == Scope.TEAM:
        return None
    if not username or not username.strip():
        raise InvalidParameterError("username", "A username is required for scope 'me'")
    return username.strip()


# =============================================================================
# Pure helpers
# =============================================================================


def whole_percentage(count: int, total: int) -> float:
    """Percentage rounded half-up to a whole number; 0 when total is 0."""
    if total <= 0:
        return 0.0
    return float(math.floor(count * 100.0 / total + 0.5))


def vertical_name(snapshot: BrdSnapshot) -> str:
    raw = snapshot.industry_vertical
    if raw is None or not raw.strip() or raw.strip().lower() == "null":
        return OTHER_VERTICAL
    return raw.strip()


def factor_stats(yes_count: int, no_count: int) -> FactorStats:
    total = yes_count + no_count
    return FactorStats(
        yes_count=yes_count,
        no_count=no_count,
        yes_percentage=whole_percentage(yes_count, total),
        no_percentage=whole_percentage(no_count, total),
    )


def type_metrics(snapshots: list[BrdSnapshot], uploaded: int) -> TypeMetrics:
    """Upload split for one BRD category; percentages are floored, not-uploaded fills to 100."""
    total = len(snapshots)
    uploaded_percentage = (uploaded * 100) // total if total else 0
    return TypeMetrics(
        total_count=total,
        uploaded_count=uploaded,
        uploaded_percentage=uploaded_percentage,
        not_uploaded_count=total - uploaded,
        not_uploaded_percentage=100 - uploaded_percentage if total else 0,
    )


def upload_metrics(snapshots: list[BrdSnapshot], has_upload) -> UploadMetrics:
    new_brds = [s for s in snapshots if weekly_category(s) == BrdType.NEW]
    update_brds = [s for s in snapshots if weekly_category(s) == BrdType.UPDATE]
    return UploadMetrics(
        new_brds=type_metrics(new_brds, sum(1 for s in new_brds if has_upload(s))),
        update_brds=type_metrics(update_brds, sum(1 for s in update_brds if has_upload(s))),
    )


class DashboardMetricsService:
    """
    Facade over the dashboard engine.

    Every public method is a coroutine whose only suspension points are the
    storage fetches. A storage failure aborts the whole call with
    MetricsUnavailableError; partial metrics are never returned.
    """

    def __init__(
        self,
        storage: StorageBackend,
        clock: Optional[Clock] = None,
        weekly_weeks: int = DEFAULT_WEEKS,
        default_period: Period = Period.QUARTER,
    ):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.weekly_weeks = weekly_weeks
        self.default_period = default_period
        self.logger = structlog.get_logger()

    # =========================================================================
    # Storage access
    # =========================================================================

    async def _collect(self, records: AsyncIterator[T], source: str) -> list[T]:
        try:
            return [record async for record in records]
        except StorageError as e:
            self.logger.error("dashboard_fetch_failed", source=source, error=str(e))
            raise MetricsUnavailableError(f"Unable to load {source}: {e}") from e

    async def _snapshots(self, criteria: SnapshotCriteria) -> list[BrdSnapshot]:
        """Snapshots matching the criteria, one per BRD form id."""
        snapshots = await self._collect(self.storage.fetch_snapshots(criteria), "BRD snapshots")
        return deduplicate_snapshots(snapshots)

    # =========================================================================
    # Status and composition cards
    # =========================================================================

    async def open_brds_by_status(
        self, scope: Union[Scope, str, None], username: Optional[str]
    ) -> BrdStatusCountResponse:
        """Count open BRDs in each non-submitted status, in lifecycle order."""
        resolved = parse_scope(scope)
        creator = resolve_creator(resolved, username)

        snapshots = await self._snapshots(
            SnapshotCriteria(creator=creator, statuses=OPEN_STATUSES)
        )
        counts = Counter(snapshot.status for snapshot in snapshots)

        self.logger.info(
            "open_brds_by_status_computed", scope=resolved.value, brds=len(snapshots)
        )
        return BrdStatusCountResponse(
            scope=resolved.value,
            loggedin_pm=creator,
            brd_status_counts=[
                StatusCount(status=status, count=counts.get(status, 0)) for status in OPEN_STATUSES
            ],
        )

    def _composition_criteria(
        self,
        scope: Union[Scope, str, None],
        brd_scope: Union[BrdScope, str, None],
        period: Optional[str],
        username: Optional[str],
    ) -> tuple[Scope, BrdScope, Optional[Period], Optional[str], SnapshotCriteria]:
        resolved_scope = parse_scope(scope)
        resolved_brd_scope = parse_brd_scope(brd_scope)
        creator = resolve_creator(resolved_scope, username)

        if resolved_brd_scope == BrdScope.ALL:
            resolved_period: Optional[Period] = parse_period(period, default=None)
        elif period is not None and str(period).strip():
            resolved_period = parse_period(period)
        else:
            resolved_period = None

        criteria = SnapshotCriteria(
            creator=creator,
            exclude_statuses=[SUBMITTED_STATUS] if resolved_brd_scope == BrdScope.OPEN else None,
            require_form_id=True,
        )
        if resolved_period is not None:
            start, end = period_window(resolved_period, self.clock.now())
            criteria = criteria.model_copy(update={"created_from": start, "created_to": end})

        return resolved_scope, resolved_brd_scope, resolved_period, creator, criteria

    async def brds_by_vertical(
        self,
        scope: Union[Scope, str, None],
        brd_scope: Union[BrdScope, str, None],
        period: Optional[str],
        username: Optional[str],
    ) -> BrdVerticalCountResponse:
        """Deduplicated BRD counts per industry vertical with whole-number shares."""
        resolved_scope, resolved_brd_scope, resolved_period, creator, criteria = (
            self._composition_criteria(scope, brd_scope, period, username)
        )

        unique = await self._snapshots(criteria)
        counts = Counter(vertical_name(snapshot) for snapshot in unique)
        total = len(unique)

        vertical_counts = sorted(
            (
                VerticalCount(
                    vertical=vertical, brd_count=count, percentage=whole_percentage(count, total)
                )
                for vertical, count in counts.items()
            ),
            key=lambda item: (-item.brd_count, item.vertical),
        )

        self.logger.info(
            "brds_by_vertical_computed",
            scope=resolved_scope.value,
            brd_scope=resolved_brd_scope.value,
            brds=total,
            verticals=len(vertical_counts),
        )
        return BrdVerticalCountResponse(
            scope=resolved_scope.value,
            brd_scope=resolved_brd_scope.value,
            period=resolved_period.value if resolved_period else None,
            loggedin_pm=creator,
            vertical_counts=vertical_counts,
        )

    async def additional_factors(
        self,
        scope: Union[Scope, str, None],
        brd_scope: Union[BrdScope, str, None],
        period: Optional[str],
        username: Optional[str],
    ) -> AdditionalFactorsResponse:
        """Walletron and ACH yes/no split over deduplicated BRDs."""
        resolved_scope, resolved_brd_scope, resolved_period, creator, criteria = (
            self._composition_criteria(scope, brd_scope, period, username)
        )

        unique = await self._snapshots(criteria)
        walletron_yes = sum(1 for snapshot in unique if snapshot.walletron_included)
        ach_yes = sum(1 for snapshot in unique if snapshot.ach_encrypted)

        return AdditionalFactorsResponse(
            scope=resolved_scope.value,
            brd_scope=resolved_brd_scope.value,
            period=resolved_period.value if resolved_period else None,
            loggedin_pm=creator,
            walletron=factor_stats(walletron_yes, len(unique) - walletron_yes),
            ach_form=factor_stats(ach_yes, len(unique) - ach_yes),
        )

    async def brd_snapshot_metrics(
        self, scope: Union[Scope, str, None], username: Optional[str]
    ) -> BrdSnapshotMetricsResponse:
        resolved = parse_scope(scope)
        creator = resolve_creator(resolved, username)

        snapshots = await self._snapshots(SnapshotCriteria(creator=creator))
        return BrdSnapshotMetricsResponse(
            scope=resolved.value,
            snapshot_metrics=SnapshotMetrics(
                total_brds=len(snapshots),
                open_brds=sum(1 for s in snapshots if s.status != SUBMITTED_STATUS),
                walletron_enabled_brds=sum(1 for s in snapshots if s.walletron_included),
            ),
        )

    async def ai_prefill_accuracy(
        self, scope: Union[Scope, str, None], username: Optional[str]
    ) -> AiPrefillAccuracyResponse:
        """Sum of known prefill rates spread over every BRD in scope."""
        resolved = parse_scope(scope)
        creator = resolve_creator(resolved, username)

        snapshots = await self._snapshots(SnapshotCriteria(creator=creator))
        if not snapshots:
            return AiPrefillAccuracyResponse(ai_prefill_accuracy=0.0)

        total_rate = sum(s.ai_prefill_rate for s in snapshots if s.ai_prefill_rate is not None)
        return AiPrefillAccuracyResponse(ai_prefill_accuracy=round(total_rate / len(snapshots), 2))

    # =========================================================================
    # Period-based trends
    # =========================================================================

    async def average_status_transition_time(
        self, period: Union[Period, str, None]
    ) -> StatusTransitionTimeResponse:
        """
        Average days spent in each lifecycle step, per segment, plus a blended trend.

        BRDs created inside the reporting window are the population; their
        audit events within the window are replayed into transition samples
        and each sample is counted in the segment where it completed.
        """
        resolved = period if isinstance(period, Period) else parse_period(period, self.default_period)
        segments = build_segments(resolved, self.clock.now(), MetricFamily.STATUS_TRANSITION)
        window_start, window_end = segments[0].start, segments[-1].end

        snapshots = await self._snapshots(
            SnapshotCriteria(
                created_from=window_start, created_to=window_end, require_form_id=True
            )
        )
        entity_keys = [snapshot.brd_form_id for snapshot in snapshots]

        samples = []
        if entity_keys:
            events = await self._collect(
                self.storage.fetch_audit_events(
                    AuditEventCriteria(entity_keys=entity_keys, start=window_start, end=window_end)
                ),
                "audit events",
            )
            samples = TransitionReconstructor().reconstruct_all(events)

        period_metrics = aggregate_by_segment(samples, segments)
        trend = blend_trend(period_metrics)

        self.logger.info(
            "status_transition_time_computed",
            period=resolved.value,
            segments=len(segments),
            entities=len(entity_keys),
            samples=len(samples),
        )
        return StatusTransitionTimeResponse(
            period=resolved.value, segments=period_metrics, trend=trend
        )

    async def ai_prefill_rate_over_time(
        self, period: Union[Period, str, None]
    ) -> AiPrefillRateResponse:
        """Average AI prefill rate of BRDs created in each monthly segment."""
        resolved = period if isinstance(period, Period) else parse_period(period, self.default_period)
        segments = build_segments(resolved, self.clock.now(), MetricFamily.AI_PREFILL)

        snapshots = await self._snapshots(
            SnapshotCriteria(
                created_from=segments[0].start,
                created_to=segments[-1].end,
                require_form_id=True,
                require_ai_prefill_rate=True,
            )
        )

        sums = [0.0] * len(segments)
        counts = [0] * len(segments)
        for snapshot in snapshots:
            for index, segment in enumerate(segments):
                if segment.contains(snapshot.created_at):
                    sums[index] += snapshot.ai_prefill_rate
                    counts[index] += 1
                    break

        prefill_segments = [
            PrefillSegment(
                label=segment.label,
                average_prefill_rate=round(sums[i] / counts[i], 2) if counts[i] else 0.0,
                brd_count=counts[i],
            )
            for i, segment in enumerate(segments)
        ]
        return AiPrefillRateResponse(
            period=resolved.value,
            segments=prefill_segments,
            trend=[
                PrefillTrendPoint(label=s.label, prefill_rate=s.average_prefill_rate)
                for s in prefill_segments
            ],
        )

    # =========================================================================
    # Weekly grids
    # =========================================================================

    async def brd_counts_by_type(
        self, scope: Union[Scope, str, None], username: Optional[str]
    ) -> BrdTypeCountResponse:
        resolved = parse_scope(scope)
        creator = resolve_creator(resolved, username)
        grid = WeeklyGridComputer(self.clock, self.weekly_weeks)
        start, end = grid.window()

        snapshots = await self._snapshots(
            SnapshotCriteria(creator=creator, created_from=start, created_to=end)
        )
        return BrdTypeCountResponse(
            scope=resolved.value, weekly_metrics=grid.compute_type_counts(snapshots)
        )

    async def brd_upload_metrics(
        self, upload_filter: Union[UploadFilter, str, None], username: Optional[str]
    ) -> BrdUploadMetricsResponse:
        """
        SSD and contract upload coverage, split NEW/UPDATE.

        A username narrows the population to that creator. The weekly grid
        is only attached for the ALL filter.
        """
        resolved = parse_upload_filter(upload_filter)
        creator = username.strip() if username and username.strip() else None

        snapshots = await self._snapshots(
            SnapshotCriteria(
                creator=creator,
                exclude_statuses=[SUBMITTED_STATUS] if resolved == UploadFilter.OPEN else None,
            )
        )

        weekly = None
        if resolved == UploadFilter.ALL:
            weekly = WeeklyGridComputer(self.clock, self.weekly_weeks).compute_upload_counts(
                snapshots
            )

        self.logger.info(
            "brd_upload_metrics_computed",
            filter=resolved.value,
            creator=creator,
            brds=len(snapshots),
        )
        return BrdUploadMetricsResponse(
            filter_type=resolved.value,
            scope="ME" if creator else "TEAM",
            ssd_uploads=upload_metrics(snapshots, lambda s: s.has_ssd_upload),
            contract_uploads=upload_metrics(snapshots, lambda s: s.has_contract_upload),
            weekly_metrics=weekly,
        )
