"""
Dashboard router: BRD metric cards for the onboarding dashboard.

Every endpoint is a thin wrapper over DashboardMetricsService. Invalid
parameters map to 400, storage outages to 503. The caller's username is
taken from the X-Username header and is only required for scope=me.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from onboarding_api.config import get_settings
from onboarding_api.engine import (
    DashboardError,
    DashboardMetricsService,
    InvalidParameterError,
    MetricsUnavailableError,
)
from onboarding_api.engine.clock import SystemClock
from onboarding_api.engine.dashboard_service import parse_scope, resolve_creator
from onboarding_api.engine.segments import parse_period
from onboarding_api.storage import get_storage
from onboarding_api.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_dashboard_service() -> DashboardMetricsService:
    settings = get_settings()
    return DashboardMetricsService(
        storage=get_storage(),
        clock=SystemClock(),
        weekly_weeks=settings.weekly_grid_weeks,
        default_period=parse_period(settings.default_period),
    )


def _envelope(message: str, data) -> dict:
    return {"success": True, "message": message, "data": data.model_dump(mode="json")}


def _raise_http(operation: str, error: DashboardError):
    if isinstance(error, InvalidParameterError):
        logger.warning(
            "dashboard_invalid_parameter",
            operation=operation,
            parameter=error.parameter,
            error=str(error),
        )
        raise HTTPException(status_code=400, detail=str(error)) from error
    if isinstance(error, MetricsUnavailableError):
        logger.error("dashboard_metrics_unavailable", operation=operation, error=str(error))
        raise HTTPException(status_code=503, detail=str(error)) from error
    raise error


@router.get("/brds-by-status")
async def get_open_brds_by_status(
    scope: str = Query("me"),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """Open BRD counts per lifecycle status."""
    logger.info("dashboard_brds_by_status", scope=scope, username=username)
    try:
        result = await service.open_brds_by_status(scope, username)
    except DashboardError as e:
        _raise_http("brds_by_status", e)
    return _envelope("Open BRDs by status retrieved successfully", result)


@router.get("/brds-by-vertical")
async def get_brds_by_vertical(
    scope: str = Query("me"),
    brd_scope: str = Query("open", alias="brdScope"),
    period: Optional[str] = Query(None),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """BRD counts and share per industry vertical. period is required for brdScope=all."""
    logger.info(
        "dashboard_brds_by_vertical", scope=scope, brd_scope=brd_scope, period=period
    )
    try:
        result = await service.brds_by_vertical(scope, brd_scope, period, username)
    except DashboardError as e:
        _raise_http("brds_by_vertical", e)
    return _envelope("BRDs by vertical retrieved successfully", result)


@router.get("/additional-factors")
async def get_additional_factors(
    scope: str = Query("me"),
    brd_scope: str = Query("open", alias="brdScope"),
    period: Optional[str] = Query(None),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """Walletron and ACH yes/no statistics."""
    logger.info(
        "dashboard_additional_factors", scope=scope, brd_scope=brd_scope, period=period
    )
    try:
        result = await service.additional_factors(scope, brd_scope, period, username)
    except DashboardError as e:
        _raise_http("additional_factors", e)
    return _envelope("Additional factors retrieved successfully", result)


@router.get("/brds/snapshot/metrics")
async def get_brd_snapshot_metrics(
    scope: str = Query("me"),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    logger.info("dashboard_snapshot_metrics", scope=scope)
    try:
        result = await service.brd_snapshot_metrics(scope, username)
    except DashboardError as e:
        _raise_http("snapshot_metrics", e)
    return _envelope("BRD snapshot metrics retrieved successfully", result)


@router.get("/ai-prefill-accuracy")
async def get_ai_prefill_accuracy(
    scope: str = Query("me"),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    logger.info("dashboard_ai_prefill_accuracy", scope=scope)
    try:
        result = await service.ai_prefill_accuracy(scope, username)
    except DashboardError as e:
        _raise_http("ai_prefill_accuracy", e)
    return _envelope("AI prefill accuracy retrieved successfully", result)


@router.get("/average-status-transitions")
async def get_average_status_transitions(
    period: Optional[str] = Query(None),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """
    Average days per lifecycle transition for each segment of the period.

    month returns the previous month, quarter the last three months and
    year the last four quarters. The trend is null for segments without
    any transition.
    """
    logger.info("dashboard_average_status_transitions", period=period)
    try:
        result = await service.average_status_transition_time(period)
    except DashboardError as e:
        _raise_http("average_status_transitions", e)
    return _envelope("Average status transition times retrieved successfully", result)


@router.get("/ai-pre-fill-rate")
async def get_ai_prefill_rate(
    period: Optional[str] = Query(None),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """Average AI prefill rate per month of the period."""
    logger.info("dashboard_ai_prefill_rate", period=period)
    try:
        result = await service.ai_prefill_rate_over_time(period)
    except DashboardError as e:
        _raise_http("ai_prefill_rate", e)
    return _envelope("AI prefill rate retrieved successfully", result)


@router.get("/brd-counts-by-type")
async def get_brd_counts_by_type(
    scope: str = Query("me"),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """Weekly BRD creation counts by type over the trailing week grid."""
    logger.info("dashboard_brd_counts_by_type", scope=scope)
    try:
        result = await service.brd_counts_by_type(scope, username)
    except DashboardError as e:
        _raise_http("brd_counts_by_type", e)
    return _envelope("BRD counts by type retrieved successfully", result)


@router.get("/brd-upload-metrics")
async def get_brd_upload_metrics(
    upload_filter: str = Query(..., alias="filter"),
    scope: str = Query("me"),
    username: Optional[str] = Header(None, alias="X-Username"),
    service: DashboardMetricsService = Depends(get_dashboard_service),
):
    """SSD and contract upload coverage; the weekly grid is included for filter=ALL."""
    logger.info("dashboard_brd_upload_metrics", upload_filter=upload_filter, scope=scope)
    try:
        creator = resolve_creator(parse_scope(scope), username)
        result = await service.brd_upload_metrics(upload_filter, creator)
    except DashboardError as e:
        _raise_http("brd_upload_metrics", e)
    return _envelope("BRD upload metrics retrieved successfully", result)
