"""
Golden path tests for the dashboard metrics pipeline.

Each scenario runs a fixed dataset through DashboardMetricsService end to
end (storage fetch, dedup, reconstruction, aggregation, trend) and checks
the exact figures a dashboard user would see.
"""

import asyncio
from datetime import datetime

import pytest

from onboarding_api.engine.dashboard_service import DashboardMetricsService
from onboarding_api.engine.transitions import TRANSITION_KEYS
from onboarding_api.models.enums import BrdStatus
from tests.conftest import (
    MockStorage,
    make_snapshot,
    make_status_trail,
    worked_example,
)

DRAFT_TO_PROGRESS = "Draft ➔ In Progress"
PROGRESS_TO_EDIT = "In Progress ➔ Edit Complete"


# ============================================================================
# Scenario 1: Worked example, two BRDs in May 2023
# ============================================================================


class TestWorkedExample:
    """A: 2.17d then 3.79d. B: 3.21d then 2.75d. All inside May 2023."""

    def test_month_averages_and_blend(self, worked_storage, fixed_clock):
        service = DashboardMetricsService(storage=worked_storage, clock=fixed_clock)
        result = asyncio.run(service.average_status_transition_time("month"))

        assert len(result.segments) == 1
        may = result.segments[0]
        assert may.label == "May 2023"
        assert may.averages[DRAFT_TO_PROGRESS] == pytest.approx(2.7, abs=0.1)
        assert may.averages[PROGRESS_TO_EDIT] == pytest.approx(3.3, abs=0.1)
        for key in TRANSITION_KEYS:
            if key not in (DRAFT_TO_PROGRESS, PROGRESS_TO_EDIT):
                assert may.averages[key] == 0.0

        assert result.trend[0].label == "May 2023"
        assert result.trend[0].blended_average == pytest.approx(3.0, abs=0.1)

    def test_quarter_places_data_in_last_segment(self, worked_storage, fixed_clock):
        service = DashboardMetricsService(storage=worked_storage, clock=fixed_clock)
        result = asyncio.run(service.average_status_transition_time("quarter"))

        assert [p.label for p in result.trend] == ["March 2023", "April 2023", "May 2023"]
        assert result.trend[0].blended_average is None
        assert result.trend[1].blended_average is None
        assert result.trend[2].blended_average == pytest.approx(3.0, abs=0.1)

    def test_year_uses_quarters(self, worked_storage, fixed_clock):
        service = DashboardMetricsService(storage=worked_storage, clock=fixed_clock)
        result = asyncio.run(service.average_status_transition_time("YEAR"))

        assert result.period == "year"
        assert [s.label for s in result.segments] == ["Q1", "Q2", "Q3", "Q4"]
        # Q4 covers March-May 2023
        assert result.segments[3].averages[DRAFT_TO_PROGRESS] == pytest.approx(2.7, abs=0.1)
        assert result.trend[0].blended_average is None

    def test_output_is_byte_identical_across_runs(self, worked_storage, fixed_clock):
        service = DashboardMetricsService(storage=worked_storage, clock=fixed_clock)
        first = asyncio.run(service.average_status_transition_time("quarter"))
        second = asyncio.run(service.average_status_transition_time("quarter"))
        assert first.model_dump_json() == second.model_dump_json()


# ============================================================================
# Scenario 2: Skip transitions are never measured
# ============================================================================


class TestSkipScenario:
    def test_draft_to_edit_complete_yields_nothing(self, mock_storage, fixed_clock):
        start = datetime(2023, 5, 4, 9, 0)
        mock_storage.write_snapshots([make_snapshot(brd_form_id="SKIP-1", created_at=start)])
        mock_storage.write_audit_events(
            make_status_trail(
                "SKIP-1",
                start,
                [(BrdStatus.DRAFT.value, 0), (BrdStatus.EDIT_COMPLETE.value, 4.0)],
            )
        )
        service = DashboardMetricsService(storage=mock_storage, clock=fixed_clock)
        result = asyncio.run(service.average_status_transition_time("month"))

        averages = result.segments[0].averages
        assert "Draft ➔ Edit Complete" not in averages
        assert set(averages.values()) == {0.0}
        assert result.trend[0].blended_average is None


# ============================================================================
# Scenario 3: No data at all
# ============================================================================


class TestZeroData:
    @pytest.mark.parametrize("period,expected", [("month", 1), ("quarter", 3), ("year", 4)])
    def test_every_segment_present(self, service, period, expected):
        result = asyncio.run(service.average_status_transition_time(period))
        assert len(result.segments) == expected
        assert len(result.trend) == expected
        for segment in result.segments:
            assert len(segment.averages) == 7
            assert set(segment.averages.values()) == {0.0}
        assert all(point.blended_average is None for point in result.trend)

    def test_blended_null_serializes_as_null(self, service):
        result = asyncio.run(service.average_status_transition_time("month"))
        payload = result.model_dump(mode="json")
        assert payload["trend"][0]["blended_average"] is None

    def test_prefill_year_has_twelve_empty_months(self, service):
        result = asyncio.run(service.ai_prefill_rate_over_time("year"))
        assert len(result.segments) == 12
        assert all(s.brd_count == 0 and s.average_prefill_rate == 0.0 for s in result.segments)


# ============================================================================
# Scenario 4: Duplicate snapshots count once downstream
# ============================================================================


class TestDuplicateSnapshots:
    def test_duplicates_do_not_double_count(self, fixed_clock):
        storage = MockStorage()
        snapshots, events = worked_example()
        duplicate = snapshots[0].model_copy(update={"brd_id": "A-copy"})
        storage.write_snapshots(snapshots + [duplicate])
        storage.write_audit_events(events)

        service = DashboardMetricsService(storage=storage, clock=fixed_clock)
        result = asyncio.run(service.average_status_transition_time("month"))

        assert sorted(storage.event_queries[0].entity_keys) == ["BRD-001", "BRD-002"]
        assert result.segments[0].averages[DRAFT_TO_PROGRESS] == pytest.approx(2.7, abs=0.1)

        verticals = asyncio.run(service.brds_by_vertical("team", "all", "month", None))
        assert sum(v.brd_count for v in verticals.vertical_counts) == 2

    def test_prefill_duplicates_count_once(self, fixed_clock):
        storage = MockStorage()
        original = make_snapshot(
            brd_form_id="FORM-P", created_at=datetime(2023, 5, 2), ai_prefill_rate=90.0
        )
        storage.write_snapshots(
            [original, original.model_copy(update={"brd_id": "copy", "ai_prefill_rate": 10.0})]
        )
        service = DashboardMetricsService(storage=storage, clock=fixed_clock)
        result = asyncio.run(service.ai_prefill_rate_over_time("month"))

        assert result.segments[0].brd_count == 1
        assert result.segments[0].average_prefill_rate == 90.0


# ============================================================================
# Scenario 5: Weekly upload grid
# ============================================================================


class TestWeeklyUploadGrid:
    def test_recent_and_stale_brds(self, mock_storage, fixed_clock):
        mock_storage.write_snapshots(
            [
                make_snapshot(
                    created_at=datetime(2023, 6, 8, 16, 30),
                    original_ssd_file_name="ssd.pdf",
                    original_contract_file_name="contract.pdf",
                ),
                make_snapshot(created_at=datetime(2023, 6, 1, 11, 0)),
                make_snapshot(created_at=datetime(2022, 3, 1, 11, 0)),
            ]
        )
        service = DashboardMetricsService(storage=mock_storage, clock=fixed_clock)
        result = asyncio.run(service.brd_upload_metrics("ALL", None))
        weekly = result.weekly_metrics

        assert weekly.weeks[0] == "Week 1"
        assert weekly.total_new[0] == 1
        assert weekly.ssd_new[0] == 1
        assert weekly.contract_new[0] == 1
        assert weekly.total_new[1] == 1
        assert sum(weekly.total_new) == 2
        assert sum(weekly.total_update) == 0

        assert result.ssd_uploads.new_brds.total_count == 3
        assert result.ssd_uploads.new_brds.uploaded_count == 1
        assert result.ssd_uploads.new_brds.uploaded_percentage == 33
        assert result.ssd_uploads.new_brds.not_uploaded_percentage == 67


# ============================================================================
# Scenario 6: Duplicate snapshots in the snapshot cards and weekly grids
# ============================================================================


class TestDuplicateSnapshotsAcrossCards:
    """FORM-X is stored twice; every card counts it once."""

    @pytest.fixture
    def duplicated_service(self, fixed_clock):
        storage = MockStorage()
        original = make_snapshot(
            brd_id="X",
            brd_form_id="FORM-X",
            created_at=datetime(2023, 6, 7, 12, 0),
            original_ssd_file_name="ssd.pdf",
            ai_prefill_rate=50.0,
        )
        other = make_snapshot(brd_form_id="FORM-Y", created_at=datetime(2023, 5, 2, 12, 0))
        storage.write_snapshots(
            [original, original.model_copy(update={"brd_id": "copy"}), other]
        )
        return DashboardMetricsService(storage=storage, clock=fixed_clock)

    def test_upload_metrics_and_grid(self, duplicated_service):
        result = asyncio.run(duplicated_service.brd_upload_metrics("ALL", None))

        assert result.weekly_metrics.total_new[0] == 1
        assert result.weekly_metrics.ssd_new[0] == 1
        assert result.ssd_uploads.new_brds.total_count == 2
        assert result.ssd_uploads.new_brds.uploaded_count == 1
        assert result.ssd_uploads.new_brds.uploaded_percentage == 50
        assert result.ssd_uploads.new_brds.not_uploaded_percentage == 50

    def test_counts_by_type_grid(self, duplicated_service):
        result = asyncio.run(duplicated_service.brd_counts_by_type("team", None))
        assert result.weekly_metrics.total_counts[0] == 1
        assert sum(result.weekly_metrics.total_counts) == 2

    def test_status_and_snapshot_cards(self, duplicated_service):
        statuses = asyncio.run(duplicated_service.open_brds_by_status("team", None))
        counts = {c.status: c.count for c in statuses.brd_status_counts}
        assert counts["Draft"] == 2

        metrics = asyncio.run(duplicated_service.brd_snapshot_metrics("team", None))
        assert metrics.snapshot_metrics.total_brds == 2
        assert metrics.snapshot_metrics.open_brds == 2

    def test_prefill_accuracy(self, duplicated_service):
        result = asyncio.run(duplicated_service.ai_prefill_accuracy("team", None))
        assert result.ai_prefill_accuracy == 25.0
