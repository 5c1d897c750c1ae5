"""
Pytest configuration and shared fixtures for the onboarding dashboard test suite.

Data factories, an in-memory async MockStorage, a frozen clock and reusable
fixtures shared by unit, golden, property-based and integration tests.
"""

import os
import tempfile
import uuid as _uuid
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing app
# Use temp path (must not exist - DuckDB creates the file).
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"onboarding_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path


from onboarding_api.engine.clock import FixedClock
from onboarding_api.engine.dashboard_service import DashboardMetricsService
from onboarding_api.models.enums import AuditAction, BrdStatus, BrdType
from onboarding_api.models.records import AuditEvent, BrdSnapshot
from onboarding_api.storage.base import (
    AuditEventCriteria,
    SnapshotCriteria,
    StorageBackend,
    StorageError,
    audit_event_matches,
)

# Mid-June 2023: month -> May, quarter -> Mar..May, year -> Jun 2022..May 2023
FIXED_NOW = datetime(2023, 6, 15, 10, 0, 0)


# ---------------------------------------------------------------------------
# Pydantic model factories
# ---------------------------------------------------------------------------


def make_snapshot(
    brd_id: Optional[str] = None,
    brd_form_id: Optional[str] = None,
    status: str = BrdStatus.DRAFT.value,
    created_at: Optional[datetime] = None,
    creator: str = "alex.pm",
    **overrides,
) -> BrdSnapshot:
    """Factory function for creating test BrdSnapshot objects."""
    suffix = uuid4().hex[:6]
    defaults = dict(
        brd_id=brd_id or f"BRD-{suffix}",
        brd_form_id=brd_form_id if brd_form_id is not None else f"FORM-{suffix}",
        brd_name="Test biller onboarding",
        status=status,
        created_at=created_at or datetime(2023, 5, 10, 9, 0),
        updated_at=None,
        creator=creator,
        brd_type=BrdType.NEW,
        industry_vertical="Healthcare",
        ai_prefill_rate=None,
        walletron_included=False,
        ach_encrypted=False,
        original_ssd_file_name=None,
        original_contract_file_name=None,
    )
    defaults.update(overrides)
    return BrdSnapshot(**defaults)


def make_audit_event(
    entity_key: str = "FORM-1",
    status: Optional[str] = BrdStatus.DRAFT.value,
    event_timestamp: Optional[datetime] = None,
    action: str = AuditAction.STATUS_UPDATE.value,
    **overrides,
) -> AuditEvent:
    """Factory function for creating test AuditEvent objects."""
    defaults = dict(
        entity_key=entity_key,
        action=action,
        event_timestamp=event_timestamp or datetime(2023, 5, 3, 14, 0),
        new_values={"status": status} if status is not None else {},
    )
    defaults.update(overrides)
    return AuditEvent(**defaults)


def make_status_trail(
    entity_key: str, start: datetime, steps: list[tuple[str, float]]
) -> list[AuditEvent]:
    """
    Build an audit trail from a start time and (status, days-after-previous) steps.

    The first step's offset is ignored; it is emitted at ``start`` as a CREATE.
    """
    events = []
    moment = start
    for position, (status, days) in enumerate(steps):
        if position:
            moment = moment + timedelta(days=days)
        events.append(
            make_audit_event(
                entity_key=entity_key,
                status=status,
                event_timestamp=moment,
                action=(AuditAction.CREATE if position == 0 else AuditAction.STATUS_UPDATE).value,
            )
        )
    return events


def worked_example():
    """
    Two BRDs moving Draft -> In Progress -> Edit Complete during May 2023.

    A takes 2.17 then 3.79 days, B takes 3.21 then 2.75 days, giving May
    averages of 2.7 and 3.3 and a blended value of 3.0.
    """
    start_a = datetime(2023, 5, 3, 14, 0)
    start_b = datetime(2023, 5, 10, 9, 0)
    events = make_status_trail(
        "BRD-001",
        start_a,
        [
            (BrdStatus.DRAFT.value, 0),
            (BrdStatus.IN_PROGRESS.value, 2.17),
            (BrdStatus.EDIT_COMPLETE.value, 3.79),
        ],
    ) + make_status_trail(
        "BRD-002",
        start_b,
        [
            (BrdStatus.DRAFT.value, 0),
            (BrdStatus.IN_PROGRESS.value, 3.21),
            (BrdStatus.EDIT_COMPLETE.value, 2.75),
        ],
    )
    snapshots = [
        make_snapshot(
            brd_id="A",
            brd_form_id="BRD-001",
            status=BrdStatus.EDIT_COMPLETE.value,
            created_at=start_a,
        ),
        make_snapshot(
            brd_id="B",
            brd_form_id="BRD-002",
            status=BrdStatus.EDIT_COMPLETE.value,
            created_at=start_b,
        ),
    ]
    return snapshots, events


# ---------------------------------------------------------------------------
# Mock storage
# ---------------------------------------------------------------------------


class MockStorage(StorageBackend):
    """
    In-memory storage for unit tests.

    Snapshots are returned in insertion order so tests control which
    duplicate is seen first. Setting ``fail`` makes every read raise
    StorageError part-way through iteration.
    """

    def __init__(self):
        self._snapshots: list[BrdSnapshot] = []
        self._events: list[AuditEvent] = []
        self.fail = False
        self.snapshot_queries: list[SnapshotCriteria] = []
        self.event_queries: list[AuditEventCriteria] = []

    async def fetch_audit_events(self, criteria):
        self.event_queries.append(criteria)
        if self.fail:
            raise StorageError("audit log unreachable")
        for event in self._events:
            if audit_event_matches(criteria, event):
                yield event

    async def fetch_snapshots(self, criteria):
        self.snapshot_queries.append(criteria)
        if self.fail:
            raise StorageError("snapshot store unreachable")
        for snapshot in self._snapshots:
            if criteria.matches(snapshot):
                yield snapshot

    def write_snapshots(self, snapshots):
        self._snapshots.extend(snapshots)
        return len(snapshots)

    def write_audit_events(self, events):
        self._events.extend(events)
        return len(events)

    def health_check(self):
        return {
            "status": "healthy",
            "backend": "memory",
            "brd_snapshots": len(self._snapshots),
            "audit_events": len(self._events),
        }


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_storage():
    """Fresh MockStorage instance for each test."""
    return MockStorage()


@pytest.fixture
def fixed_clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture
def service(mock_storage, fixed_clock):
    """DashboardMetricsService over MockStorage with the clock frozen at FIXED_NOW."""
    return DashboardMetricsService(storage=mock_storage, clock=fixed_clock)


@pytest.fixture
def worked_storage(mock_storage):
    """MockStorage loaded with the two-BRD worked example."""
    snapshots, events = worked_example()
    mock_storage.write_snapshots(snapshots)
    mock_storage.write_audit_events(events)
    return mock_storage


@pytest.fixture
def client():
    """FastAPI test client for integration tests."""
    from onboarding_api.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_headers():
    """Request headers identifying the logged-in PM."""
    return {
        "X-Username": "alex.pm",
        "X-Request-ID": str(uuid4()),
    }
