"""
Abstract storage interface for the onboarding dashboard.

The dashboard only reads BRD snapshots and audit events owned by the BRD
system of record. Reads are exposed as async generators so a request can
stream records into the engine without holding a connection open across
the aggregation step. Write helpers exist for seeding and tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncIterator, Optional

from pydantic import BaseModel, Field

from onboarding_api.models.records import AuditEvent, BrdSnapshot


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class AuditEventCriteria(BaseModel):
    """
    Filter for audit event reads.

    Attributes:
        entity_type: Audited entity type
        entity_keys: Restrict to these entity keys (None means all)
        actions: Restrict to these audit actions (None means all)
        start: Inclusive lower bound on event_timestamp
        end: Exclusive upper bound on event_timestamp
    """

    entity_type: str = Field(default="BRD")
    entity_keys: Optional[list[str]] = None
    actions: Optional[list[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SnapshotCriteria(BaseModel):
    """
    Filter for BRD snapshot reads.

    Attributes:
        creator: Only snapshots created by this user (scope "me")
        statuses: Only these statuses
        exclude_statuses: Drop these statuses (open family excludes Submit)
        created_from: Inclusive lower bound on created_at
        created_to: Exclusive upper bound on created_at
        require_form_id: Drop snapshots without a non-blank brd_form_id
        require_ai_prefill_rate: Drop snapshots without an ai_prefill_rate
    """

    creator: Optional[str] = None
    statuses: Optional[list[str]] = None
    exclude_statuses: Optional[list[str]] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    require_form_id: bool = False
    require_ai_prefill_rate: bool = False

    def matches(self, snapshot: BrdSnapshot) -> bool:
        """In-memory evaluation of the criteria, used by non-SQL backends."""
        if self.creator is not None and snapshot.creator != self.creator:
            return False
        if self.statuses is not None and snapshot.status not in self.statuses:
            return False
        if self.exclude_statuses and snapshot.status in self.exclude_statuses:
            return False
        if self.created_from is not None or self.created_to is not None:
            if snapshot.created_at is None:
                return False
            if self.created_from is not None and snapshot.created_at < self.created_from:
                return False
            if self.created_to is not None and snapshot.created_at >= self.created_to:
                return False
        if self.require_form_id and not (snapshot.brd_form_id or "").strip():
            return False
        if self.require_ai_prefill_rate and snapshot.ai_prefill_rate is None:
            return False
        return True


def audit_event_matches(criteria: AuditEventCriteria, event: AuditEvent) -> bool:
    """In-memory evaluation of audit event criteria."""
    if event.entity_type != criteria.entity_type:
        return False
    if criteria.entity_keys is not None and event.entity_key not in criteria.entity_keys:
        return False
    if criteria.actions is not None and event.action not in criteria.actions:
        return False
    if criteria.start is not None and event.event_timestamp < criteria.start:
        return False
    if criteria.end is not None and event.event_timestamp >= criteria.end:
        return False
    return True


class StorageBackend(ABC):
    """
    Abstract base class for dashboard storage implementations.

    Implementations must raise StorageError for any failure to reach or
    query the underlying store; the dashboard service turns that into an
    "unavailable" response instead of returning partial metrics.
    """

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    def fetch_audit_events(self, criteria: AuditEventCriteria) -> AsyncIterator[AuditEvent]:
        """
        Stream audit events matching the criteria.

        Args:
            criteria: Entity type, keys, actions and time range filter

        Yields:
            AuditEvent records in no guaranteed order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def fetch_snapshots(self, criteria: SnapshotCriteria) -> AsyncIterator[BrdSnapshot]:
        """
        Stream BRD snapshots matching the criteria.

        Args:
            criteria: Creator, status and creation-time filter

        Yields:
            BrdSnapshot records ordered by created_at descending

        Raises:
            StorageError: If the read fails
        """
        pass

    # =========================================================================
    # Seeding
    # =========================================================================

    @abstractmethod
    def write_snapshots(self, snapshots: list[BrdSnapshot]) -> int:
        """Insert or replace snapshots; returns the number written."""
        pass

    @abstractmethod
    def write_audit_events(self, events: list[AuditEvent]) -> int:
        """Insert audit events, skipping duplicates; returns the number written."""
        pass

    @abstractmethod
    def health_check(self) -> dict:
        """Report backend reachability and record counts."""
        pass
