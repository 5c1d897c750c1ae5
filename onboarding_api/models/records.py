"""
Read-only record models consumed by the dashboard engine.

Both records are owned by the BRD system of record; the dashboard never
writes them back. Field names follow the upstream documents so storage
adapters can hydrate them without renaming.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .enums import BrdType

STATUS_FIELD = "status"


class AuditEvent(BaseModel):
    """
    Immutable audit log entry for a BRD.

    The status a BRD moved into is carried in ``new_values["status"]``. Events
    written by older clients may omit it; such events are skipped by the
    transition reconstructor rather than rejected here.

    Attributes:
        event_id: Unique identifier of the audit entry
        entity_type: Audited entity type (always "BRD" for this service)
        entity_key: Logical key of the audited BRD (its form id)
        action: Audit action, e.g. "CREATE" or "STATUS_UPDATE"
        event_timestamp: When the change happened
        new_values: Values written by the change
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    entity_type: str = Field(default="BRD")
    entity_key: str = Field(description="BRD form id the event belongs to")
    action: str = Field(description="Audit action (CREATE, STATUS_UPDATE, ...)")
    event_timestamp: datetime
    new_values: Optional[dict[str, Any]] = Field(default=None)

    @property
    def status(self) -> Optional[str]:
        """Status carried by this event, stripped; None when absent or blank."""
        if not self.new_values:
            return None
        raw = self.new_values.get(STATUS_FIELD)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None


class BrdSnapshot(BaseModel):
    """
    Current state of a BRD document.

    Several snapshots may share a ``brd_form_id`` when the same form shows up
    in more than one upstream query; the form id is the logical key.
    """

    model_config = ConfigDict(frozen=True)

    brd_id: str
    brd_form_id: Optional[str] = None
    brd_name: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    creator: Optional[str] = None
    brd_type: Optional[BrdType] = None
    industry_vertical: Optional[str] = None
    ai_prefill_rate: Optional[float] = None
    walletron_included: bool = False
    ach_encrypted: bool = False
    original_ssd_file_name: Optional[str] = None
    original_contract_file_name: Optional[str] = None

    @property
    def has_ssd_upload(self) -> bool:
        return bool(self.original_ssd_file_name and self.original_ssd_file_name.strip())

    @property
    def has_contract_upload(self) -> bool:
        return bool(
            self.original_contract_file_name and self.original_contract_file_name.strip()
        )
