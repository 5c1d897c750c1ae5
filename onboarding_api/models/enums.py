"""
Enumeration types for the onboarding dashboard.

All enums inherit from str so they serialize to plain JSON values and can be
compared directly against raw query parameters.
"""

from enum import Enum


class BrdStatus(str, Enum):
    """
    BRD lifecycle statuses, declared in lifecycle order.

    The declaration order is the transition chain: only moves between
    neighbouring members are measured by the dashboard.
    """

    DRAFT = "Draft"
    IN_PROGRESS = "In Progress"
    EDIT_COMPLETE = "Edit Complete"
    INTERNAL_REVIEW = "Internal Review"
    REVIEWED = "Reviewed"
    READY_FOR_SIGN_OFF = "Ready for Sign-Off"
    SIGNED_OFF = "Signed Off"
    SUBMITTED = "Submit"


class BrdType(str, Enum):
    """Kind of onboarding a BRD describes."""

    NEW = "NEW"
    UPDATE = "UPDATE"
    TRIAGE = "TRIAGE"


class AuditAction(str, Enum):
    """Audit log actions that can carry a BRD status."""

    CREATE = "CREATE"
    STATUS_UPDATE = "STATUS_UPDATE"


class Period(str, Enum):
    """Reporting window requested by a dashboard caller."""

    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class MetricFamily(str, Enum):
    """
    Metric family a segment grid is built for.

    The family only matters for ``year``: status transitions are bucketed by
    quarter, AI prefill rates by month.
    """

    STATUS_TRANSITION = "status_transition"
    AI_PREFILL = "ai_prefill"


class Scope(str, Enum):
    """Whose BRDs to include."""

    ME = "me"
    TEAM = "team"


class BrdScope(str, Enum):
    """Which BRD status family to include."""

    OPEN = "open"
    ALL = "all"


class UploadFilter(str, Enum):
    """Status filter used by the upload metrics card."""

    OPEN = "OPEN"
    ALL = "ALL"
