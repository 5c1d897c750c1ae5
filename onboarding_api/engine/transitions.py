"""
Status transition reconstruction from audit events.

Audit events arrive unordered and may belong to many BRDs. For each BRD the
events are put in time order and every pair of consecutive status-bearing
events becomes a candidate transition. Only moves between neighbouring
statuses of the lifecycle chain are kept; skips (e.g. Draft straight to
Edit Complete) never contribute to any average.
"""

from collections import OrderedDict
from typing import Iterable, Optional

import structlog

from onboarding_api.models.dashboard import TransitionSample
from onboarding_api.models.enums import BrdStatus
from onboarding_api.models.records import AuditEvent

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400.0

STATUS_CHAIN: tuple[str, ...] = tuple(status.value for status in BrdStatus)

TRANSITION_KEYS: tuple[str, ...] = tuple(
    f"{current} ➔ {following}" for current, following in zip(STATUS_CHAIN, STATUS_CHAIN[1:])
)

_CHAIN_INDEX = {status: index for index, status in enumerate(STATUS_CHAIN)}


def transition_key(from_status: str, to_status: str) -> str:
    return f"{from_status} ➔ {to_status}"


def is_valid_transition(from_status: Optional[str], to_status: Optional[str]) -> bool:
    """True only for a single forward step along the status chain."""
    if from_status is None or to_status is None:
        return False
    from_index = _CHAIN_INDEX.get(from_status)
    to_index = _CHAIN_INDEX.get(to_status)
    if from_index is None or to_index is None:
        return False
    return to_index == from_index + 1


class TransitionReconstructor:
    """
    Rebuilds per-BRD transition samples from raw audit events.

    The action type of an event is ignored; a CREATE carrying a status is as
    good as a STATUS_UPDATE. Events without a usable status are skipped.
    """

    def __init__(self):
        self.logger = structlog.get_logger()

    def reconstruct(self, entity_key: str, events: Iterable[AuditEvent]) -> list[TransitionSample]:
        """
        Build the transition samples of one BRD.

        Args:
            entity_key: Form id of the BRD
            events: Audit events of that BRD, in any order

        Returns:
            Samples in chronological order; empty with fewer than two usable events
        """
        ordered = sorted(events, key=lambda e: e.event_timestamp)

        usable: list[tuple[AuditEvent, str]] = []
        for event in ordered:
            status = event.status
            if status is None:
                self.logger.warning(
                    "audit_event_missing_status",
                    entity_key=entity_key,
                    event_id=event.event_id,
                    action=event.action,
                )
                continue
            usable.append((event, status))

        if len(usable) < 2:
            return []

        samples: list[TransitionSample] = []
        for (prev_event, prev_status), (next_event, next_status) in zip(usable, usable[1:]):
            if prev_status == next_status:
                continue
            if not is_valid_transition(prev_status, next_status):
                self.logger.debug(
                    "status_transition_skipped",
                    entity_key=entity_key,
                    from_status=prev_status,
                    to_status=next_status,
                )
                continue

            elapsed = next_event.event_timestamp - prev_event.event_timestamp
            samples.append(
                TransitionSample(
                    entity_key=entity_key,
                    from_status=prev_status,
                    to_status=next_status,
                    elapsed_days=elapsed.total_seconds() / SECONDS_PER_DAY,
                    completed_at=next_event.event_timestamp,
                )
            )

        return samples

    def reconstruct_all(self, events: Iterable[AuditEvent]) -> list[TransitionSample]:
        """Group a flat event stream by entity key and reconstruct each group."""
        grouped: "OrderedDict[str, list[AuditEvent]]" = OrderedDict()
        for event in events:
            grouped.setdefault(event.entity_key, []).append(event)

        samples: list[TransitionSample] = []
        for entity_key, entity_events in grouped.items():
            samples.extend(self.reconstruct(entity_key, entity_events))

        self.logger.info(
            "transition_samples_reconstructed",
            entities=len(grouped),
            samples=len(samples),
        )
        return samples
