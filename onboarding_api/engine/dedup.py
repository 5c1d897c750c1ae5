"""Collapse BRD snapshots that refer to the same logical form."""

from typing import Iterable

import structlog

from onboarding_api.models.records import BrdSnapshot

logger = structlog.get_logger()


def deduplicate_snapshots(snapshots: Iterable[BrdSnapshot]) -> list[BrdSnapshot]:
    """
    Keep the first snapshot seen for each ``brd_form_id``.

    Input order is preserved. Snapshots without a form id cannot be matched
    to a logical BRD and are dropped.
    """
    seen: set[str] = set()
    unique: list[BrdSnapshot] = []
    duplicates = 0
    missing_key = 0

    for snapshot in snapshots:
        key = (snapshot.brd_form_id or "").strip()
        if not key:
            missing_key += 1
            continue
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        unique.append(snapshot)

    if duplicates or missing_key:
        logger.debug(
            "snapshots_deduplicated",
            kept=len(unique),
            duplicates=duplicates,
            missing_form_id=missing_key,
        )
    return unique
