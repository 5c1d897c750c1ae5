"""
Fixed backward-looking weekly grids of BRD creation counts.

Weeks are ISO weeks keyed ``YYYY-Www``. Slot 0 is the last complete week
(the one before the week containing "now") and the grid reaches back a fixed
number of weeks. The in-progress week and anything older than the grid are
not counted.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

import structlog

from onboarding_api.models.dashboard import WeeklyCounts, WeeklyTypeCounts
from onboarding_api.models.enums import BrdType
from onboarding_api.models.records import BrdSnapshot

from .clock import Clock

logger = structlog.get_logger()

DEFAULT_WEEKS = 52
WEEK_KEY_FORMAT = "%G-W%V"


def week_key(moment: datetime) -> str:
    return moment.strftime(WEEK_KEY_FORMAT)


def weekly_category(snapshot: BrdSnapshot) -> BrdType:
    """
    Category a snapshot is counted under in weekly grids.

    Current business rule: every BRD counts as NEW regardless of its stored
    type, so the update and triage series stay at zero.
    """
    return BrdType.NEW


class WeeklyGridComputer:
    """Buckets snapshot creation times into a fixed grid of ISO weeks."""

    def __init__(self, clock: Clock, weeks: int = DEFAULT_WEEKS):
        if weeks < 1:
            raise ValueError("weeks must be at least 1")
        self.clock = clock
        self.weeks = weeks

    def week_keys(self) -> list[str]:
        """ISO week keys, most recent complete week first."""
        today = self.clock.now().date()
        current_monday = today - timedelta(days=today.weekday())
        return [
            (current_monday - timedelta(weeks=offset + 1)).strftime(WEEK_KEY_FORMAT)
            for offset in range(self.weeks)
        ]

    def window(self) -> tuple[datetime, datetime]:
        """``[start, end)`` covered by the grid: oldest Monday up to the current week's Monday."""
        today = self.clock.now().date()
        current_monday = today - timedelta(days=today.weekday())
        end = datetime(current_monday.year, current_monday.month, current_monday.day)
        return end - timedelta(weeks=self.weeks), end

    def week_labels(self) -> list[str]:
        return [f"Week {number}" for number in range(1, self.weeks + 1)]

    def _slot_index(self) -> dict[str, int]:
        return {key: index for index, key in enumerate(self.week_keys())}

    def _slot_for(self, snapshot: BrdSnapshot, slots: dict[str, int]) -> Optional[int]:
        if snapshot.created_at is None:
            logger.debug("weekly_grid_missing_created_at", brd_id=snapshot.brd_id)
            return None
        index = slots.get(week_key(snapshot.created_at))
        if index is None:
            logger.debug(
                "weekly_grid_out_of_range",
                brd_id=snapshot.brd_id,
                created_at=snapshot.created_at.isoformat(),
            )
        return index

    def compute_upload_counts(self, snapshots: Iterable[BrdSnapshot]) -> WeeklyCounts:
        """Weekly totals plus SSD and contract upload counts, split by category."""
        slots = self._slot_index()
        total_new = [0] * self.weeks
        total_update = [0] * self.weeks
        ssd_new = [0] * self.weeks
        ssd_update = [0] * self.weeks
        contract_new = [0] * self.weeks
        contract_update = [0] * self.weeks

        for snapshot in snapshots:
            index = self._slot_for(snapshot, slots)
            if index is None:
                continue

            if weekly_category(snapshot) == BrdType.NEW:
                total, ssd, contract = total_new, ssd_new, contract_new
            else:
                total, ssd, contract = total_update, ssd_update, contract_update

            total[index] += 1
            if snapshot.has_ssd_upload:
                ssd[index] += 1
            if snapshot.has_contract_upload:
                contract[index] += 1

        return WeeklyCounts(
            weeks=self.week_labels(),
            total_new=total_new,
            total_update=total_update,
            ssd_new=ssd_new,
            ssd_update=ssd_update,
            contract_new=contract_new,
            contract_update=contract_update,
        )

    def compute_type_counts(self, snapshots: Iterable[BrdSnapshot]) -> WeeklyTypeCounts:
        """Weekly creation counts per category plus the weekly total."""
        slots = self._slot_index()
        counts = {brd_type: [0] * self.weeks for brd_type in BrdType}
        total_counts = [0] * self.weeks

        for snapshot in snapshots:
            index = self._slot_for(snapshot, slots)
            if index is None:
                continue
            counts[weekly_category(snapshot)][index] += 1
            total_counts[index] += 1

        return WeeklyTypeCounts(
            weeks=self.week_labels(),
            new_counts=counts[BrdType.NEW],
            update_counts=counts[BrdType.UPDATE],
            triage_counts=counts[BrdType.TRIAGE],
            total_counts=total_counts,
        )
