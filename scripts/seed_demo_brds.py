#!/usr/bin/env python3
"""
Seed demo BRD snapshots and audit history for the onboarding dashboard.

Creates a year of BRDs spread across verticals and creators, each walked
part of the way through the lifecycle with realistic dwell times, so every
dashboard card (status counts, verticals, transition times, prefill rates,
weekly grids) has data to show.

Usage:
    python scripts/seed_demo_brds.py [--count 120] [--seed 7] [--db-path PATH]
"""

import argparse
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from onboarding_api.config import get_settings
from onboarding_api.models.enums import AuditAction, BrdStatus, BrdType
from onboarding_api.models.records import AuditEvent, BrdSnapshot
from onboarding_api.storage.duckdb_storage import DuckDBStorage

CREATORS = ["alex.pm", "jordan.pm", "sam.pm", "riley.pm"]
VERTICALS = ["Healthcare", "Utilities", "Insurance", "Government", "Telecom", None]
CHAIN = list(BrdStatus)

# Typical days spent in each status before moving on
DWELL_DAYS = {
    BrdStatus.DRAFT: (0.5, 4.0),
    BrdStatus.IN_PROGRESS: (1.0, 6.0),
    BrdStatus.EDIT_COMPLETE: (0.5, 3.0),
    BrdStatus.INTERNAL_REVIEW: (1.0, 5.0),
    BrdStatus.REVIEWED: (0.5, 2.0),
    BrdStatus.READY_FOR_SIGN_OFF: (1.0, 7.0),
    BrdStatus.SIGNED_OFF: (0.2, 1.5),
}


def build_brd(index: int, now: datetime, rng: random.Random):
    """Build one snapshot and its audit trail."""
    form_id = f"FORM-{1000 + index}"
    created_at = now - timedelta(days=rng.uniform(1, 365), hours=rng.uniform(0, 23))
    steps = rng.randint(1, len(CHAIN))

    events = []
    moment = created_at
    status = CHAIN[0]
    for position in range(steps):
        status = CHAIN[position]
        if moment >= now:
            break
        events.append(
            AuditEvent(
                entity_key=form_id,
                action=(AuditAction.CREATE if position == 0 else AuditAction.STATUS_UPDATE).value,
                event_timestamp=moment,
                new_values={"status": status.value},
            )
        )
        low, high = DWELL_DAYS.get(status, (0.5, 2.0))
        moment = moment + timedelta(days=rng.uniform(low, high))

    # Occasional skip straight past a review step
    if len(events) > 3 and rng.random() < 0.1:
        events.pop(2)

    snapshot = BrdSnapshot(
        brd_id=f"BRD-{index:04d}",
        brd_form_id=form_id,
        brd_name=f"Demo biller onboarding {index}",
        status=events[-1].status,
        created_at=created_at,
        updated_at=events[-1].event_timestamp,
        creator=rng.choice(CREATORS),
        brd_type=rng.choice(list(BrdType)),
        industry_vertical=rng.choice(VERTICALS),
        ai_prefill_rate=round(rng.uniform(20, 95), 2) if rng.random() < 0.8 else None,
        walletron_included=rng.random() < 0.35,
        ach_encrypted=rng.random() < 0.5,
        original_ssd_file_name=f"ssd_{index}.pdf" if rng.random() < 0.6 else None,
        original_contract_file_name=f"contract_{index}.pdf" if rng.random() < 0.45 else None,
    )
    return snapshot, events


def main():
    parser = argparse.ArgumentParser(description="Seed demo BRDs for the onboarding dashboard")
    parser.add_argument("--count", type=int, default=120, help="Number of BRDs to create")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    parser.add_argument("--db-path", default=None, help="DuckDB file (defaults to DB_PATH setting)")
    args = parser.parse_args()

    settings = get_settings()
    storage = DuckDBStorage(db_path=args.db_path or settings.db_path)
    rng = random.Random(args.seed)
    now = datetime.now()

    print("\n" + "=" * 60)
    print("SEEDING DEMO BRDS")
    print("=" * 60)

    snapshots = []
    events = []
    for index in range(args.count):
        snapshot, trail = build_brd(index, now, rng)
        snapshots.append(snapshot)
        events.extend(trail)

    # A duplicate snapshot for the same form, as seen upstream
    if snapshots:
        first = snapshots[0]
        snapshots.append(first.model_copy(update={"brd_id": f"{first.brd_id}-DUP"}))

    written_snapshots = storage.write_snapshots(snapshots)
    written_events = storage.write_audit_events(events)

    print(f"  Snapshots:    {written_snapshots}")
    print(f"  Audit events: {written_events}")
    print(f"  Database:     {storage.db_path}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
