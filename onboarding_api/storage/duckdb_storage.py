"""
DuckDB storage implementation for the onboarding dashboard.

Holds read replicas of two upstream collections: BRD snapshots and the BRD
audit log. Queries run synchronously on a thread-local connection; the async
read methods push them onto a worker thread with ``asyncio.to_thread`` and
then yield hydrated records.

Key features:
- Thread-safe per-thread connections
- Idempotent schema creation
- Parameterised filtering for every criteria field
- Structured logging of every failure before it is raised as StorageError
"""

import asyncio
import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import duckdb
import structlog
from pydantic import ValidationError

from onboarding_api.models.enums import BrdType
from onboarding_api.models.records import AuditEvent, BrdSnapshot

from .base import AuditEventCriteria, SnapshotCriteria, StorageBackend, StorageError

logger = structlog.get_logger(__name__)

_SNAPSHOT_COLUMNS = (
    "brd_id, brd_form_id, brd_name, status, created_at, updated_at, creator, brd_type, "
    "industry_vertical, ai_prefill_rate, walletron_included, ach_encrypted, "
    "original_ssd_file_name, original_contract_file_name"
)

_AUDIT_COLUMNS = "event_id, entity_type, entity_key, action, event_timestamp, new_values"


def _placeholders(values: list[Any]) -> str:
    return ", ".join("?" for _ in values)


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the dashboard storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/onboarding.duckdb"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))
        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self):
        """Create tables and indexes. Safe to call more than once."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS brd_snapshots (
                            brd_id VARCHAR PRIMARY KEY,
                            brd_form_id VARCHAR,
                            brd_name VARCHAR,
                            status VARCHAR NOT NULL,
                            created_at TIMESTAMP,
                            updated_at TIMESTAMP,
                            creator VARCHAR,
                            brd_type VARCHAR,
                            industry_vertical VARCHAR,
                            ai_prefill_rate DOUBLE,
                            walletron_included BOOLEAN DEFAULT FALSE,
                            ach_encrypted BOOLEAN DEFAULT FALSE,
                            original_ssd_file_name VARCHAR,
                            original_contract_file_name VARCHAR
                        )
                        """
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_snapshots_creator ON brd_snapshots(creator)"
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_snapshots_created ON brd_snapshots(created_at)"
                    )

                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS audit_events (
                            event_id VARCHAR PRIMARY KEY,
                            entity_type VARCHAR NOT NULL,
                            entity_key VARCHAR NOT NULL,
                            action VARCHAR NOT NULL,
                            event_timestamp TIMESTAMP NOT NULL,
                            new_values VARCHAR
                        )
                        """
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_events(entity_type, entity_key)"
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_audit_time ON audit_events(event_timestamp)"
                    )

                self._initialized = True
                logger.info("duckdb_schema_initialized")

            except StorageError:
                raise
            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """Delete all rows. Only acts when TESTING is set."""
        if not os.environ.get("TESTING"):
            return
        with self._get_connection() as conn:
            for table in ("brd_snapshots", "audit_events"):
                conn.execute(f"DELETE FROM {table}")
        logger.debug("duckdb_tables_cleared")

    # =========================================================================
    # Row hydration
    # =========================================================================

    @staticmethod
    def _row_to_snapshot(row: tuple) -> BrdSnapshot:
        raw_type = row[7]
        brd_type: Optional[BrdType] = None
        if raw_type and raw_type in BrdType._value2member_map_:
            brd_type = BrdType(raw_type)
        return BrdSnapshot(
            brd_id=row[0],
            brd_form_id=row[1],
            brd_name=row[2],
            status=row[3],
            created_at=row[4],
            updated_at=row[5],
            creator=row[6],
            brd_type=brd_type,
            industry_vertical=row[8],
            ai_prefill_rate=row[9],
            walletron_included=bool(row[10]),
            ach_encrypted=bool(row[11]),
            original_ssd_file_name=row[12],
            original_contract_file_name=row[13],
        )

    @staticmethod
    def _row_to_event(row: tuple) -> AuditEvent:
        return AuditEvent(
            event_id=row[0],
            entity_type=row[1],
            entity_key=row[2],
            action=row[3],
            event_timestamp=row[4],
            new_values=json.loads(row[5]) if row[5] else None,
        )

    # =========================================================================
    # Synchronous queries
    # =========================================================================

    def _query_audit_events(self, criteria: AuditEventCriteria) -> list[tuple]:
        query = f"SELECT {_AUDIT_COLUMNS} FROM audit_events WHERE entity_type = ?"
        params: list[Any] = [criteria.entity_type]

        if criteria.entity_keys is not None:
            if not criteria.entity_keys:
                return []
            query += f" AND entity_key IN ({_placeholders(criteria.entity_keys)})"
            params.extend(criteria.entity_keys)

        if criteria.actions is not None:
            if not criteria.actions:
                return []
            query += f" AND action IN ({_placeholders(criteria.actions)})"
            params.extend(criteria.actions)

        if criteria.start is not None:
            query += " AND event_timestamp >= ?"
            params.append(criteria.start)

        if criteria.end is not None:
            query += " AND event_timestamp < ?"
            params.append(criteria.end)

        query += " ORDER BY event_timestamp ASC, event_id ASC"

        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except StorageError:
            raise
        except Exception as e:
            logger.error("read_audit_events_failed", error=str(e))
            raise StorageError(f"Failed to read audit events: {e}") from e

        logger.debug("audit_events_read", count=len(rows))
        return rows

    def _query_snapshots(self, criteria: SnapshotCriteria) -> list[tuple]:
        query = f"SELECT {_SNAPSHOT_COLUMNS} FROM brd_snapshots WHERE 1=1"
        params: list[Any] = []

        if criteria.creator is not None:
            query += " AND creator = ?"
            params.append(criteria.creator)

        if criteria.statuses is not None:
            if not criteria.statuses:
                return []
            query += f" AND status IN ({_placeholders(criteria.statuses)})"
            params.extend(criteria.statuses)

        if criteria.exclude_statuses:
            query += f" AND status NOT IN ({_placeholders(criteria.exclude_statuses)})"
            params.extend(criteria.exclude_statuses)

        if criteria.created_from is not None:
            query += " AND created_at >= ?"
            params.append(criteria.created_from)

        if criteria.created_to is not None:
            query += " AND created_at < ?"
            params.append(criteria.created_to)

        if criteria.require_form_id:
            query += " AND brd_form_id IS NOT NULL AND trim(brd_form_id) <> ''"

        if criteria.require_ai_prefill_rate:
            query += " AND ai_prefill_rate IS NOT NULL"

        query += " ORDER BY created_at DESC NULLS LAST, brd_id ASC"

        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except StorageError:
            raise
        except Exception as e:
            logger.error("read_snapshots_failed", error=str(e))
            raise StorageError(f"Failed to read BRD snapshots: {e}") from e

        logger.debug("snapshots_read", count=len(rows))
        return rows

    # =========================================================================
    # Async reads
    # =========================================================================

    async def fetch_audit_events(self, criteria: AuditEventCriteria) -> AsyncIterator[AuditEvent]:
        rows = await asyncio.to_thread(self._query_audit_events, criteria)
        for row in rows:
            # A payload that is not a JSON object drops only its own event
            try:
                event = self._row_to_event(row)
            except (ValueError, ValidationError) as e:
                logger.warning("malformed_audit_event_skipped", event_id=row[0], error=str(e))
                continue
            yield event

    async def fetch_snapshots(self, criteria: SnapshotCriteria) -> AsyncIterator[BrdSnapshot]:
        rows = await asyncio.to_thread(self._query_snapshots, criteria)
        for row in rows:
            yield self._row_to_snapshot(row)

    # =========================================================================
    # Seeding
    # =========================================================================

    def write_snapshots(self, snapshots: list[BrdSnapshot]) -> int:
        """Insert snapshots, replacing any row with the same brd_id."""
        if not snapshots:
            return 0

        try:
            with self._get_connection() as conn:
                for snapshot in snapshots:
                    conn.execute(
                        f"""
                        INSERT OR REPLACE INTO brd_snapshots ({_SNAPSHOT_COLUMNS})
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            snapshot.brd_id,
                            snapshot.brd_form_id,
                            snapshot.brd_name,
                            snapshot.status,
                            snapshot.created_at,
                            snapshot.updated_at,
                            snapshot.creator,
                            snapshot.brd_type.value if snapshot.brd_type else None,
                            snapshot.industry_vertical,
                            snapshot.ai_prefill_rate,
                            snapshot.walletron_included,
                            snapshot.ach_encrypted,
                            snapshot.original_ssd_file_name,
                            snapshot.original_contract_file_name,
                        ],
                    )
        except StorageError:
            raise
        except Exception as e:
            logger.error("write_snapshots_failed", error=str(e))
            raise StorageError(f"Failed to write BRD snapshots: {e}") from e

        logger.info("snapshots_written", count=len(snapshots))
        return len(snapshots)

    def write_audit_events(self, events: list[AuditEvent]) -> int:
        """Append audit events; events whose id already exists are skipped."""
        if not events:
            return 0

        written = 0
        try:
            with self._get_connection() as conn:
                for event in events:
                    try:
                        conn.execute(
                            f"INSERT INTO audit_events ({_AUDIT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                            [
                                event.event_id,
                                event.entity_type,
                                event.entity_key,
                                event.action,
                                event.event_timestamp,
                                json.dumps(event.new_values) if event.new_values is not None else None,
                            ],
                        )
                        written += 1
                    except duckdb.ConstraintException:
                        logger.debug("duplicate_audit_event_skipped", event_id=event.event_id)
        except StorageError:
            raise
        except Exception as e:
            logger.error("write_audit_events_failed", error=str(e))
            raise StorageError(f"Failed to write audit events: {e}") from e

        logger.info("audit_events_written", count=written)
        return written

    # =========================================================================
    # Health
    # =========================================================================

    def health_check(self) -> dict:
        try:
            with self._get_connection() as conn:
                snapshots = conn.execute("SELECT COUNT(*) FROM brd_snapshots").fetchone()[0]
                events = conn.execute("SELECT COUNT(*) FROM audit_events").fetchone()[0]
        except StorageError:
            raise
        except Exception as e:
            logger.error("storage_health_check_failed", error=str(e))
            raise StorageError(f"Health check failed: {e}") from e

        return {
            "status": "healthy",
            "backend": "duckdb",
            "db_path": str(self.db_path),
            "brd_snapshots": snapshots,
            "audit_events": events,
        }
