"""Skill Catalog - Database-backed store of managed skills.

This module provides:
- CatalogStore class for skill and workflow-progress reads and writes
- SQLite database with WAL mode for concurrent access
- Origin tracking (self-built | imported | discovered-upload), immutable per row
- Workflow progress (current stage, status) and per-stage step rows

Database Schema:
- skills: one row per skill, unique name
- workflow_progress: at most one row per skill (FK, cascade delete)
- workflow_steps: per-stage completion rows (FK, cascade delete)
- workflow_sessions: external process registry (see skillforge.skills.sessions)
- Epoch milliseconds for all timestamps

Every sqlite3.Error is raised as CatalogError; callers treat it as fatal.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from skillforge.core.errors import CatalogError
from skillforge.core.storage.paths import ensure_db_exists
from skillforge.core.time import utc_now_ms

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    """Provenance of a skill"""
    SELF_BUILT = "self-built"
    IMPORTED = "imported"
    DISCOVERED_UPLOAD = "discovered-upload"


class ProgressStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# SQL statements
CREATE_SKILLS_SQL = """
CREATE TABLE IF NOT EXISTS skills (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    origin TEXT NOT NULL CHECK(origin IN ('self-built', 'imported', 'discovered-upload')),
    domain TEXT,
    skill_type TEXT,
    metadata_json TEXT NOT NULL DEFAULT '{}',
    created_at INTEGER NOT NULL,  -- epoch ms
    updated_at INTEGER NOT NULL   -- epoch ms
)
"""

CREATE_ORIGIN_TRIGGER_SQL = """
CREATE TRIGGER IF NOT EXISTS trg_skills_origin_immutable
BEFORE UPDATE OF origin ON skills
WHEN NEW.origin != OLD.origin
BEGIN
    SELECT RAISE(ABORT, 'origin is immutable');
END
"""

CREATE_PROGRESS_SQL = """
CREATE TABLE IF NOT EXISTS workflow_progress (
    skill_id INTEGER PRIMARY KEY REFERENCES skills(id) ON DELETE CASCADE,
    current_stage INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending',  -- pending | in_progress | completed
    updated_at INTEGER NOT NULL
)
"""

CREATE_STEPS_SQL = """
CREATE TABLE IF NOT EXISTS workflow_steps (
    skill_id INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
    stage INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    completed_at INTEGER,
    PRIMARY KEY (skill_id, stage)
)
"""

CREATE_SESSIONS_SQL = """
CREATE TABLE IF NOT EXISTS workflow_sessions (
    session_id TEXT PRIMARY KEY,
    skill_name TEXT NOT NULL,
    pid INTEGER NOT NULL,
    started_at INTEGER NOT NULL,
    ended_at INTEGER
)
"""

CREATE_INDEX_ORIGIN_SQL = """
CREATE INDEX IF NOT EXISTS idx_skills_origin ON skills(origin)
"""

CREATE_INDEX_SESSIONS_SQL = """
CREATE INDEX IF NOT EXISTS idx_sessions_open ON workflow_sessions(skill_name, ended_at)
"""

_SCHEMA = (
    CREATE_SKILLS_SQL,
    CREATE_ORIGIN_TRIGGER_SQL,
    CREATE_PROGRESS_SQL,
    CREATE_STEPS_SQL,
    CREATE_SESSIONS_SQL,
    CREATE_INDEX_ORIGIN_SQL,
    CREATE_INDEX_SESSIONS_SQL,
)


@dataclass
class CatalogEntry:
    """One managed skill."""

    id: int
    name: str
    origin: Origin
    domain: Optional[str] = None
    skill_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    updated_at: int = 0


@dataclass
class WorkflowProgress:
    """Workflow progress of a self-built skill."""

    skill_id: int
    current_stage: int
    status: str
    updated_at: int = 0


def connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with the pragmas every catalog access needs."""
    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=30000")
    return conn


class CatalogStore:
    """Skill catalog with SQLite backend.

    Each public method opens its own connection and commits its own
    transaction, so the store can be shared across worker threads.

    Database location: ~/.skillforge/store/catalog/db.sqlite
    """

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the catalog.

        Args:
            db_path: Optional custom database path.
                     If None, uses component_db_path("catalog").
        """
        if db_path is None:
            self.db_path = str(ensure_db_exists("catalog"))
        else:
            self.db_path = str(db_path)
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"CatalogStore initialized at: {self.db_path}")
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        return connect(self.db_path)

    def init_db(self) -> None:
        """Create tables, trigger and indexes; enable WAL mode."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise CatalogError("open", cause=e) from e

        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
            logger.debug("Catalog schema initialized")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize catalog: {e}")
            raise CatalogError("schema init", cause=e) from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all_entries(self) -> List[Tuple[CatalogEntry, Optional[WorkflowProgress]]]:
        """All skills with their optional progress row, ordered by name."""
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    """
                    SELECT s.*, p.current_stage, p.status AS progress_status,
                           p.updated_at AS progress_updated_at,
                           p.skill_id AS progress_skill_id
                    FROM skills s
                    LEFT JOIN workflow_progress p ON p.skill_id = s.id
                    ORDER BY s.name
                    """
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to list catalog entries: {e}")
            raise CatalogError("read", cause=e) from e

        result = []
        for row in rows:
            progress = None
            if row["progress_skill_id"] is not None:
                progress = WorkflowProgress(
                    skill_id=row["id"],
                    current_stage=row["current_stage"],
                    status=row["progress_status"],
                    updated_at=row["progress_updated_at"],
                )
            result.append((self._entry_from_row(row), progress))
        return result

    def names(self) -> List[str]:
        return [row["name"] for row in self._query("SELECT name FROM skills ORDER BY name")]

    def get_entry(self, name: str) -> Optional[CatalogEntry]:
        rows = self._query("SELECT * FROM skills WHERE name = ?", (name,), skill_name=name)
        return self._entry_from_row(rows[0]) if rows else None

    def get_progress(self, name: str) -> Optional[WorkflowProgress]:
        rows = self._query(
            """
            SELECT p.* FROM workflow_progress p
            JOIN skills s ON s.id = p.skill_id
            WHERE s.name = ?
            """,
            (name,),
            skill_name=name,
        )
        if not rows:
            return None
        row = rows[0]
        return WorkflowProgress(
            skill_id=row["skill_id"],
            current_stage=row["current_stage"],
            status=row["status"],
            updated_at=row["updated_at"],
        )

    def list_steps(self, name: str) -> Dict[int, str]:
        """Stage -> status of the step rows of a skill."""
        rows = self._query(
            """
            SELECT st.stage, st.status FROM workflow_steps st
            JOIN skills s ON s.id = st.skill_id
            WHERE s.name = ?
            ORDER BY st.stage
            """,
            (name,),
            skill_name=name,
        )
        return {row["stage"]: row["status"] for row in rows}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_entry(
        self,
        name: str,
        origin: Origin,
        domain: Optional[str] = None,
        skill_type: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CatalogEntry:
        """Insert a new skill row.

        Raises:
            CatalogError: If the name already exists or the write fails
        """
        now_ms = utc_now_ms()
        origin = Origin(origin)

        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO skills (name, origin, domain, skill_type, metadata_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (name, origin.value, domain, skill_type,
                 json.dumps(metadata or {}, ensure_ascii=False), now_ms, now_ms),
            )

        self._write("create entry", name, _write)
        logger.info(f"Inserted skill '{name}' (origin={origin.value})")
        entry = self.get_entry(name)
        if entry is None:
            raise CatalogError("create entry", name, RuntimeError("row not found after insert"))
        return entry

    def create_progress_row(
        self,
        name: str,
        stage: int,
        status: ProgressStatus = ProgressStatus.PENDING,
        completed_stages: Iterable[int] = (),
    ) -> None:
        """Create the progress row of a skill that has none."""
        now_ms = utc_now_ms()

        def _write(conn: sqlite3.Connection) -> None:
            skill_id = self._require_id(conn, name)
            conn.execute(
                """
                INSERT INTO workflow_progress (skill_id, current_stage, status, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (skill_id, stage, ProgressStatus(status).value, now_ms),
            )
            self._complete_steps(conn, skill_id, completed_stages, now_ms)

        self._write("create progress", name, _write)
        logger.info(f"Created progress row for '{name}' at stage {stage}")

    def advance_stage(
        self,
        name: str,
        stage: int,
        status: ProgressStatus = ProgressStatus.PENDING,
        completed_stages: Iterable[int] = (),
    ) -> None:
        """Move a skill forward to a stage confirmed on disk."""
        now_ms = utc_now_ms()

        def _write(conn: sqlite3.Connection) -> None:
            skill_id = self._require_id(conn, name)
            self._upsert_progress(conn, skill_id, stage, ProgressStatus(status), now_ms)
            self._complete_steps(conn, skill_id, completed_stages, now_ms)

        self._write("advance stage", name, _write)
        logger.info(f"Advanced '{name}' to stage {stage}")

    def reset_stage(
        self,
        name: str,
        stage: int,
        completed_stages: Iterable[int] = (),
    ) -> None:
        """Roll a skill back to ``stage``; step rows above it become pending."""
        now_ms = utc_now_ms()

        def _write(conn: sqlite3.Connection) -> None:
            skill_id = self._require_id(conn, name)
            self._upsert_progress(conn, skill_id, stage, ProgressStatus.PENDING, now_ms)
            conn.execute(
                """
                UPDATE workflow_steps SET status = 'pending', completed_at = NULL
                WHERE skill_id = ? AND stage > ?
                """,
                (skill_id, stage),
            )
            self._complete_steps(conn, skill_id, completed_stages, now_ms)

        self._write("reset stage", name, _write)
        logger.info(f"Reset '{name}' to stage {stage}")

    def mark_confirmed(
        self,
        name: str,
        completed_stages: Iterable[int] = (),
        completed: bool = False,
    ) -> None:
        """Acknowledge that catalog and disk agree.

        Keeps current_stage, marks the given step rows completed and, when the
        terminal stage is confirmed, fixes a status stuck short of completed.
        """
        now_ms = utc_now_ms()

        def _write(conn: sqlite3.Connection) -> None:
            skill_id = self._require_id(conn, name)
            self._complete_steps(conn, skill_id, completed_stages, now_ms)
            if completed:
                cursor = conn.execute(
                    """
                    UPDATE workflow_progress SET status = 'completed', updated_at = ?
                    WHERE skill_id = ? AND status != 'completed'
                    """,
                    (now_ms, skill_id),
                )
                if cursor.rowcount:
                    logger.info(f"Marked '{name}' completed (terminal stage confirmed on disk)")

        self._write("confirm", name, _write)

    def delete_entry(self, name: str) -> bool:
        """Delete a skill; progress and step rows cascade.

        Returns:
            True if a row was deleted
        """
        deleted = []

        def _write(conn: sqlite3.Connection) -> None:
            cursor = conn.execute("DELETE FROM skills WHERE name = ?", (name,))
            deleted.append(cursor.rowcount)

        self._write("delete entry", name, _write)
        if deleted and deleted[0]:
            logger.info(f"Deleted skill '{name}'")
            return True
        logger.warning(f"Skill '{name}' not found for deletion")
        return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple = (), skill_name: Optional[str] = None) -> List[sqlite3.Row]:
        try:
            conn = self._connect()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Catalog read failed: {e}")
            raise CatalogError("read", skill_name, e) from e

    def _write(self, operation: str, name: str, fn) -> None:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise CatalogError(operation, name, e) from e

        try:
            fn(conn)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to {operation} for '{name}': {e}")
            raise CatalogError(operation, name, e) from e
        finally:
            conn.close()

    @staticmethod
    def _require_id(conn: sqlite3.Connection, name: str) -> int:
        row = conn.execute("SELECT id FROM skills WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise sqlite3.IntegrityError(f"no skill named '{name}'")
        return row["id"]

    @staticmethod
    def _upsert_progress(
        conn: sqlite3.Connection,
        skill_id: int,
        stage: int,
        status: ProgressStatus,
        now_ms: int,
    ) -> None:
        conn.execute(
            """
            INSERT INTO workflow_progress (skill_id, current_stage, status, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(skill_id) DO UPDATE SET
                current_stage = excluded.current_stage,
                status = excluded.status,
                updated_at = excluded.updated_at
            """,
            (skill_id, stage, status.value, now_ms),
        )

    @staticmethod
    def _complete_steps(
        conn: sqlite3.Connection,
        skill_id: int,
        stages: Iterable[int],
        now_ms: int,
    ) -> None:
        for stage in stages:
            conn.execute(
                """
                INSERT INTO workflow_steps (skill_id, stage, status, completed_at)
                VALUES (?, ?, 'completed', ?)
                ON CONFLICT(skill_id, stage) DO UPDATE SET
                    status = 'completed',
                    completed_at = COALESCE(workflow_steps.completed_at, excluded.completed_at)
                WHERE workflow_steps.status != 'completed'
                """,
                (skill_id, stage, now_ms),
            )

    @staticmethod
    def _entry_from_row(row: sqlite3.Row) -> CatalogEntry:
        return CatalogEntry(
            id=row["id"],
            name=row["name"],
            origin=Origin(row["origin"]),
            domain=row["domain"],
            skill_type=row["skill_type"],
            metadata=json.loads(row["metadata_json"] or "{}"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = [
    "CatalogStore",
    "CatalogEntry",
    "WorkflowProgress",
    "Origin",
    "ProgressStatus",
    "connect",
]
