"""Workflow sessions - registry of external processes working on a skill.

The agent supervisor opens a session (skill name + PID) before it starts
writing into a skill directory and ends it when done. Startup reconciliation
consults the registry through SessionGuard and leaves skills with a live
writer alone.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, List, Optional

from ulid import ULID

from skillforge.core.errors import CatalogError
from skillforge.core.time import utc_now_ms
from skillforge.core.utils.process import is_process_running
from skillforge.skills.catalog import CatalogStore, connect

logger = logging.getLogger(__name__)

PidChecker = Callable[[int], bool]


@dataclass(frozen=True)
class WorkflowSession:
    session_id: str
    skill_name: str
    pid: int
    started_at: int
    ended_at: Optional[int] = None


class SessionRegistry:
    """Read/write access to the workflow_sessions table."""

    def __init__(self, catalog: CatalogStore):
        # Shares the catalog database; CatalogStore.init_db created the table
        self.db_path = catalog.db_path

    def open_session(self, skill_name: str, pid: int) -> str:
        """Register a live writer for a skill.

        Returns:
            The new session id (ULID)
        """
        session_id = str(ULID())
        self._execute(
            "open session",
            skill_name,
            "INSERT INTO workflow_sessions (session_id, skill_name, pid, started_at) VALUES (?, ?, ?, ?)",
            (session_id, skill_name, pid, utc_now_ms()),
        )
        logger.info(f"Opened session {session_id} for '{skill_name}' (pid={pid})")
        return session_id

    def end_session(self, session_id: str) -> bool:
        rowcount = self._execute(
            "end session",
            None,
            "UPDATE workflow_sessions SET ended_at = ? WHERE session_id = ? AND ended_at IS NULL",
            (utc_now_ms(), session_id),
        )
        if rowcount:
            logger.info(f"Ended session {session_id}")
        return bool(rowcount)

    def list_open_sessions(self, skill_name: Optional[str] = None) -> List[WorkflowSession]:
        sql = "SELECT * FROM workflow_sessions WHERE ended_at IS NULL"
        params: tuple = ()
        if skill_name is not None:
            sql += " AND skill_name = ?"
            params = (skill_name,)
        sql += " ORDER BY started_at"

        try:
            conn = connect(self.db_path)
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to list sessions: {e}")
            raise CatalogError("read sessions", skill_name, e) from e

        return [
            WorkflowSession(
                session_id=row["session_id"],
                skill_name=row["skill_name"],
                pid=row["pid"],
                started_at=row["started_at"],
                ended_at=row["ended_at"],
            )
            for row in rows
        ]

    def close_dead_sessions(self, pid_alive: PidChecker = is_process_running) -> int:
        """End every open session whose process has exited.

        Runs before reconciliation so that a crashed writer does not shield
        its skill forever.

        Returns:
            Number of sessions closed
        """
        closed = 0
        for session in self.list_open_sessions():
            if pid_alive(session.pid):
                continue
            if self.end_session(session.session_id):
                logger.info(
                    f"Closed orphaned session {session.session_id} for '{session.skill_name}' "
                    f"(pid {session.pid} is dead)"
                )
                closed += 1
        return closed

    def _execute(self, operation: str, skill_name: Optional[str], sql: str, params: tuple) -> int:
        try:
            conn = connect(self.db_path)
        except sqlite3.Error as e:
            raise CatalogError(operation, skill_name, e) from e
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to {operation}: {e}")
            raise CatalogError(operation, skill_name, e) from e
        finally:
            conn.close()


class SessionGuard:
    """Answers whether a skill currently has a live external writer."""

    def __init__(self, registry: SessionRegistry, pid_alive: PidChecker = is_process_running):
        self.registry = registry
        self.pid_alive = pid_alive

    def is_active(self, name: str) -> bool:
        """True if any open session for ``name`` belongs to a live process."""
        for session in self.registry.list_open_sessions(name):
            if self.pid_alive(session.pid):
                logger.debug(f"[guard] '{name}' has live session {session.session_id} (pid={session.pid})")
                return True
        return False


__all__ = ["SessionRegistry", "SessionGuard", "WorkflowSession"]
