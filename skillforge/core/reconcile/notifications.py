"""
Notification sink for one reconciliation run.

Collects three disjoint streams:
- Audit log: one record per skill per pass, no-ops included (DEBUG level)
- User notifications: only outcomes that mutated state or skipped on error
- Discoveries: complete, unrecognized directories awaiting a user decision

Thread-safe (RLock), append-only. The reconciler owns the sink while the run
is in progress; afterwards it is handed to the startup gate read-only.
"""

import logging
import threading
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from skillforge.core.reconcile.outcomes import Outcome, OutcomeKind, Severity
from skillforge.core.time import utc_now_iso

logger = logging.getLogger(__name__)


class ResolutionOption(str, Enum):
    """Choices offered for a complete discovery"""
    ADD = "add"        # adopt as a completed self-built skill
    REMOVE = "remove"  # delete the directory from disk


class Notification(BaseModel):
    """User-facing notification"""
    id: str
    severity: Severity
    message: str
    skill_name: Optional[str] = None
    timestamp: str


class AuditRecord(BaseModel):
    """Debug-level record of one skill in one pass"""
    skill_name: str
    origin: Optional[str] = None
    outcome: OutcomeKind
    pass_no: int
    detail: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str


class Discovery(BaseModel):
    """Unrecognized directory with complete evidence"""
    name: str
    detected_stage: Optional[int] = None
    options: List[ResolutionOption] = Field(
        default_factory=lambda: [ResolutionOption.ADD, ResolutionOption.REMOVE]
    )


class NotificationSink:
    """Append-only collector of audit records, notifications and discoveries."""

    def __init__(self):
        self._lock = threading.RLock()
        self._audit: List[AuditRecord] = []
        self._notifications: List[Notification] = []
        self._discoveries: List[Discovery] = []

    def record_audit(
        self,
        name: str,
        origin: Optional[str],
        outcome: OutcomeKind,
        pass_no: int = 1,
        detail: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        """Record one audit entry. Called for every skill, every pass."""
        record = AuditRecord(
            skill_name=name,
            origin=origin,
            outcome=outcome,
            pass_no=pass_no,
            detail=detail,
            data=data or {},
            timestamp=utc_now_iso(),
        )
        with self._lock:
            self._audit.append(record)
        logger.debug(f"[reconcile] pass={pass_no} '{name}' origin={origin} outcome={outcome.value}: {detail}")
        return record

    def record_user_notification(
        self,
        severity: Severity,
        message: str,
        skill_name: Optional[str] = None,
    ) -> Notification:
        """Record a notification the user must acknowledge."""
        notification = Notification(
            id=str(uuid.uuid4()),
            severity=severity,
            message=message,
            skill_name=skill_name,
            timestamp=utc_now_iso(),
        )
        with self._lock:
            self._notifications.append(notification)
        logger.info(f"[reconcile] {message}")
        return notification

    def add_discovery(
        self,
        name: str,
        detected_stage: Optional[int] = None,
        resolution_options: Optional[Sequence[ResolutionOption]] = None,
    ) -> Discovery:
        """Queue a complete discovery for an explicit user decision."""
        discovery = Discovery(name=name, detected_stage=detected_stage)
        if resolution_options is not None:
            discovery.options = list(resolution_options)
        with self._lock:
            self._discoveries.append(discovery)
        logger.info(f"[reconcile] '{name}' discovered on disk, awaiting decision")
        return discovery

    def record(self, outcome: Outcome) -> None:
        """Route an applied outcome to the audit log and, if needed, the user lists.

        All entries for one skill are appended under a single lock hold.
        """
        with self._lock:
            self.record_audit(
                outcome.skill_name,
                outcome.origin,
                outcome.kind,
                pass_no=outcome.pass_no,
                detail=outcome.message(),
                data=outcome.to_dict(),
            )
            if outcome.notifies:
                self.record_user_notification(outcome.severity, outcome.message(), outcome.skill_name)
            if outcome.kind == OutcomeKind.DISCOVERED_COMPLETE:
                self.add_discovery(outcome.skill_name, outcome.to_stage)

    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._notifications)

    def discoveries(self) -> List[Discovery]:
        with self._lock:
            return list(self._discoveries)

    def audit_log(self) -> List[AuditRecord]:
        with self._lock:
            return list(self._audit)

    def to_payload(self) -> Dict[str, Any]:
        """Decision gate payload consumed by the UI."""
        with self._lock:
            return {
                "notifications": [n.model_dump(mode="json") for n in self._notifications],
                "discoveries": [d.model_dump(mode="json") for d in self._discoveries],
            }


__all__ = [
    "NotificationSink",
    "Notification",
    "AuditRecord",
    "Discovery",
    "ResolutionOption",
]
