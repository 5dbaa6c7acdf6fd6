"""
Reconciliation outcomes

Each skill processed in a run ends in exactly one outcome:

- SKIPPED: live session attached, or its directory could not be read
- CONFIRMED: catalog and disk agree
- PENDING: fresh skill, nothing recorded and nothing on disk
- RESET: catalog was ahead of disk, rolled back
- ADVANCED: disk was ahead of catalog, catalog moved forward
- RECREATED_ROW: evidence on disk but the progress row was missing
- RECREATED_DIR: skill directory was missing and has been recreated
- REMOVED: imported skill lost its terminal artifact, row deleted
- DISCOVERED_COMPLETE: unknown directory with full evidence, awaiting a decision
- DISCOVERED_INCOMPLETE: unknown directory with partial evidence, deleted
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class OutcomeKind(str, Enum):
    """Terminal state of one skill in one run"""
    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    PENDING = "pending"
    RESET = "reset"
    ADVANCED = "advanced"
    RECREATED_ROW = "recreated_row"
    RECREATED_DIR = "recreated_dir"
    REMOVED = "removed"
    DISCOVERED_COMPLETE = "discovered_complete"
    DISCOVERED_INCOMPLETE = "discovered_incomplete"


class SkipReason(str, Enum):
    ACTIVE_SESSION = "active_session"
    PROBE_ERROR = "probe_error"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# Kinds that changed state and must reach the user
MUTATING_KINDS = frozenset({
    OutcomeKind.RESET,
    OutcomeKind.ADVANCED,
    OutcomeKind.RECREATED_ROW,
    OutcomeKind.RECREATED_DIR,
    OutcomeKind.REMOVED,
    OutcomeKind.DISCOVERED_INCOMPLETE,
})


@dataclass(frozen=True)
class Outcome:
    """Decision for one skill, before and after it is applied."""

    kind: OutcomeKind
    skill_name: str
    origin: Optional[str] = None
    pass_no: int = 1
    from_stage: Optional[int] = None
    to_stage: Optional[int] = None
    detected_stage: Optional[int] = None
    reason: Optional[SkipReason] = None
    error: Optional[str] = None
    no_artifacts: bool = False  # reset because no stage evidence was found

    @property
    def notifies(self) -> bool:
        """Whether the outcome produces a user-facing notification."""
        if self.kind in MUTATING_KINDS:
            return True
        return self.kind == OutcomeKind.SKIPPED and self.reason == SkipReason.PROBE_ERROR

    @property
    def severity(self) -> Severity:
        if self.kind == OutcomeKind.SKIPPED:
            return Severity.WARNING
        if self.kind in (OutcomeKind.REMOVED, OutcomeKind.DISCOVERED_INCOMPLETE):
            return Severity.WARNING
        return Severity.INFO

    def message(self) -> str:
        """Human-readable summary, also used for the audit trail."""
        name = f"'{self.skill_name}'"
        kind = self.kind

        if kind == OutcomeKind.SKIPPED:
            if self.reason == SkipReason.PROBE_ERROR:
                return f"{name} skipped — could not read artifacts: {self.error}"
            return f"{name} skipped — active session running"
        if kind == OutcomeKind.CONFIRMED:
            if self.to_stage is None:
                return f"{name} confirmed, terminal artifact present"
            return f"{name} confirmed at stage {self.to_stage}"
        if kind == OutcomeKind.PENDING:
            return f"{name} has no artifacts yet"
        if kind == OutcomeKind.RESET:
            if self.no_artifacts:
                return f"{name} reset from stage {self.from_stage} to stage 0 — no artifacts found"
            return f"{name} reset from stage {self.from_stage} to stage {self.to_stage}"
        if kind == OutcomeKind.ADVANCED:
            return f"{name} advanced from stage {self.from_stage} to stage {self.to_stage}"
        if kind == OutcomeKind.RECREATED_ROW:
            return f"{name} workflow record recreated at stage {self.to_stage}"
        if kind == OutcomeKind.RECREATED_DIR:
            if self.from_stage is not None and self.to_stage is not None and self.from_stage != self.to_stage:
                return (
                    f"{name} workspace directory recreated; "
                    f"reset from stage {self.from_stage} to stage {self.to_stage}"
                )
            return f"{name} workspace directory recreated"
        if kind == OutcomeKind.REMOVED:
            return f"{name} removed — terminal artifact not found on disk"
        if kind == OutcomeKind.DISCOVERED_COMPLETE:
            return f"{name} found on disk with complete artifacts, awaiting decision"
        if kind == OutcomeKind.DISCOVERED_INCOMPLETE:
            return f"{name} removed — incomplete artifacts on disk"
        raise ValueError(f"Unknown outcome kind: {kind!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "skill_name": self.skill_name,
            "origin": self.origin,
            "pass": self.pass_no,
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "detected_stage": self.detected_stage,
            "reason": self.reason.value if self.reason else None,
            "error": self.error,
            "no_artifacts": self.no_artifacts,
        }


__all__ = ["Outcome", "OutcomeKind", "SkipReason", "Severity", "MUTATING_KINDS"]
