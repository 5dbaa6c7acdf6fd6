"""Reconciliation exceptions."""

from __future__ import annotations

from typing import Optional


class ReconcileError(RuntimeError):
    """Base class for reconciliation errors."""


class ProbeError(ReconcileError):
    """Filesystem access failed for one skill directory.

    Non-fatal: the skill is skipped for the current run and left unchanged.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CatalogError(ReconcileError):
    """Catalog read or write failed. Aborts the whole run."""

    def __init__(self, operation: str, skill_name: Optional[str] = None, cause: Optional[BaseException] = None):
        self.operation = operation
        self.skill_name = skill_name
        message = f"Catalog {operation} failed"
        if skill_name:
            message += f" for '{skill_name}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ResolutionError(ReconcileError):
    """A discovery resolution was invalid or no longer applies."""


class GateClosedError(ReconcileError):
    """The startup gate still has unacknowledged notifications or unresolved discoveries."""

    def __init__(self, pending_notifications: int, pending_discoveries: int):
        self.pending_notifications = pending_notifications
        self.pending_discoveries = pending_discoveries
        super().__init__(
            f"Startup gate closed: {pending_notifications} notification(s) to acknowledge, "
            f"{pending_discoveries} discovery(ies) to resolve"
        )


class StartupFailure(ReconcileError):
    """Reconciliation aborted; the application must not proceed."""
