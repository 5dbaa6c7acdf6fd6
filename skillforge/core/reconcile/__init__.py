"""Startup reconciliation of the skill catalog against the workspace."""

from skillforge.core.errors import (
    CatalogError,
    GateClosedError,
    ProbeError,
    ReconcileError,
    ResolutionError,
    StartupFailure,
)
from skillforge.core.reconcile.notifications import (
    AuditRecord,
    Discovery,
    Notification,
    NotificationSink,
    ResolutionOption,
)
from skillforge.core.reconcile.outcomes import Outcome, OutcomeKind, Severity, SkipReason
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.reconciler import Reconciler, plan_self_built
from skillforge.core.reconcile.resolution import DiscoveryResolver
from skillforge.core.reconcile.stages import SKILL_STAGES, StageDefinition, StageTable

__all__ = [
    "ArtifactProbe",
    "AuditRecord",
    "CatalogError",
    "Discovery",
    "DiscoveryResolver",
    "GateClosedError",
    "Notification",
    "NotificationSink",
    "Outcome",
    "OutcomeKind",
    "ProbeError",
    "ReconcileError",
    "Reconciler",
    "ResolutionError",
    "ResolutionOption",
    "SKILL_STAGES",
    "Severity",
    "SkipReason",
    "StageDefinition",
    "StageTable",
    "StartupFailure",
    "plan_self_built",
]
