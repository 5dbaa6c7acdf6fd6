"""Skill catalog and workflow session registry."""

from skillforge.skills.catalog import (
    CatalogEntry,
    CatalogStore,
    Origin,
    ProgressStatus,
    WorkflowProgress,
)
from skillforge.skills.sessions import SessionGuard, SessionRegistry, WorkflowSession

__all__ = [
    "CatalogEntry",
    "CatalogStore",
    "Origin",
    "ProgressStatus",
    "WorkflowProgress",
    "SessionGuard",
    "SessionRegistry",
    "WorkflowSession",
]
