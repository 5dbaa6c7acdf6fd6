"""Startup gate.

Runs reconciliation once per process start and keeps the application closed
until the user has:

- acknowledged every notification
- resolved every discovery (add or remove)

Example:
    from skillforge.config import load_config
    from skillforge.core.startup import run_startup_reconciliation

    gate = run_startup_reconciliation(load_config())
    for notification in gate.pending_notifications():
        print(notification.message)
    gate.acknowledge_all()
    for discovery in gate.pending_discoveries():
        gate.resolve(discovery.name, "remove")
    gate.require_open()
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional, Set

from skillforge.config.loader import ReconcileConfig
from skillforge.core.errors import CatalogError, GateClosedError, ResolutionError, StartupFailure
from skillforge.core.reconcile.notifications import (
    Discovery,
    Notification,
    NotificationSink,
    ResolutionOption,
)
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.reconciler import Reconciler
from skillforge.core.reconcile.resolution import DiscoveryResolver
from skillforge.skills.catalog import CatalogEntry, CatalogStore
from skillforge.skills.sessions import SessionGuard, SessionRegistry

logger = logging.getLogger(__name__)


class StartupGate:
    """Blocks application start until the reconciliation results are handled."""

    def __init__(self, sink: NotificationSink, resolver: DiscoveryResolver):
        self.sink = sink
        self.resolver = resolver
        self._lock = threading.Lock()
        self._acknowledged: Set[str] = set()
        self._resolved: Dict[str, ResolutionOption] = {}

    def pending_notifications(self) -> List[Notification]:
        with self._lock:
            return [n for n in self.sink.notifications() if n.id not in self._acknowledged]

    def pending_discoveries(self) -> List[Discovery]:
        with self._lock:
            return [d for d in self.sink.discoveries() if d.name not in self._resolved]

    def acknowledge(self, notification_id: str) -> None:
        known = {n.id for n in self.sink.notifications()}
        if notification_id not in known:
            raise KeyError(f"Unknown notification: {notification_id}")
        with self._lock:
            self._acknowledged.add(notification_id)

    def acknowledge_all(self) -> int:
        """Acknowledge every pending notification; returns how many."""
        pending = self.pending_notifications()
        with self._lock:
            self._acknowledged.update(n.id for n in pending)
        return len(pending)

    def resolve(self, name: str, option: str) -> Optional[CatalogEntry]:
        """Apply the user's decision on a pending discovery.

        Raises:
            ResolutionError: Not a pending discovery, option not offered,
                or disk changed since the run
        """
        discovery = next((d for d in self.pending_discoveries() if d.name == name), None)
        if discovery is None:
            raise ResolutionError(f"'{name}' is not a pending discovery")

        try:
            choice = ResolutionOption(option)
        except ValueError:
            raise ResolutionError(f"Unknown resolution option: {option!r}")
        if choice not in discovery.options:
            raise ResolutionError(f"Option '{choice.value}' is not offered for '{name}'")

        entry = self.resolver.resolve(name, choice)
        with self._lock:
            self._resolved[name] = choice
        logger.info(f"Discovery '{name}' resolved: {choice.value}")
        return entry

    @property
    def is_open(self) -> bool:
        return not self.pending_notifications() and not self.pending_discoveries()

    def require_open(self) -> None:
        notifications = len(self.pending_notifications())
        discoveries = len(self.pending_discoveries())
        if notifications or discoveries:
            raise GateClosedError(notifications, discoveries)

    def payload(self) -> Dict[str, Any]:
        """Pending items in the decision gate payload shape."""
        return {
            "notifications": [n.model_dump(mode="json") for n in self.pending_notifications()],
            "discoveries": [d.model_dump(mode="json") for d in self.pending_discoveries()],
        }


def build_reconciler(config: ReconcileConfig, catalog: Optional[CatalogStore] = None) -> Reconciler:
    """Wire a Reconciler from configuration."""
    catalog = catalog or CatalogStore(db_path=str(config.db_path))
    probe = ArtifactProbe(config.stages)
    guard = SessionGuard(SessionRegistry(catalog))
    return Reconciler(
        catalog,
        probe,
        guard,
        config.workspace_path,
        workers=config.workers,
    )


def run_startup_reconciliation(config: ReconcileConfig) -> StartupGate:
    """Reconcile once and return the gate holding the results.

    Raises:
        StartupFailure: If the catalog could not be read or written
    """
    logger.info(f"Startup reconciliation (pid={os.getpid()}, workspace={config.workspace_path})")

    try:
        config.workspace_path.mkdir(parents=True, exist_ok=True)
        catalog = CatalogStore(db_path=str(config.db_path))
        closed = SessionRegistry(catalog).close_dead_sessions()
        if closed:
            logger.info(f"Closed {closed} orphaned workflow session(s)")

        reconciler = build_reconciler(config, catalog)
        sink = reconciler.run()
    except CatalogError as e:
        logger.error(f"Startup reconciliation aborted: {e}")
        raise StartupFailure(f"Startup reconciliation aborted: {e}") from e
    except OSError as e:
        logger.error(f"Cannot prepare workspace {config.workspace_path}: {e}")
        raise StartupFailure(f"Cannot prepare workspace {config.workspace_path}: {e}") from e

    gate = StartupGate(sink, DiscoveryResolver(catalog, reconciler.probe, config.workspace_path))
    if gate.is_open:
        logger.info("Startup gate open: nothing to acknowledge")
    else:
        logger.info(
            f"Startup gate closed: {len(gate.pending_notifications())} notification(s), "
            f"{len(gate.pending_discoveries())} discovery(ies)"
        )
    return gate


__all__ = ["StartupGate", "build_reconciler", "run_startup_reconciliation"]
