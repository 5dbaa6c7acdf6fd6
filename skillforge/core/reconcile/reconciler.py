"""Startup Reconciler - align the skill catalog with the workspace on disk.

Runs once per process start, before anything else is usable:

Pass 1 walks every catalog row:
1. Skills with a live external session are skipped untouched
2. Self-built skills: compare the recorded stage with the furthest stage
   proven by evidence on disk, then reset, advance, recreate or confirm
3. Imported / uploaded skills: keep if the terminal artifact exists,
   delete the row otherwise

Pass 2 scans the workspace for directories the catalog does not know:
1. Complete evidence: queued as a discovery for an explicit user decision
2. Partial evidence: deleted as debris

Design:
- Collaborators (catalog, probe, session guard, sink) are injected
- Planning is a pure function of (recorded, detected, directory exists);
  applying is table-driven over OutcomeKind
- A ProbeError skips one skill; a CatalogError aborts the run
- Rerunning with no intervening change yields no new notifications
"""

import logging
from collections import Counter
from concurrent import futures
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from skillforge.core.errors import ProbeError
from skillforge.core.reconcile.notifications import NotificationSink
from skillforge.core.reconcile.outcomes import Outcome, OutcomeKind, Severity, SkipReason
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.stages import StageTable
from skillforge.skills.catalog import (
    CatalogEntry,
    CatalogStore,
    Origin,
    ProgressStatus,
    WorkflowProgress,
)
from skillforge.skills.sessions import SessionGuard

logger = logging.getLogger(__name__)


def plan_self_built(
    name: str,
    recorded: Optional[int],
    detected: Optional[int],
    dir_exists: bool,
    stages: StageTable,
) -> Outcome:
    """Decide the outcome of a self-built skill.

    Args:
        name: Skill name
        recorded: current_stage of the progress row, None without a row
        detected: Furthest stage proven on disk, None without evidence
        dir_exists: Whether the skill directory exists
        stages: Stage table used for detection

    Returns:
        Outcome with from_stage=recorded and to_stage=the stage to store
    """
    base = dict(
        skill_name=name,
        origin=Origin.SELF_BUILT.value,
        pass_no=1,
        detected_stage=detected,
    )

    if not dir_exists:
        target = 0 if recorded is not None and recorded > 0 else recorded
        return Outcome(OutcomeKind.RECREATED_DIR, from_stage=recorded, to_stage=target, **base)

    if recorded is None:
        if detected is None:
            return Outcome(OutcomeKind.PENDING, **base)
        return Outcome(OutcomeKind.RECREATED_ROW, to_stage=detected, **base)

    if detected is None:
        if recorded > 0:
            return Outcome(OutcomeKind.RESET, from_stage=recorded, to_stage=0, no_artifacts=True, **base)
        return Outcome(OutcomeKind.PENDING, from_stage=recorded, to_stage=recorded, **base)

    # A recorded review step (no artifact of its own) implies the last
    # detectable stage before it
    implied = stages.last_detectable_at_or_below(recorded)

    if implied == detected:
        return Outcome(OutcomeKind.CONFIRMED, from_stage=recorded, to_stage=recorded, **base)
    if implied is not None and implied > detected:
        return Outcome(OutcomeKind.RESET, from_stage=recorded, to_stage=detected, **base)
    return Outcome(OutcomeKind.ADVANCED, from_stage=recorded, to_stage=detected, **base)


class Reconciler:
    """Two-pass catalog/disk reconciliation.

    Example:
        >>> reconciler = Reconciler(catalog, probe, guard, workspace_path)
        >>> sink = reconciler.run()
        >>> for n in sink.notifications():
        ...     print(n.message)
    """

    # One applier per outcome kind
    APPLIERS: Dict[OutcomeKind, str] = {
        OutcomeKind.SKIPPED: "_apply_nothing",
        OutcomeKind.PENDING: "_apply_nothing",
        OutcomeKind.DISCOVERED_COMPLETE: "_apply_nothing",
        OutcomeKind.CONFIRMED: "_apply_confirmed",
        OutcomeKind.RESET: "_apply_reset",
        OutcomeKind.ADVANCED: "_apply_advanced",
        OutcomeKind.RECREATED_ROW: "_apply_recreated_row",
        OutcomeKind.RECREATED_DIR: "_apply_recreated_dir",
        OutcomeKind.REMOVED: "_apply_removed",
        OutcomeKind.DISCOVERED_INCOMPLETE: "_apply_discovered_incomplete",
    }

    def __init__(
        self,
        catalog: CatalogStore,
        probe: ArtifactProbe,
        guard: SessionGuard,
        workspace_path: Path,
        sink: Optional[NotificationSink] = None,
        workers: int = 1,
    ):
        """Initialize reconciler

        Args:
            catalog: Catalog store (source of Pass 1 rows)
            probe: Artifact probe over the stage table
            guard: Session guard consulted before touching a skill
            workspace_path: Root directory holding one directory per skill
            sink: Notification sink (a fresh one if None)
            workers: Pass 1 worker threads; 1 runs sequentially
        """
        self.catalog = catalog
        self.probe = probe
        self.guard = guard
        self.workspace_path = Path(workspace_path)
        self.sink = sink or NotificationSink()
        self.workers = max(1, int(workers))

    @property
    def stages(self) -> StageTable:
        return self.probe.stages

    def skill_dir(self, name: str) -> Path:
        return self.workspace_path / name

    def run(self) -> NotificationSink:
        """Run Pass 1 then Pass 2.

        Returns:
            The sink holding audit records, notifications and discoveries

        Raises:
            CatalogError: If the catalog cannot be read or written
        """
        logger.info(f"[reconcile] starting: workspace={self.workspace_path} workers={self.workers}")

        # Taken before Pass 1: rows it deletes stay excluded from Pass 2
        known = set(self.catalog.names())

        outcomes = self.reconcile_catalog()
        outcomes += self.scan_discoveries(known)

        counts = Counter(o.kind.value for o in outcomes)
        logger.info(
            f"[reconcile] done: {len(outcomes)} skill(s), "
            f"{len(self.sink.notifications())} notification(s), "
            f"{len(self.sink.discoveries())} discovery(ies), outcomes={dict(counts)}"
        )
        return self.sink

    # ------------------------------------------------------------------
    # Pass 1
    # ------------------------------------------------------------------

    def reconcile_catalog(self) -> List[Outcome]:
        """Pass 1: reconcile every catalog row against disk."""
        entries = self.catalog.all_entries()
        logger.debug(f"[reconcile] pass 1: {len(entries)} catalog row(s)")

        if self.workers <= 1 or len(entries) <= 1:
            return [self.reconcile_entry(entry, progress) for entry, progress in entries]

        return self._reconcile_concurrently(entries)

    def _reconcile_concurrently(
        self,
        entries: List[Tuple[CatalogEntry, Optional[WorkflowProgress]]],
    ) -> List[Outcome]:
        outcomes: List[Outcome] = []
        pool = futures.ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="reconcile")
        try:
            pending = [pool.submit(self.reconcile_entry, entry, progress) for entry, progress in entries]
            for future in futures.as_completed(pending):
                outcomes.append(future.result())
        except BaseException:
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
        return outcomes

    def reconcile_entry(self, entry: CatalogEntry, progress: Optional[WorkflowProgress]) -> Outcome:
        """Reconcile one catalog row and record its outcome."""
        origin = entry.origin.value

        if self.guard.is_active(entry.name):
            outcome = Outcome(
                OutcomeKind.SKIPPED,
                skill_name=entry.name,
                origin=origin,
                reason=SkipReason.ACTIVE_SESSION,
            )
        else:
            skill_dir = self.skill_dir(entry.name)
            try:
                outcome = self._plan_entry(entry, progress, skill_dir)
                self._apply(outcome, skill_dir)
            except ProbeError as e:
                logger.warning(f"[reconcile] '{entry.name}': skipped, cannot read artifacts: {e}")
                outcome = Outcome(
                    OutcomeKind.SKIPPED,
                    skill_name=entry.name,
                    origin=origin,
                    reason=SkipReason.PROBE_ERROR,
                    error=str(e),
                )

        self.sink.record(outcome)
        return outcome

    def _plan_entry(
        self,
        entry: CatalogEntry,
        progress: Optional[WorkflowProgress],
        skill_dir: Path,
    ) -> Outcome:
        if entry.origin == Origin.SELF_BUILT:
            recorded = progress.current_stage if progress is not None else None
            dir_exists = self.probe.exists(skill_dir)
            detected = self.probe.detect_furthest_stage(skill_dir) if dir_exists else None
            logger.debug(
                f"[reconcile] '{entry.name}': recorded={recorded} detected={detected} dir_exists={dir_exists}"
            )
            return plan_self_built(entry.name, recorded, detected, dir_exists, self.stages)

        # imported / discovered-upload: binary terminal artifact check
        if self.probe.has_terminal_artifact(skill_dir):
            return Outcome(OutcomeKind.CONFIRMED, skill_name=entry.name, origin=entry.origin.value)
        return Outcome(OutcomeKind.REMOVED, skill_name=entry.name, origin=entry.origin.value)

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def scan_discoveries(self, known: Optional[Iterable[str]] = None) -> List[Outcome]:
        """Pass 2: classify workspace directories unknown to the catalog.

        Args:
            known: Catalog names to exclude; read from the catalog if None
        """
        known = set(self.catalog.names() if known is None else known)

        try:
            candidates = self.probe.list_candidate_dirs(self.workspace_path)
        except ProbeError as e:
            logger.warning(f"[reconcile] pass 2: cannot scan workspace: {e}")
            self.sink.record_user_notification(
                Severity.WARNING,
                f"Workspace {self.workspace_path} could not be scanned: {e}",
            )
            return []

        outcomes = []
        for skill_dir in candidates:
            if skill_dir.name in known:
                continue
            outcome = self.reconcile_discovery(skill_dir)
            if outcome is not None:
                outcomes.append(outcome)
        logger.debug(f"[reconcile] pass 2: {len(outcomes)} discovery(ies)")
        return outcomes

    def reconcile_discovery(self, skill_dir: Path) -> Optional[Outcome]:
        """Classify one unknown directory.

        Returns:
            The recorded outcome, or None when the directory carries no
            stage evidence at all and is not a skill
        """
        name = skill_dir.name

        if self.guard.is_active(name):
            outcome = Outcome(
                OutcomeKind.SKIPPED,
                skill_name=name,
                pass_no=2,
                reason=SkipReason.ACTIVE_SESSION,
            )
        else:
            try:
                if not self.probe.has_any_evidence(skill_dir):
                    logger.debug(f"[reconcile] '{name}': no stage evidence, not a skill directory")
                    return None
                detected = self.probe.detect_furthest_stage(skill_dir)
                if detected == self.stages.terminal_stage:
                    outcome = Outcome(
                        OutcomeKind.DISCOVERED_COMPLETE,
                        skill_name=name,
                        pass_no=2,
                        to_stage=detected,
                        detected_stage=detected,
                    )
                else:
                    outcome = Outcome(
                        OutcomeKind.DISCOVERED_INCOMPLETE,
                        skill_name=name,
                        pass_no=2,
                        detected_stage=detected,
                    )
                self._apply(outcome, skill_dir)
            except ProbeError as e:
                logger.warning(f"[reconcile] '{name}': skipped discovery, cannot read artifacts: {e}")
                outcome = Outcome(
                    OutcomeKind.SKIPPED,
                    skill_name=name,
                    pass_no=2,
                    reason=SkipReason.PROBE_ERROR,
                    error=str(e),
                )

        self.sink.record(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Appliers
    # ------------------------------------------------------------------

    def _apply(self, outcome: Outcome, skill_dir: Path) -> None:
        method_name = self.APPLIERS.get(outcome.kind)
        if method_name is None:
            raise TypeError(f"No applier for outcome kind {outcome.kind!r}")
        getattr(self, method_name)(outcome, skill_dir)

    def _completed_through(self, stage: Optional[int]) -> List[int]:
        if stage is None:
            return []
        return [s for s in self.stages.detectable_ids if s <= stage]

    def _review_steps_between(self, detected: Optional[int], recorded: Optional[int]) -> List[int]:
        """Non-detectable steps after the detected stage and before the recorded one."""
        if detected is None or recorded is None:
            return []
        detectable = set(self.stages.detectable_ids)
        return [s for s in range(detected + 1, recorded) if s not in detectable]

    def _status_for(self, stage: int) -> ProgressStatus:
        if stage >= self.stages.terminal_stage:
            return ProgressStatus.COMPLETED
        return ProgressStatus.PENDING

    def _apply_nothing(self, outcome: Outcome, skill_dir: Path) -> None:
        pass

    def _apply_confirmed(self, outcome: Outcome, skill_dir: Path) -> None:
        detected = outcome.detected_stage
        self.catalog.mark_confirmed(
            outcome.skill_name,
            completed_stages=(
                self._completed_through(detected)
                + self._review_steps_between(detected, outcome.from_stage)
            ),
            completed=detected is not None and detected >= self.stages.terminal_stage,
        )

    def _apply_reset(self, outcome: Outcome, skill_dir: Path) -> None:
        self.probe.cleanup_beyond(skill_dir, outcome.to_stage)
        self.catalog.reset_stage(
            outcome.skill_name,
            outcome.to_stage,
            completed_stages=self._completed_through(outcome.detected_stage),
        )

    def _apply_advanced(self, outcome: Outcome, skill_dir: Path) -> None:
        self.catalog.advance_stage(
            outcome.skill_name,
            outcome.to_stage,
            status=self._status_for(outcome.to_stage),
            completed_stages=(
                self._completed_through(outcome.to_stage)
                + self._review_steps_between(outcome.to_stage, outcome.from_stage)
            ),
        )

    def _apply_recreated_row(self, outcome: Outcome, skill_dir: Path) -> None:
        self.catalog.create_progress_row(
            outcome.skill_name,
            outcome.to_stage,
            status=self._status_for(outcome.to_stage),
            completed_stages=self._completed_through(outcome.to_stage),
        )

    def _apply_recreated_dir(self, outcome: Outcome, skill_dir: Path) -> None:
        try:
            (skill_dir / "context").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProbeError(str(skill_dir), f"cannot recreate directory: {e}") from e
        logger.info(f"[reconcile] '{outcome.skill_name}': recreated missing workspace dir")
        if outcome.from_stage is not None and outcome.to_stage != outcome.from_stage:
            self.catalog.reset_stage(outcome.skill_name, outcome.to_stage)

    def _apply_removed(self, outcome: Outcome, skill_dir: Path) -> None:
        self.catalog.delete_entry(outcome.skill_name)

    def _apply_discovered_incomplete(self, outcome: Outcome, skill_dir: Path) -> None:
        self.probe.remove_directory(skill_dir)


__all__ = ["Reconciler", "plan_self_built"]
