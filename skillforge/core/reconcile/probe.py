"""Artifact Probe - inspect skill directories for stage evidence.

This module provides:
- ArtifactProbe.detect_furthest_stage(): forward scan over the stage table,
  stopping at the first stage whose evidence is incomplete
- ArtifactProbe.has_terminal_artifact(): binary check for imported skills
- ArtifactProbe.cleanup_beyond(): delete files of stages past a given stage
- ArtifactProbe.remove_directory(): delete a whole skill directory

Detection never mutates the filesystem. Only the reconciler calls the
cleanup operations, and only after a stage has been determined.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from skillforge.core.errors import ProbeError
from skillforge.core.reconcile.stages import StageTable

logger = logging.getLogger(__name__)


def _exists(path: Path) -> bool:
    """Like Path.exists(), but only "not found" means False.

    Permission and I/O errors raise ProbeError so that an unreadable
    directory is never mistaken for an empty one.
    """
    try:
        path.stat()
        return True
    except (FileNotFoundError, NotADirectoryError):
        return False
    except OSError as e:
        raise ProbeError(str(path), e.strerror or str(e)) from e


class ArtifactProbe:
    """Stage detection and cleanup over a stage table."""

    def __init__(self, stages: Optional[StageTable] = None):
        self.stages = stages or StageTable()

    @property
    def terminal_stage(self) -> int:
        return self.stages.terminal_stage

    def exists(self, path: Path) -> bool:
        return _exists(Path(path))

    def detect_furthest_stage(self, skill_dir: Path) -> Optional[int]:
        """Return the furthest contiguously completed stage, or None.

        Args:
            skill_dir: Root directory of one skill

        Returns:
            Last stage of the passing prefix of detectable stages. None when
            the directory is missing or the first stage lacks evidence.

        Raises:
            ProbeError: If the directory cannot be inspected
        """
        skill_dir = Path(skill_dir)
        if not _exists(skill_dir):
            logger.debug(f"[probe] {skill_dir}: directory does not exist")
            return None

        furthest: Optional[int] = None
        for definition in self.stages.detectable:
            missing = [rel for rel in definition.evidence if not _exists(skill_dir / rel)]
            if missing:
                logger.debug(
                    f"[probe] {skill_dir.name}: stage {definition.stage} incomplete, missing {missing}"
                )
                break
            furthest = definition.stage

        logger.debug(f"[probe] {skill_dir.name}: furthest stage = {furthest}")
        return furthest

    def has_terminal_artifact(self, skill_dir: Path) -> bool:
        """Check the single canonical output file."""
        return _exists(Path(skill_dir) / self.stages.terminal_artifact)

    def has_any_evidence(self, skill_dir: Path) -> bool:
        """True when at least one evidence file of any stage exists."""
        skill_dir = Path(skill_dir)
        return any(_exists(skill_dir / rel) for rel in self.stages.evidence_paths())

    def cleanup_beyond(self, skill_dir: Path, stage: Optional[int]) -> List[Path]:
        """Delete files belonging to stages strictly greater than ``stage``.

        Args:
            skill_dir: Root directory of one skill
            stage: Last stage to keep; None removes the files of every stage

        Returns:
            Paths that were deleted

        Raises:
            ProbeError: If a file or directory cannot be removed
        """
        skill_dir = Path(skill_dir)
        deleted: List[Path] = []

        for definition in self.stages.beyond(stage):
            for rel in definition.owned_paths():
                path = skill_dir / rel
                if not _exists(path):
                    continue
                try:
                    if path.is_dir() and not path.is_symlink():
                        shutil.rmtree(path)
                    else:
                        path.unlink()
                except OSError as e:
                    raise ProbeError(str(path), f"cleanup failed: {e}") from e
                deleted.append(path)
                logger.debug(f"[probe] {skill_dir.name}: deleted {rel} (stage {definition.stage})")

        return deleted

    def remove_directory(self, skill_dir: Path) -> bool:
        """Delete a skill directory and everything under it.

        Returns:
            True if something was removed, False if it was already gone
        """
        skill_dir = Path(skill_dir)
        if not _exists(skill_dir):
            return False
        try:
            shutil.rmtree(skill_dir)
        except OSError as e:
            raise ProbeError(str(skill_dir), f"removal failed: {e}") from e
        logger.info(f"[probe] removed directory {skill_dir}")
        return True

    def list_candidate_dirs(self, workspace: Path) -> List[Path]:
        """Skill-like subdirectories of the workspace root.

        Dot-prefixed infrastructure directories and plain files are skipped.
        Entries whose type cannot be read are kept so the per-skill probe
        reports the error.
        """
        workspace = Path(workspace)
        if not _exists(workspace):
            return []

        try:
            entries = sorted(os.scandir(workspace), key=lambda e: e.name)
        except OSError as e:
            raise ProbeError(str(workspace), e.strerror or str(e)) from e

        candidates = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError as e:
                logger.warning(f"[probe] cannot stat {entry.path}: {e}")
            candidates.append(Path(entry.path))
        return candidates


__all__ = ["ArtifactProbe"]
