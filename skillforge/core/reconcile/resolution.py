"""Discovery resolution.

A complete, unrecognized skill directory is never adopted or deleted
automatically. The user picks one of the offered options and the choice is
applied here:

- add: register the directory as a completed self-built skill
- remove: delete the directory from disk

Disk is re-probed before either action; a directory that changed since the
run no longer matches the discovery and the resolution is refused.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from skillforge.core.errors import ResolutionError
from skillforge.core.reconcile.notifications import ResolutionOption
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.skills.catalog import CatalogEntry, CatalogStore, Origin, ProgressStatus

logger = logging.getLogger(__name__)


class DiscoveryResolver:
    """Applies user decisions on complete discoveries."""

    def __init__(self, catalog: CatalogStore, probe: ArtifactProbe, workspace_path: Path):
        self.catalog = catalog
        self.probe = probe
        self.workspace_path = Path(workspace_path)

    def resolve(self, name: str, option: Union[ResolutionOption, str]) -> Optional[CatalogEntry]:
        """Apply ``option`` to the discovery ``name``.

        Returns:
            The new catalog entry for ``add``, None for ``remove``

        Raises:
            ResolutionError: Unknown option, or the discovery no longer applies
            CatalogError: If the catalog write fails
        """
        try:
            option = ResolutionOption(option)
        except ValueError:
            raise ResolutionError(f"Unknown resolution option: {option!r}")

        if option == ResolutionOption.ADD:
            return self.add(name)
        self.remove(name)
        return None

    def add(self, name: str) -> CatalogEntry:
        skill_dir = self.workspace_path / name

        if self.catalog.get_entry(name) is not None:
            raise ResolutionError(f"'{name}' is already in the catalog")

        detected = self.probe.detect_furthest_stage(skill_dir)
        terminal = self.probe.terminal_stage
        if detected != terminal:
            raise ResolutionError(
                f"'{name}' is no longer complete on disk (detected stage {detected}, expected {terminal})"
            )

        entry = self.catalog.create_entry(name, Origin.SELF_BUILT, domain="unknown")
        self.catalog.create_progress_row(
            name,
            terminal,
            status=ProgressStatus.COMPLETED,
            completed_stages=self.probe.stages.detectable_ids,
        )
        logger.info(f"Discovery '{name}' added to catalog as completed self-built skill")
        return entry

    def remove(self, name: str) -> bool:
        skill_dir = self.workspace_path / name

        if self.catalog.get_entry(name) is not None:
            raise ResolutionError(f"'{name}' is in the catalog; refusing to delete its directory")

        removed = self.probe.remove_directory(skill_dir)
        if removed:
            logger.info(f"Discovery '{name}' removed from disk")
        else:
            logger.warning(f"Discovery '{name}' was already gone from disk")
        return removed


__all__ = ["DiscoveryResolver"]
