from pathlib import Path
from typing import Iterable

import pytest

from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.stages import SKILL_STAGES
from skillforge.skills.catalog import CatalogStore


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real ~/.skillforge."""
    home = tmp_path / "home"
    monkeypatch.setenv("SKILLFORGE_HOME", str(home))
    for var in ("SKILLFORGE_CONFIG", "SKILLFORGE_WORKSPACE", "SKILLFORGE_DB_PATH"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def catalog(tmp_path: Path) -> CatalogStore:
    return CatalogStore(db_path=str(tmp_path / "catalog.sqlite"))


@pytest.fixture
def probe() -> ArtifactProbe:
    return ArtifactProbe()


def write_files(skill_dir: Path, paths: Iterable[str]) -> None:
    for rel in paths:
        path = skill_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"# {rel}\n", encoding="utf-8")


def build_to_stage(workspace: Path, name: str, stage: int) -> Path:
    """Write the evidence of every detectable stage up to ``stage``."""
    skill_dir = workspace / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    for definition in SKILL_STAGES:
        if definition.stage > stage:
            break
        write_files(skill_dir, definition.evidence)
    return skill_dir


@pytest.fixture
def build():
    """build(workspace, name, stage) -> skill directory with evidence up to stage."""
    return build_to_stage


@pytest.fixture
def write():
    """write(skill_dir, paths) -> create each relative path as a small file."""
    return write_files
