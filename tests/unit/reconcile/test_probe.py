import os
from pathlib import Path

import pytest

from skillforge.core.errors import ProbeError
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.stages import StageDefinition, StageTable


def test_missing_directory_detects_nothing(workspace: Path, probe: ArtifactProbe) -> None:
    assert probe.detect_furthest_stage(workspace / "nope") is None


def test_empty_directory_detects_nothing(workspace: Path, probe: ArtifactProbe) -> None:
    (workspace / "empty").mkdir()
    assert probe.detect_furthest_stage(workspace / "empty") is None


@pytest.mark.parametrize("stage", [0, 4, 5])
def test_detects_furthest_complete_stage(workspace: Path, probe: ArtifactProbe, build, stage: int) -> None:
    skill_dir = build(workspace, "s", stage)
    assert probe.detect_furthest_stage(skill_dir) == stage


def test_partial_first_stage_is_not_reached(workspace: Path, probe: ArtifactProbe, write) -> None:
    skill_dir = workspace / "s"
    write(skill_dir, ["context/research-plan.md"])
    assert probe.detect_furthest_stage(skill_dir) is None


def test_gap_stops_the_scan(workspace: Path, probe: ArtifactProbe, write) -> None:
    # SKILL.md present but decisions.md missing: only stage 0 counts
    skill_dir = workspace / "s"
    write(skill_dir, ["context/research-plan.md", "context/clarifications.md", "SKILL.md"])
    assert probe.detect_furthest_stage(skill_dir) == 0


def test_terminal_artifact_without_earlier_stages(workspace: Path, probe: ArtifactProbe, write) -> None:
    skill_dir = workspace / "s"
    write(skill_dir, ["SKILL.md"])
    assert probe.detect_furthest_stage(skill_dir) is None
    assert probe.has_terminal_artifact(skill_dir) is True
    assert probe.has_any_evidence(skill_dir) is True


def test_detection_does_not_touch_disk(workspace: Path, probe: ArtifactProbe, build) -> None:
    skill_dir = build(workspace, "s", 4)
    before = sorted(p.relative_to(skill_dir) for p in skill_dir.rglob("*"))
    probe.detect_furthest_stage(skill_dir)
    after = sorted(p.relative_to(skill_dir) for p in skill_dir.rglob("*"))
    assert before == after


def test_cleanup_beyond_removes_later_stage_files(workspace: Path, probe: ArtifactProbe, build, write) -> None:
    skill_dir = build(workspace, "s", 5)
    write(skill_dir, ["references/api.md", "context/test-skill.md", "context/agent-validation-log.md"])

    deleted = probe.cleanup_beyond(skill_dir, 4)

    assert skill_dir / "SKILL.md" in deleted
    assert not (skill_dir / "SKILL.md").exists()
    assert not (skill_dir / "references").exists()
    assert not (skill_dir / "context" / "test-skill.md").exists()
    assert not (skill_dir / "context" / "agent-validation-log.md").exists()
    assert (skill_dir / "context" / "decisions.md").exists()
    assert (skill_dir / "context" / "research-plan.md").exists()


def test_cleanup_beyond_none_removes_every_stage(workspace: Path, probe: ArtifactProbe, build) -> None:
    skill_dir = build(workspace, "s", 5)
    probe.cleanup_beyond(skill_dir, None)
    assert probe.detect_furthest_stage(skill_dir) is None
    assert skill_dir.exists()


def test_cleanup_beyond_terminal_is_noop(workspace: Path, probe: ArtifactProbe, build) -> None:
    skill_dir = build(workspace, "s", 5)
    assert probe.cleanup_beyond(skill_dir, 6) == []
    assert probe.detect_furthest_stage(skill_dir) == 5


def test_remove_directory(workspace: Path, probe: ArtifactProbe, build) -> None:
    skill_dir = build(workspace, "s", 4)
    assert probe.remove_directory(skill_dir) is True
    assert not skill_dir.exists()
    assert probe.remove_directory(skill_dir) is False


def test_list_candidate_dirs_skips_dot_dirs_and_files(workspace: Path, probe: ArtifactProbe) -> None:
    (workspace / "alpha").mkdir()
    (workspace / ".git").mkdir()
    (workspace / "notes.txt").write_text("x")
    (workspace / "beta").mkdir()

    names = [p.name for p in probe.list_candidate_dirs(workspace)]
    assert names == ["alpha", "beta"]


def test_list_candidate_dirs_of_missing_workspace(tmp_path: Path, probe: ArtifactProbe) -> None:
    assert probe.list_candidate_dirs(tmp_path / "missing") == []


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions, non-root")
def test_unreadable_directory_raises_probe_error(workspace: Path, probe: ArtifactProbe, build) -> None:
    skill_dir = build(workspace, "locked", 4)
    skill_dir.chmod(0)
    try:
        with pytest.raises(ProbeError):
            probe.detect_furthest_stage(skill_dir)
    finally:
        skill_dir.chmod(0o755)


def test_custom_stage_table(workspace: Path, write) -> None:
    stages = StageTable([
        StageDefinition(stage=0, name="draft", evidence=("draft.md",)),
        StageDefinition(stage=1, name="final", evidence=("final.md",)),
    ])
    probe = ArtifactProbe(stages)
    skill_dir = workspace / "custom"
    write(skill_dir, ["draft.md", "final.md"])

    assert probe.terminal_stage == 1
    assert probe.detect_furthest_stage(skill_dir) == 1
    assert probe.has_terminal_artifact(skill_dir) is True
