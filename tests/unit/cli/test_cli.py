import json
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from skillforge.cli.main import cli
from skillforge.core.time import from_epoch_ms
from skillforge.skills.catalog import CatalogStore, Origin
from skillforge.skills.sessions import SessionRegistry


@pytest.fixture
def config_file(tmp_path: Path, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"workspace_path: {workspace}\n"
        f"db_path: {tmp_path / 'catalog.sqlite'}\n"
        f"log_file: {tmp_path / 'skillforge.log'}\n"
        "log_level: ERROR\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SKILLFORGE_CONFIG", str(path))
    return path


@pytest.fixture
def cli_catalog(tmp_path: Path, config_file: Path) -> CatalogStore:
    return CatalogStore(db_path=str(tmp_path / "catalog.sqlite"))


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "skillforge" in result.output


def test_reconcile_clean_workspace(config_file: Path) -> None:
    result = CliRunner().invoke(cli, ["reconcile"])
    assert result.exit_code == 0, result.output
    assert "in sync" in result.output


def test_reconcile_json_reports_pending(config_file: Path, workspace: Path, build) -> None:
    build(workspace, "half-done", 4)
    build(workspace, "orphan-skill", 5)

    result = CliRunner().invoke(cli, ["reconcile", "--json"])

    assert result.exit_code == 2
    payload = json.loads(result.output)
    assert [n["message"] for n in payload["notifications"]] == [
        "'half-done' removed — incomplete artifacts on disk"
    ]
    assert payload["discoveries"] == [{"name": "orphan-skill", "detected_stage": 5, "options": ["add", "remove"]}]


def test_reconcile_interactive_clears_gate(config_file: Path, cli_catalog: CatalogStore, workspace: Path, build) -> None:
    build(workspace, "half-done", 0)
    build(workspace, "orphan-skill", 5)

    result = CliRunner().invoke(cli, ["reconcile"], input="y\nadd\n")

    assert result.exit_code == 0, result.output
    assert "Startup gate open" in result.output
    assert cli_catalog.get_entry("orphan-skill") is not None
    assert not (workspace / "half-done").exists()


def test_reconcile_declined_acknowledgment_keeps_gate_closed(config_file: Path, workspace: Path, build) -> None:
    build(workspace, "half-done", 0)

    result = CliRunner().invoke(cli, ["reconcile"], input="n\n")

    assert result.exit_code == 2


def test_reconcile_workspace_option(config_file: Path, tmp_path: Path, build) -> None:
    other = tmp_path / "other"
    build(other, "orphan-skill", 5)

    result = CliRunner().invoke(cli, ["reconcile", "--json", "--workspace", str(other), "--workers", "2"])

    assert result.exit_code == 2
    assert json.loads(result.output)["discoveries"][0]["name"] == "orphan-skill"


def test_bad_config_exits_2(tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("workers: 0\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["--config", str(bad), "reconcile"])

    assert result.exit_code == 2


def test_resolve_command(config_file: Path, cli_catalog: CatalogStore, workspace: Path, build) -> None:
    build(workspace, "orphan-skill", 5)
    build(workspace, "other-orphan", 5)

    runner = CliRunner()
    assert runner.invoke(cli, ["resolve", "orphan-skill", "add"]).exit_code == 0
    assert runner.invoke(cli, ["resolve", "other-orphan", "remove"]).exit_code == 0

    assert cli_catalog.get_entry("orphan-skill") is not None
    assert not (workspace / "other-orphan").exists()


def test_resolve_incomplete_directory_fails(config_file: Path, workspace: Path, build) -> None:
    build(workspace, "half-done", 4)

    result = CliRunner().invoke(cli, ["resolve", "half-done", "add"])

    assert result.exit_code == 2


def test_skills_list(config_file: Path, cli_catalog: CatalogStore) -> None:
    cli_catalog.create_entry("sales", Origin.SELF_BUILT, domain="crm")
    cli_catalog.create_progress_row("sales", 4)

    result = CliRunner().invoke(cli, ["skills", "list"])

    assert result.exit_code == 0, result.output
    assert "sales" in result.output
    assert "self-built" in result.output


def test_sessions_list_and_sweep(config_file: Path, cli_catalog: CatalogStore) -> None:
    registry = SessionRegistry(cli_catalog)
    registry.open_session("live", os.getpid())
    registry.open_session("dead", 999_999_999)

    runner = CliRunner()
    listed = runner.invoke(cli, ["sessions", "list"])
    assert listed.exit_code == 0
    assert "live" in listed.output
    assert "dead" in listed.output
    started = registry.list_open_sessions()[0].started_at
    assert from_epoch_ms(started).strftime("%Y-%m-%d %H:%M:%S") in listed.output

    swept = runner.invoke(cli, ["sessions", "sweep"])
    assert swept.exit_code == 0
    assert "Closed 1" in swept.output
    assert [s.skill_name for s in registry.list_open_sessions()] == ["live"]
