"""CLI main entry point

Commands:
- skillforge reconcile: run startup reconciliation and the acknowledgment gate
- skillforge resolve NAME add|remove: resolve a discovered skill directory
- skillforge skills list: show the catalog
- skillforge sessions list|sweep: inspect or clean up workflow sessions
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from skillforge import __version__
from skillforge.config import ConfigError, ReconcileConfig, load_config
from skillforge.core.errors import CatalogError, ProbeError, ResolutionError, StartupFailure
from skillforge.core.logging import configure_logging
from skillforge.core.reconcile.notifications import ResolutionOption
from skillforge.core.reconcile.probe import ArtifactProbe
from skillforge.core.reconcile.resolution import DiscoveryResolver
from skillforge.core.startup.gate import StartupGate, run_startup_reconciliation
from skillforge.core.time import from_epoch_ms
from skillforge.skills.catalog import CatalogStore
from skillforge.skills.sessions import SessionRegistry

console = Console()

EXIT_FATAL = 1
EXIT_GATE_CLOSED = 2

SEVERITY_STYLES = {
    "info": "cyan",
    "warning": "yellow",
    "error": "red",
}


def _load(ctx: click.Context) -> ReconcileConfig:
    """Load config from the group options, exit 2 on a config error."""
    opts = ctx.find_root().obj or {}
    try:
        config = load_config(opts.get("config"))
    except ConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_GATE_CLOSED)

    configure_logging(
        level="DEBUG" if opts.get("verbose") else config.log_level,
        log_file=config.log_file,
        console=Console(stderr=True),
    )
    return config


@click.group()
@click.version_option(version=__version__, prog_name="skillforge")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file (YAML)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output, including the audit trail")
@click.pass_context
def cli(ctx, config_path, verbose):
    """skillforge - skill workspace manager

    Reconciles the skill catalog with the workspace on every start.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    ctx.obj["verbose"] = verbose


def _print_notifications(gate: StartupGate) -> None:
    table = Table(title="Startup reconciliation")
    table.add_column("Severity", style="bold")
    table.add_column("Skill", style="cyan")
    table.add_column("Message")

    for n in gate.pending_notifications():
        style = SEVERITY_STYLES.get(n.severity.value, "white")
        table.add_row(f"[{style}]{n.severity.value}[/{style}]", n.skill_name or "-", n.message)

    console.print(table)


def _resolve_discoveries(gate: StartupGate) -> None:
    for discovery in gate.pending_discoveries():
        console.print(
            f"\n[bold]'{discovery.name}'[/bold] was found on disk with complete artifacts "
            f"but is not in the catalog."
        )
        choice = Prompt.ask(
            "Add it to the catalog or remove it from disk?",
            choices=[o.value for o in discovery.options],
            console=console,
        )
        try:
            gate.resolve(discovery.name, choice)
        except (ResolutionError, ProbeError) as e:
            console.print(f"[red]✗ {e}[/red]")
            continue
        if choice == ResolutionOption.ADD.value:
            console.print(f"[green]✓ '{discovery.name}' added as a completed skill[/green]")
        else:
            console.print(f"[green]✓ '{discovery.name}' removed from disk[/green]")


@cli.command()
@click.option("--workspace", type=click.Path(file_okay=False), help="Override workspace path")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Override catalog database path")
@click.option("--workers", type=click.IntRange(min=1), help="Pass 1 worker threads")
@click.option("--json", "as_json", is_flag=True, help="Print the gate payload as JSON and exit")
@click.pass_context
def reconcile(ctx, workspace, db_path, workers, as_json):
    """Reconcile the catalog with the workspace and clear the startup gate.

    Exits 0 once every notification is acknowledged and every discovery is
    resolved, 2 while anything is pending, 1 if reconciliation aborted.
    """
    config = _load(ctx)
    if workspace:
        config.workspace_path = Path(workspace).expanduser()
    if db_path:
        config.db_path = Path(db_path).expanduser()
    if workers:
        config.workers = workers

    try:
        gate = run_startup_reconciliation(config)
    except StartupFailure as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FATAL)

    if as_json:
        click.echo(json.dumps(gate.payload(), indent=2))
        sys.exit(0 if gate.is_open else EXIT_GATE_CLOSED)

    if gate.is_open:
        console.print("[green]✓ Catalog and workspace are in sync[/green]")
        return

    if gate.pending_notifications():
        _print_notifications(gate)
        if Confirm.ask("Acknowledge all notifications?", default=True, console=console):
            gate.acknowledge_all()

    _resolve_discoveries(gate)

    if not gate.is_open:
        console.print("[yellow]⚠ Startup gate still closed, run `skillforge reconcile` again[/yellow]")
        sys.exit(EXIT_GATE_CLOSED)
    console.print("[green]✓ Startup gate open[/green]")


@cli.command()
@click.argument("name")
@click.argument("option", type=click.Choice([o.value for o in ResolutionOption]))
@click.pass_context
def resolve(ctx, name, option):
    """Resolve a discovered skill directory NAME with OPTION (add or remove)."""
    config = _load(ctx)
    try:
        catalog = CatalogStore(db_path=str(config.db_path))
        resolver = DiscoveryResolver(catalog, ArtifactProbe(config.stages), config.workspace_path)
        resolver.resolve(name, option)
    except (ResolutionError, ProbeError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_GATE_CLOSED)
    except CatalogError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FATAL)

    verb = "added to the catalog" if option == ResolutionOption.ADD.value else "removed from disk"
    console.print(f"[green]✓ '{name}' {verb}[/green]")


@cli.group()
def skills():
    """Skill catalog commands."""
    pass


@skills.command(name="list")
@click.pass_context
def list_skills(ctx):
    """List catalog entries with their workflow progress."""
    config = _load(ctx)
    try:
        entries = CatalogStore(db_path=str(config.db_path)).all_entries()
    except CatalogError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FATAL)

    if not entries:
        console.print("No skills found.")
        return

    table = Table(title="Skills")
    table.add_column("Name", style="cyan")
    table.add_column("Origin")
    table.add_column("Domain")
    table.add_column("Stage", justify="right")
    table.add_column("Status")

    for entry, progress in entries:
        table.add_row(
            entry.name,
            entry.origin.value,
            entry.domain or "-",
            str(progress.current_stage) if progress else "-",
            progress.status if progress else "-",
        )

    console.print(table)
    console.print(f"\nTotal: {len(entries)} skills")


@cli.group()
def sessions():
    """Workflow session commands."""
    pass


def _registry(ctx) -> SessionRegistry:
    config = _load(ctx)
    return SessionRegistry(CatalogStore(db_path=str(config.db_path)))


@sessions.command(name="list")
@click.option("--skill", "skill_name", help="Only sessions of this skill")
@click.pass_context
def list_sessions(ctx, skill_name: Optional[str]):
    """List open workflow sessions."""
    try:
        open_sessions = _registry(ctx).list_open_sessions(skill_name)
    except CatalogError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FATAL)

    if not open_sessions:
        console.print("No open sessions.")
        return

    table = Table(title="Open sessions")
    table.add_column("Session ID", style="dim")
    table.add_column("Skill", style="cyan")
    table.add_column("PID", justify="right")
    table.add_column("Started (UTC)", no_wrap=True)

    for s in open_sessions:
        table.add_row(s.session_id, s.skill_name, str(s.pid), from_epoch_ms(s.started_at).strftime("%Y-%m-%d %H:%M:%S"))

    console.print(table)


@sessions.command()
@click.pass_context
def sweep(ctx):
    """Close open sessions whose process has exited."""
    try:
        closed = _registry(ctx).close_dead_sessions()
    except CatalogError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(EXIT_FATAL)
    console.print(f"[green]✓ Closed {closed} dead session(s)[/green]")


if __name__ == "__main__":
    cli()
