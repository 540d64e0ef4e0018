"""progress-sync CLI - plan checkpoint synchronization."""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from progress_sync import __version__
from progress_sync.config import (
    SyncConfig,
    coerce_value,
    config_path,
    detect_project_root,
    get_sync_config,
)
from progress_sync.engine import SyncEngine
from progress_sync.errors import format_error
from progress_sync.events import DocumentChanged, SessionStarted
from progress_sync.plans import find_active_plan
from progress_sync.recovery import Provenance
from progress_sync.report import format_change_line, format_relative_time, format_resume_context

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _engine(project_root: Path | None = None) -> SyncEngine:
    return SyncEngine(get_sync_config(project_root))


def _resolve_plan_dir(plan_dir: str | None) -> Path | None:
    if plan_dir:
        return Path(plan_dir)
    root = detect_project_root()
    if root is None:
        return None
    return find_active_plan(root, get_sync_config(root))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def main(verbose):
    """progress-sync: structured checkpoints for plan.md progress."""
    _configure_logging(verbose)


# =============================================================================
# Host hooks
# =============================================================================


@main.group()
def hook():
    """Entry points for host hooks. Always exit 0."""
    pass


@hook.command("checkpoint")
def hook_checkpoint():
    """Sync the checkpoint after an edit (reads the hook payload from stdin)."""
    try:
        raw = sys.stdin.read().strip()
        if not raw:
            return
        data = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        logging.getLogger(__name__).debug(f"Ignoring unreadable hook payload: {e}")
        return

    if not isinstance(data, dict):
        return
    tool_input = data.get("tool_input") or {}
    if not isinstance(tool_input, dict):
        return
    file_path = tool_input.get("file_path") or tool_input.get("path")
    if not file_path:
        return

    event = DocumentChanged(timestamp=_now(), file_path=file_path, tool_name=data.get("tool_name"))
    report = _engine().handle(event)
    if report is not None and report.newly_completed:
        click.echo(format_change_line(report))


@hook.command("load")
@click.option("--source", default="startup", help="Why the session started")
def hook_load(source):
    """Load or recover the active plan's checkpoint at session start."""
    root = detect_project_root() or Path.cwd()
    event = SessionStarted(timestamp=_now(), project_root=str(root), source=source)
    report = _engine(root).handle(event)
    if report is not None:
        click.echo("\n" + format_resume_context(report.checkpoint, report.plan_dir, report.provenance) + "\n")


# =============================================================================
# Manual commands
# =============================================================================


@main.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False))
def sync(plan):
    """Sync the checkpoint for PLAN now."""
    engine = _engine()
    if engine.disabled:
        console.print("[yellow]progress-sync is disabled[/yellow]")
        return

    report = engine.handle(DocumentChanged(timestamp=_now(), file_path=str(Path(plan).resolve())))
    if report is None:
        console.print("[dim]No changes.[/dim]")
        return

    console.print(
        f"[green]✓[/green] Checkpoint updated: {report.percentage}% "
        f"({report.completed_tasks}/{report.total_tasks} tasks)"
    )
    if report.newly_completed:
        console.print(f"  Completed: {', '.join(report.newly_completed)}")


@main.command()
@click.argument("plan_dir", required=False, type=click.Path(exists=True, file_okay=False))
def status(plan_dir):
    """Show the live checkpoint for PLAN_DIR (default: the active plan)."""
    resolved = _resolve_plan_dir(plan_dir)
    if resolved is None:
        console.print("[yellow]No active plan found.[/yellow]")
        sys.exit(1)

    store = _engine().store_for(resolved)
    result = store.get_live()
    if result.is_err():
        console.print(f"[red]{format_error(result.unwrap_err())}[/red]")
        sys.exit(1)

    checkpoint = result.unwrap()
    if checkpoint is None:
        console.print(f"[yellow]No checkpoint for {resolved.name}.[/yellow]")
        console.print("Run: progress-sync sync <plan.md>")
        sys.exit(1)

    console.print(format_resume_context(checkpoint, resolved, Provenance.LIVE), markup=False)


@main.command()
@click.argument("plan_dir", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--limit", "-n", default=10, help="Number of entries to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def history(plan_dir, limit, as_json):
    """Show checkpoint history for PLAN_DIR (default: the active plan)."""
    resolved = _resolve_plan_dir(plan_dir)
    if resolved is None:
        console.print("[yellow]No active plan found.[/yellow]")
        sys.exit(1)

    try:
        entries = _engine().store_for(resolved).read_history()[-limit:]
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Failed to read history for {resolved.name}: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(entries, indent=2))
        return

    if not entries:
        console.print(f"[yellow]No history for '{resolved.name}'[/yellow]")
        return

    table = Table(title=f"History: {resolved.name}")
    table.add_column("When", style="dim")
    table.add_column("Event")
    table.add_column("Details")

    for entry in entries:
        details = ", ".join(f"{k}={v}" for k, v in entry.items() if k not in ("ts", "event"))
        ts = entry.get("ts")
        when = format_relative_time(str(ts)) if ts is not None else "unknown"
        table.add_row(when, escape(str(entry.get("event", "?"))), escape(details))

    console.print(table)


# =============================================================================
# Configuration
# =============================================================================


@main.group()
def config():
    """Manage configuration.

    Settings are read from .progress-sync.yaml in the project root, falling
    back to ~/.progress-sync/config.yaml, then built-in defaults.
    """
    pass


def _config_target(project: bool) -> Path:
    if project:
        return config_path(detect_project_root() or Path.cwd())
    return config_path()


@config.command("list")
def config_list():
    """Show the effective configuration.

    Examples:
        progress-sync config list
    """
    effective = get_sync_config()
    defaults = SyncConfig()

    console.print("[bold]Sync Configuration[/bold]")
    console.print()
    for key, value in effective.to_dict().items():
        _show_config_value(key, value, getattr(defaults, key))

    console.print()
    console.print("[dim]progress-sync config set KEY VALUE            Set a user-level value[/dim]")
    console.print("[dim]progress-sync config set KEY VALUE --project  Set a project-level value[/dim]")
    console.print("[dim]progress-sync config reset                    Reset to defaults[/dim]")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--project", is_flag=True, help="Set in project-level config")
def config_set(key: str, value: str, project: bool):
    """Set a configuration value.

    Examples:
        progress-sync config set backup_interval 10
        progress-sync config set ignored-plan-dirs templates,reports,archive --project
    """
    key = key.replace("-", "_")
    try:
        typed_value = coerce_value(key, value)
    except KeyError:
        console.print(f"[red]Unknown config key: {key}[/red]")
        console.print(f"[dim]Keys: {', '.join(SyncConfig().to_dict())}[/dim]")
        sys.exit(1)
    except (TypeError, ValueError) as e:
        console.print(f"[red]Invalid value for {key}: {e}[/red]")
        sys.exit(1)

    target = _config_target(project)
    current = SyncConfig.load(target).to_dict()
    current[key] = typed_value
    result = SyncConfig(**current).save(target)
    if result.is_err():
        console.print(f"[red]{format_error(result.unwrap_err())}[/red]")
        sys.exit(1)

    location = "project" if project else "user"
    console.print(f"[green]✓[/green] Set {key} = {typed_value} ({location}-level config)")


@config.command("reset")
@click.option("--project", is_flag=True, help="Reset project-level config")
def config_reset(project: bool):
    """Reset configuration to defaults.

    Examples:
        progress-sync config reset
        progress-sync config reset --project
    """
    result = SyncConfig().save(_config_target(project))
    if result.is_err():
        console.print(f"[red]{format_error(result.unwrap_err())}[/red]")
        sys.exit(1)

    location = "project" if project else "user"
    console.print(f"[green]✓[/green] Reset config to defaults ({location}-level)")


def _show_config_value(key: str, value, default):
    """Display a config value, highlighting if non-default."""
    if value != default:
        console.print(f"  {key}: [cyan]{escape(str(value))}[/cyan] [dim](default: {escape(str(default))})[/dim]")
    else:
        console.print(f"  {key}: {escape(str(value))}")


if __name__ == "__main__":
    main()
