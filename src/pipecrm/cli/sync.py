"""
pipecrm CLI - sync commands.

Inspect and toggle mirroring to the remote accounts table.
"""

import json
from pathlib import Path

import typer
from rich.console import Console

from pipecrm.cli.common import open_workspace
from pipecrm.cli.errors import ExitCode, print_error, print_warning
from pipecrm.core.config.loader import deep_merge, get_project_config_path, load_json_file

console = Console()
app = typer.Typer(help="Remote sync status and settings")


def _save_project_setting(enabled: bool, project_dir: Path | None = None) -> Path:
    """Write remote.enabled into the project's .pipecrm.json."""
    path = get_project_config_path(project_dir)
    data = load_json_file(path) or {}
    data = deep_merge(data, {"remote": {"enabled": enabled}})
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


@app.command()
def status(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show which backing store is in use and how the last sync went.
    """
    with open_workspace() as ws:
        remote = ws.config.remote
        adapter_name = ws.adapter.adapter_name
        cache_path = ws.cache.path
        accounts = len(ws.store)
        problems = remote.problems() if remote.enabled else []

    sync_status = ws.controller.status

    if json_output:
        data = {
            "adapter": adapter_name,
            "cache_path": str(cache_path),
            "accounts": accounts,
            "remote": {
                "enabled": remote.enabled,
                "usable": remote.is_usable(),
                "url": remote.url,
                "table": remote.table,
                "problems": problems,
            },
            "last_sync": sync_status.model_dump(mode="json", exclude={"last_result"}),
        }
        typer.echo(json.dumps(data, indent=2))
        return

    console.print(f"[bold]Adapter:[/bold] {adapter_name}")
    console.print(f"[dim]Local cache:[/dim] {cache_path}")
    console.print(f"[dim]Accounts:[/dim] {accounts}")
    if remote.is_usable():
        console.print(f"[green]Remote:[/green] {remote.url} (table {remote.table})")
    elif remote.enabled:
        console.print("[yellow]Remote:[/yellow] enabled but not usable")
        for problem in problems:
            console.print(f"  - {problem}")
    else:
        console.print("[dim]Remote:[/dim] disabled")


def _toggle(enabled: bool, save: bool) -> None:
    with open_workspace() as ws:
        active = ws.set_remote_enabled(enabled)
        accounts = len(ws.store)
        problems = ws.config.remote.problems()
        adapter_name = ws.adapter.adapter_name

    if enabled and not active:
        print_error(
            "Remote sync could not be enabled",
            reason="; ".join(problems),
            solution="set PIPECRM_REMOTE_URL and PIPECRM_REMOTE_KEY (or remote.* in .pipecrm.json)",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print(f"[green]Remote sync {'enabled' if active else 'disabled'}[/green]")
    console.print(f"  Loaded {accounts} accounts via {adapter_name}")

    if save:
        path = _save_project_setting(enabled)
        console.print(f"  Saved to {path}")
    else:
        print_warning("Setting applies to this command only; pass --save to keep it")


@app.command()
def enable(
    save: bool = typer.Option(
        False,
        "--save",
        help="Persist remote.enabled=true in .pipecrm.json",
    ),
) -> None:
    """
    Turn remote sync on and reload accounts from the remote table.
    """
    _toggle(True, save)


@app.command()
def disable(
    save: bool = typer.Option(
        False,
        "--save",
        help="Persist remote.enabled=false in .pipecrm.json",
    ),
) -> None:
    """
    Turn remote sync off and reload accounts from the local cache.
    """
    _toggle(False, save)
