"""
pipecrm CLI - pipeline board.

Shows accounts grouped by stage, and moves them between columns.
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from pipecrm.cli.common import open_workspace, resolve_account, short_id
from pipecrm.cli.errors import ExitCode, print_invalid_option_error
from pipecrm.core.accounts.gesture import DragGesture, GestureState
from pipecrm.core.accounts.models import Account
from pipecrm.core.accounts.stage_index import UNKNOWN_STAGE_LABEL

console = Console()
app = typer.Typer(help="Show the pipeline board", invoke_without_command=True)


def _card(account: Account) -> str:
    onboarding = account.onboarding_progress
    tasks = account.task_progress
    return (
        f"{account.name} [dim]{short_id(account.id)}[/dim] "
        f"[cyan]T {tasks.done}/{tasks.total}[/cyan] "
        f"[magenta]O {onboarding.pct}%[/magenta]"
    )


@app.callback(invoke_without_command=True)
def board(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
    hide_empty: bool = typer.Option(
        False,
        "--hide-empty",
        help="Skip stages without accounts",
    ),
) -> None:
    """
    Show every stage with its accounts, most recently updated first.

    Examples:
        pipecrm board
        pipecrm board --json
    """
    if ctx.invoked_subcommand is not None:
        return

    with open_workspace() as ws:
        index = ws.store.stage_index()

    if json_output:
        data = {
            "stages": [
                {
                    "stage": stage,
                    "count": len(accounts),
                    "accounts": [
                        {
                            "id": a.id,
                            "name": a.name,
                            "task_progress": a.task_progress.model_dump(),
                            "onboarding_progress": a.onboarding_progress.model_dump(),
                        }
                        for a in accounts
                    ],
                }
                for stage, accounts in index
            ],
            "unstaged": [{"id": a.id, "name": a.name, "status": a.status} for a in index.unstaged],
            "total": index.total,
        }
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Stage", no_wrap=True)
    table.add_column("#", justify="right")
    table.add_column("Accounts", overflow="fold")

    for stage, accounts in index:
        if hide_empty and not accounts:
            continue
        cards = "\n".join(_card(a) for a in accounts) or "[dim]-[/dim]"
        table.add_row(stage, str(len(accounts)), cards)

    if index.unstaged:
        cards = "\n".join(f"{_card(a)} [yellow]({a.status})[/yellow]" for a in index.unstaged)
        table.add_row(f"[yellow]{UNKNOWN_STAGE_LABEL}[/yellow]", str(len(index.unstaged)), cards)

    console.print(table)
    console.print(f"\n[dim]Total: {index.total} accounts[/dim]")


@app.command()
def drop(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    stage: str = typer.Argument(..., help="Column to drop the account on"),
) -> None:
    """
    Drag an account onto a stage column.

    Unlike `account move`, an unknown column cancels the drag instead of
    failing.

    Examples:
        pipecrm board drop 3f2a Live
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        gesture = DragGesture(ws.store)
        gesture.start(account.id)
        gesture.hover(stage)
        moved = gesture.drop()
        outcome = gesture.end()
        stages = ws.store.stages

    if outcome is GestureState.DROPPED and moved is not None:
        console.print(f"[green]Dropped:[/green] {moved.name} -> {moved.status}")
        return

    console.print(f"[yellow]Drag cancelled:[/yellow] {stage!r} is not a column")
    print_invalid_option_error(stage, stages)
    raise typer.Exit(ExitCode.USER_ERROR)
