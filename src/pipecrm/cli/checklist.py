"""
pipecrm CLI - checklist commands.

Add, toggle and remove items on an account's task or onboarding checklist.
"""

from enum import Enum

import typer
from rich.console import Console

from pipecrm.cli.common import open_workspace, resolve_account, resolve_item
from pipecrm.core.accounts.models import Account
from pipecrm.core.accounts.store import AccountStore

console = Console()
app = typer.Typer(help="Manage account checklists")


class ChecklistName(str, Enum):
    """Which checklist a command works on."""

    TASKS = "tasks"
    ONBOARDING = "onboarding"


LIST_OPTION = typer.Option(
    ChecklistName.TASKS,
    "--list",
    "-l",
    help="Checklist to change",
    case_sensitive=False,
)


def _summary(account: Account, which: ChecklistName) -> str:
    progress = (
        account.task_progress if which is ChecklistName.TASKS else account.onboarding_progress
    )
    return f"{which.value} {progress.done}/{progress.total} ({progress.pct}%)"


def _add(store: AccountStore, account_id: str, which: ChecklistName, name: str) -> Account:
    if which is ChecklistName.TASKS:
        return store.add_task(account_id, name)
    return store.add_onboarding_item(account_id, name)


def _toggle(store: AccountStore, account_id: str, which: ChecklistName, item_id: str) -> Account:
    if which is ChecklistName.TASKS:
        return store.toggle_task(account_id, item_id)
    return store.toggle_onboarding_item(account_id, item_id)


def _remove(store: AccountStore, account_id: str, which: ChecklistName, item_id: str) -> Account:
    if which is ChecklistName.TASKS:
        return store.remove_task(account_id, item_id)
    return store.remove_onboarding_item(account_id, item_id)


@app.command()
def add(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    name: str = typer.Argument(..., help="Item label"),
    which: ChecklistName = LIST_OPTION,
) -> None:
    """
    Append an item to a checklist.

    Examples:
        pipecrm checklist add 3f2a "Send invoice"
        pipecrm checklist add 3f2a "Order signage" --list onboarding
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        account = _add(ws.store, account.id, which, name)

    console.print(f"[green]Added:[/green] {name.strip()} ({_summary(account, which)})")


@app.command()
def toggle(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    item_ref: str = typer.Argument(..., help="Item position (1-based), ID or ID prefix"),
    which: ChecklistName = LIST_OPTION,
) -> None:
    """
    Flip an item between done and not done.

    Examples:
        pipecrm checklist toggle 3f2a 1
        pipecrm checklist toggle 3f2a 7 --list onboarding
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        item = resolve_item(account.checklist(which.value), item_ref)
        account = _toggle(ws.store, account.id, which, item.id)

    state = "done" if not item.done else "not done"
    console.print(f"[green]Marked {state}:[/green] {item.name} ({_summary(account, which)})")


@app.command()
def remove(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    item_ref: str = typer.Argument(..., help="Item position (1-based), ID or ID prefix"),
    which: ChecklistName = LIST_OPTION,
) -> None:
    """
    Remove an item from a checklist.

    Examples:
        pipecrm checklist remove 3f2a 4
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        item = resolve_item(account.checklist(which.value), item_ref)
        account = _remove(ws.store, account.id, which, item.id)

    console.print(f"[green]Removed:[/green] {item.name} ({_summary(account, which)})")
