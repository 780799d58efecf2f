"""
pipecrm CLI - account commands.

Create, list, inspect, edit, move and delete accounts.
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from pipecrm.cli.common import open_workspace, resolve_account, short_id
from pipecrm.cli.errors import ExitCode, print_error
from pipecrm.core.accounts.models import Account, Progress

console = Console()
app = typer.Typer(help="Manage accounts")


def _chip(progress: Progress) -> str:
    return f"{progress.done}/{progress.total} ({progress.pct}%)"


def _echo_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def print_account(account: Account, selected: bool = False) -> None:
    """Print the detail view of one account."""
    marker = " [green](selected)[/green]" if selected else ""
    console.print(f"[bold cyan]{short_id(account.id)}[/bold cyan] - {account.name}{marker}")
    console.print(f"[dim]Status:[/dim] {account.status}")
    for label, value in (
        ("Phone", account.phone),
        ("Email", account.email),
        ("Website", account.website),
    ):
        if value:
            console.print(f"[dim]{label}:[/dim] {value}")
    console.print(f"[dim]Updated:[/dim] {account.updated_at.isoformat(timespec='seconds')}")

    for title, items, progress in (
        ("Tasks", account.tasks, account.task_progress),
        ("Onboarding", account.onboarding, account.onboarding_progress),
    ):
        console.print(f"\n[bold]{title}[/bold] {_chip(progress)}")
        for position, item in enumerate(items, start=1):
            mark = "[green]x[/green]" if item.done else " "
            console.print(f"  {position:>2}. \\[{mark}] {item.name} [dim]{short_id(item.id)}[/dim]")

    if account.notes:
        console.print(f"\n[bold]Notes:[/bold]\n{account.notes}")


@app.command()
def create(
    name: str = typer.Argument(..., help="Account name"),
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Initial stage (defaults to the first stage)",
    ),
    phone: str = typer.Option("", "--phone", help="Phone number"),
    email: str = typer.Option("", "--email", help="Email address"),
    website: str = typer.Option("", "--website", help="Website URL"),
    notes: str = typer.Option("", "--notes", help="Free-form notes"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Create a new account seeded with the checklist templates.

    Examples:
        pipecrm account create "Acme Clinic"
        pipecrm account create "Acme Clinic" --status "Demo booked" --email hi@acme.test
    """
    with open_workspace() as ws:
        account = ws.store.create(
            name=name, status=status, phone=phone, email=email, website=website, notes=notes
        )

    if json_output:
        _echo_json(account.model_dump(mode="json"))
    else:
        console.print(f"[green]Created:[/green] {account.id}")
        console.print(f"  Stage: {account.status}")


@app.command("list")
def list_accounts(
    query: str = typer.Option(
        "",
        "--query",
        "-q",
        help="Match name, email or phone (case-insensitive)",
    ),
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Only accounts in this stage",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List accounts, most recently updated first.

    Examples:
        pipecrm account list
        pipecrm account list --status Live
        pipecrm account list -q acme --json
    """
    with open_workspace() as ws:
        accounts = ws.store.search(query, status=status)
        selected_id = ws.store.selected_id

    if json_output:
        _echo_json([a.model_dump(mode="json") for a in accounts])
        return

    if not accounts:
        console.print("[yellow]No accounts found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", overflow="fold")
    table.add_column("Stage")
    table.add_column("Tasks", justify="right")
    table.add_column("Onboarding", justify="right")

    for account in accounts:
        name = f"[bold]{account.name}[/bold]" if account.id == selected_id else account.name
        table.add_row(
            short_id(account.id),
            name,
            account.status,
            _chip(account.task_progress),
            _chip(account.onboarding_progress),
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(accounts)} accounts[/dim]")


@app.command()
def show(
    account_ref: str | None = typer.Argument(
        None, help="Account ID or prefix (defaults to the selected account)"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show one account with both checklists.

    Examples:
        pipecrm account show 3f2a9c1b
        pipecrm account show --json
    """
    with open_workspace() as ws:
        if account_ref is None:
            account = ws.store.selected
            if account is None:
                print_error("No account selected", solution="pipecrm account create NAME")
                raise typer.Exit(ExitCode.GENERAL_ERROR)
        else:
            account = resolve_account(ws.store, account_ref)
        selected = account.id == ws.store.selected_id

    if json_output:
        data = account.model_dump(mode="json")
        data["task_progress"] = account.task_progress.model_dump()
        data["onboarding_progress"] = account.onboarding_progress.model_dump()
        _echo_json(data)
        return

    print_account(account, selected=selected)


@app.command()
def update(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    status: str | None = typer.Option(None, "--status", "-s", help="New stage"),
    phone: str | None = typer.Option(None, "--phone", help="New phone number"),
    email: str | None = typer.Option(None, "--email", help="New email address"),
    website: str | None = typer.Option(None, "--website", help="New website URL"),
    notes: str | None = typer.Option(None, "--notes", help="Replace notes"),
) -> None:
    """
    Update account fields.

    Examples:
        pipecrm account update 3f2a --email front@acme.test
        pipecrm account update 3f2a --name "Acme Clinic North" --status Testing
    """
    fields = {
        key: value
        for key, value in (
            ("name", name),
            ("status", status),
            ("phone", phone),
            ("email", email),
            ("website", website),
            ("notes", notes),
        )
        if value is not None
    }
    if not fields:
        print_error("Nothing to update", solution="pass at least one of --name, --status, ...")
        raise typer.Exit(ExitCode.USER_ERROR)

    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        account = ws.store.patch(account.id, fields)

    console.print(f"[green]Updated:[/green] {account.id}")
    for key in fields:
        console.print(f"  {key}: {getattr(account, key)}")


@app.command()
def move(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    stage: str = typer.Argument(..., help="Target stage"),
) -> None:
    """
    Move an account to another stage.

    Examples:
        pipecrm account move 3f2a "Demo booked"
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        previous = account.status
        account = ws.store.move(account.id, stage)

    console.print(f"[green]Moved:[/green] {account.name}: {previous} -> {account.status}")


@app.command()
def delete(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
) -> None:
    """
    Delete an account permanently.

    Examples:
        pipecrm account delete 3f2a --yes
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        if not yes and not typer.confirm(f"Delete {account.name}?"):
            console.print("Cancelled")
            raise typer.Exit(ExitCode.SUCCESS)
        ws.store.delete(account.id)

    console.print(f"[green]Deleted:[/green] {account.name}")


@app.command()
def select(
    account_ref: str = typer.Argument(..., help="Account ID or prefix"),
) -> None:
    """
    Mark an account as selected (used by commands that default to it).
    """
    with open_workspace() as ws:
        account = resolve_account(ws.store, account_ref)
        ws.store.select(account.id)

    console.print(f"[green]Selected:[/green] {account.name}")
