"""
pipecrm CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.console import Console

from pipecrm import __version__
from pipecrm.cli import account, board, checklist, sync
from pipecrm.cli.common import setup_logging
from pipecrm.core.config.env import load_layered_env

# Help panel names for command grouping
PANEL_ACCOUNTS = "Work with Accounts"
PANEL_PIPELINE = "See the Pipeline"
PANEL_SYNC = "Storage and Sync"

app = typer.Typer(
    name="pipecrm",
    help="Track accounts through a sales and onboarding pipeline",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    pipecrm - account pipeline tracker.

    Accounts move through configurable stages and carry two checklists
    (general tasks and onboarding). Changes are saved to a local cache and,
    when configured, mirrored to a remote table.

    Quick Start:
        pipecrm account create "Acme Clinic"
        pipecrm board
        pipecrm account move <id> "Demo booked"
        pipecrm checklist toggle <id> 1 --list onboarding
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    setup_logging(debug)
    ctx.obj = {"debug": debug}


app.add_typer(account.app, name="account", rich_help_panel=PANEL_ACCOUNTS)
app.add_typer(checklist.app, name="checklist", rich_help_panel=PANEL_ACCOUNTS)
app.add_typer(board.app, name="board", rich_help_panel=PANEL_PIPELINE)
app.add_typer(sync.app, name="sync", rich_help_panel=PANEL_SYNC)


@app.command()
def version() -> None:
    """Show pipecrm version and exit."""
    console.print(f"pipecrm version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
