"""
Helpers shared by CLI commands: logging setup, workspace lifecycle and
account id resolution.
"""

import logging
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import typer
from pydantic import ValidationError as ConfigValidationError

from pipecrm.cli.errors import (
    ExitCode,
    exit_code_for,
    print_error,
    print_pipecrm_error,
    print_warning,
)
from pipecrm.core.accounts.models import Account, ChecklistItem
from pipecrm.core.accounts.store import AccountStore
from pipecrm.core.exceptions import NotFoundError, PipecrmError
from pipecrm.core.workspace import Workspace

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@contextmanager
def open_workspace() -> Iterator[Workspace]:
    """
    Open a workspace for one command, closing (and flushing) it afterwards.

    Core errors raised inside the block are printed and turned into the
    matching exit code. Sync failures only produce a warning.
    """
    try:
        workspace = Workspace.open()
    except ConfigValidationError as e:
        print_error(
            "Invalid configuration",
            reason=str(e),
            solution="check .pipecrm.json and ~/.config/pipecrm/config.json",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    try:
        yield workspace
    except PipecrmError as e:
        print_pipecrm_error(e)
        raise typer.Exit(exit_code_for(e))
    finally:
        workspace.close()
        status = workspace.controller.status
        if status.failures:
            print_warning(
                f"{status.failures} sync call(s) failed; local changes were kept. "
                f"Last error: {status.last_error}"
            )


def resolve_account(store: AccountStore, ref: str) -> Account:
    """
    Find an account by full id or unique id prefix.

    Raises:
        NotFoundError: If nothing or more than one account matches
    """
    account = store.get(ref)
    if account is not None:
        return account

    matches = [a for a in store.all() if a.id.startswith(ref)] if ref else []
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise NotFoundError(f"Ambiguous account id prefix: {ref}", account_id=ref)
    raise NotFoundError(f"Account not found: {ref}", account_id=ref)


def resolve_item(items: Sequence[ChecklistItem], ref: str) -> ChecklistItem:
    """
    Find a checklist item by 1-based position, id or unique id prefix.

    Raises:
        NotFoundError: If no single item matches
    """
    if ref.isdigit():
        position = int(ref)
        if 1 <= position <= len(items):
            return items[position - 1]

    for item in items:
        if item.id == ref:
            return item

    matches = [item for item in items if item.id.startswith(ref)] if ref else []
    if len(matches) == 1:
        return matches[0]
    raise NotFoundError(f"Checklist item not found: {ref}", item_id=ref)


def short_id(account_id: str) -> str:
    return account_id[:8]
