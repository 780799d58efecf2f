"""
Standardized error handling and exit codes for the pipecrm CLI.

Provides consistent error messaging with actionable guidance and
standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

from pipecrm.core.exceptions import NotFoundError, PipecrmError, ValidationError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for pipecrm CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error, including unknown account or item ids."""

    USER_ERROR = 2
    """Invalid input or configuration (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Account not found: 3f2a",
        ...     solution="pipecrm account list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {message}")


def exit_code_for(error: PipecrmError) -> ExitCode:
    """Map a core error to the exit code the CLI reports for it."""
    if isinstance(error, ValidationError):
        return ExitCode.USER_ERROR
    return ExitCode.GENERAL_ERROR


def print_pipecrm_error(error: PipecrmError) -> None:
    """Print a core error with guidance matched to its type."""
    if isinstance(error, NotFoundError):
        print_error(str(error), solution="pipecrm account list")
    elif isinstance(error, ValidationError):
        stages = error.context.get("stages")
        if isinstance(stages, list):
            print_error(str(error), reason=f"Stages: {', '.join(stages)}")
        else:
            print_error(str(error))
    else:
        print_error(str(error))


def print_invalid_option_error(value: str, valid_options: list[str]) -> None:
    """Print error when an invalid option value is provided."""
    print_error(
        f"Invalid option: {value}",
        reason=f"Valid options are: {', '.join(valid_options)}",
    )
