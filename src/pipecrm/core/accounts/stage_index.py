"""
Stage grouping for pipeline display.

The Stage Index is derived state: it is rebuilt from the store on demand
and never persisted. Every configured stage is present as a column even
when empty; accounts whose status matches no stage land in a catch-all
group so they never drop out of every view.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .models import Account

UNKNOWN_STAGE_LABEL = "Unknown stage"


@dataclass(frozen=True)
class StageIndex:
    """
    Accounts grouped by stage.

    Attributes:
        stages: Configured stage order
        columns: Stage name -> accounts (display order); keys are exactly ``stages``
        unstaged: Accounts whose status is not a configured stage
    """

    stages: tuple[str, ...]
    columns: dict[str, list[Account]] = field(default_factory=dict)
    unstaged: list[Account] = field(default_factory=list)

    def __getitem__(self, stage: str) -> list[Account]:
        return self.columns[stage]

    def __iter__(self):
        return iter(self.columns.items())

    def counts(self) -> dict[str, int]:
        return {stage: len(accounts) for stage, accounts in self.columns.items()}

    def stage_of(self, account_id: str) -> str | None:
        """Return the configured stage holding ``account_id``, if any."""
        for stage, accounts in self.columns.items():
            if any(a.id == account_id for a in accounts):
                return stage
        return None

    def resolve_drop_target(self, target: str | None) -> str | None:
        """Map a drop target to a configured stage, or None if it is not one."""
        if target is not None and target in self.columns:
            return target
        return None

    @property
    def total(self) -> int:
        return sum(len(a) for a in self.columns.values()) + len(self.unstaged)


def build_stage_index(accounts: Iterable[Account], stages: Sequence[str]) -> StageIndex:
    """
    Group accounts by stage, preserving stage order and account order.

    Args:
        accounts: Accounts in display order (typically ``AccountStore.all()``)
        stages: Configured stage names

    Returns:
        StageIndex with one column per stage plus the catch-all group
    """
    columns: dict[str, list[Account]] = {stage: [] for stage in stages}
    unstaged: list[Account] = []
    for account in accounts:
        bucket = columns.get(account.status)
        if bucket is None:
            unstaged.append(account)
        else:
            bucket.append(account)
    return StageIndex(stages=tuple(stages), columns=columns, unstaged=unstaged)
