"""
MirroredAdapter wrapper implementation.

Wraps the local cache (primary) and a remote adapter (secondary). Writes
go to the local cache first and then to the remote; reads prefer the
remote, which is authoritative on reload, and fall back to the local
cache when the remote is unreachable.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pipecrm.core.accounts.models import Account
from pipecrm.core.exceptions import PersistenceError, PersistenceTransientError

from .adapter import PersistenceAdapter, register_adapter
from .local import LocalCacheAdapter

logger = logging.getLogger(__name__)


def compare_account_lists(local: list[Account], remote: list[Account]) -> str | None:
    """
    Summarize how two account lists differ.

    Returns:
        Description of the differences, or None if both hold the same
        accounts at the same ``updated_at``
    """
    local_by_id = {a.id: a for a in local}
    remote_by_id = {a.id: a for a in remote}

    differences = []
    only_local = sorted(local_by_id.keys() - remote_by_id.keys())
    only_remote = sorted(remote_by_id.keys() - local_by_id.keys())
    if only_local:
        differences.append(f"{len(only_local)} only in local cache")
    if only_remote:
        differences.append(f"{len(only_remote)} only in remote")

    stale = [
        account_id
        for account_id in local_by_id.keys() & remote_by_id.keys()
        if local_by_id[account_id].updated_at != remote_by_id[account_id].updated_at
    ]
    if stale:
        differences.append(f"{len(stale)} with different updated_at")

    return "; ".join(differences) if differences else None


@register_adapter("mirrored")
class MirroredAdapter:
    """
    Adapter that keeps the local cache and a remote store in step.

    The local write always happens first and always stands. If the remote
    write then fails, the failure is re-raised as PersistenceTransientError
    so the sync controller can report it; nothing is rolled back.

    Example:
        >>> adapter = MirroredAdapter(LocalCacheAdapter(path), RemoteAdapter(url, key))
        >>> adapter.upsert(account)  # local, then remote
    """

    def __init__(self, primary: LocalCacheAdapter, secondary: PersistenceAdapter) -> None:
        """
        Initialize the mirrored pair.

        Args:
            primary: Local cache (always written first)
            secondary: Remote adapter (authoritative for reads)
        """
        self.primary = primary
        self.secondary = secondary

    @property
    def adapter_name(self) -> str:
        return f"mirrored({self.primary.adapter_name}+{self.secondary.adapter_name})"

    def load_all(self) -> list[Account]:
        """
        Load from the remote, falling back to the local cache.

        Returns:
            Remote accounts when reachable, otherwise cached accounts
        """
        try:
            remote_accounts = self.secondary.load_all()
        except PersistenceError as e:
            logger.warning("Remote load failed, using local cache: %s", e)
            return self.primary.load_all()

        try:
            diff = compare_account_lists(self.primary.load_all(), remote_accounts)
        except PersistenceError:
            diff = "local cache unreadable"
        if diff:
            logger.info("Remote differs from local cache (%s); remote wins", diff)
        return remote_accounts

    def _mirror(self, operation: str, account_id: str, call: Callable[[], None]) -> None:
        try:
            call()
        except PersistenceError as e:
            logger.warning("Remote %s(%s) failed: %s", operation, account_id, e)
            raise PersistenceTransientError(
                self.secondary.adapter_name,
                e.message,
                operation=operation,
                account_id=account_id,
            ) from e

    def upsert(self, account: Account) -> None:
        self.primary.upsert(account)
        self._mirror("upsert", account.id, lambda: self.secondary.upsert(account))

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        self.primary.patch(account_id, fields)
        self._mirror("patch", account_id, lambda: self.secondary.patch(account_id, fields))

    def delete(self, account_id: str) -> None:
        self.primary.delete(account_id)
        self._mirror("delete", account_id, lambda: self.secondary.delete(account_id))

    def close(self) -> None:
        close = getattr(self.secondary, "close", None)
        if callable(close):
            close()
