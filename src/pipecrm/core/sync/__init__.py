"""
Background persistence for the account store.

Example:
    >>> from pipecrm.core.sync import SyncController
    >>> controller = SyncController(adapter, cache=cache)
    >>> controller.attach(store)
    >>> store.move(account.id, "Live")  # patch queued, caller not blocked
    >>> controller.flush()
    >>> controller.status.message
    'Saved.'
"""

from pipecrm.core.sync.controller import SyncController, SyncObserver
from pipecrm.core.sync.models import SyncOperation, SyncResult, SyncStatus

__all__ = [
    "SyncController",
    "SyncObserver",
    "SyncOperation",
    "SyncResult",
    "SyncStatus",
]
