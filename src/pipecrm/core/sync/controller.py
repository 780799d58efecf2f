"""
Sync controller.

Bridges accepted store mutations to the persistence adapter. The store
has already applied every mutation before the controller hears about it;
the controller only queues the matching adapter call on a single
background worker and reports how it went.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Protocol

from pipecrm.core.accounts.store import EventKind, StoreEvent
from pipecrm.core.exceptions import PersistenceError
from pipecrm.core.persistence.adapter import PersistenceAdapter
from pipecrm.core.persistence.normalize import changes_to_row

from .models import SyncOperation, SyncResult, SyncStatus

if TYPE_CHECKING:
    from pipecrm.core.accounts.store import AccountStore
    from pipecrm.core.persistence.local import LocalCacheAdapter

logger = logging.getLogger(__name__)


class SyncObserver(Protocol):
    """Callback invoked on the worker thread after every persistence call."""

    def __call__(self, result: SyncResult) -> None: ...


class SyncController:
    """
    Fire-and-forget persistence for an AccountStore.

    Jobs run one at a time in submission order. A failed call is reported
    (log warning, failed SyncResult, status update) and never retried or
    rolled back; the in-memory state stands.

    Example:
        >>> controller = SyncController(adapter, cache=cache)
        >>> controller.attach(store)
        >>> store.create({"name": "Acme Clinic"})  # upsert queued
        >>> controller.flush()
        True
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        cache: LocalCacheAdapter | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            adapter: Adapter that receives account writes
            cache: Local cache that receives stage and selection changes
        """
        self.adapter = adapter
        self.cache = cache
        self._executor: ThreadPoolExecutor | None = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="pipecrm-sync"
        )
        self._observers: list[SyncObserver] = []
        self._status = SyncStatus()
        self._pending = 0
        self._idle = threading.Condition()
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self, store: AccountStore) -> None:
        """Start listening to ``store``; replaces any previous attachment."""
        self.detach()
        self._unsubscribe = store.subscribe(self.handle_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def subscribe(self, observer: SyncObserver) -> Callable[[], None]:
        """
        Register an observer for SyncResults.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set_adapter(self, adapter: PersistenceAdapter) -> None:
        """Route jobs queued from now on to ``adapter``."""
        self.adapter = adapter

    @property
    def status(self) -> SyncStatus:
        with self._idle:
            return self._status.model_copy(update={"pending": self._pending})

    @property
    def closed(self) -> bool:
        return self._executor is None

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: StoreEvent) -> None:
        """Queue the persistence call for one accepted mutation."""
        job = self._job_for(event)
        if job is None:
            return
        operation, account_id, call = job

        with self._idle:
            if self._executor is None:
                logger.debug("Sync controller closed; dropping %s event", event.kind.value)
                return
            self._pending += 1
            adapter_name = self._adapter_name(operation)
            self._executor.submit(self._run, operation, account_id, adapter_name, call)

    def _adapter_name(self, operation: SyncOperation) -> str:
        if operation is SyncOperation.SAVE_META and self.cache is not None:
            return self.cache.adapter_name
        return self.adapter.adapter_name

    def _job_for(
        self, event: StoreEvent
    ) -> tuple[SyncOperation, str | None, Callable[[], None]] | None:
        adapter = self.adapter

        if event.kind is EventKind.CREATED and event.account is not None:
            account = event.account
            return SyncOperation.UPSERT, account.id, lambda: adapter.upsert(account)

        if event.kind is EventKind.PATCHED and event.account is not None:
            account_id = event.account.id
            fields = changes_to_row({**event.changes, "updated_at": event.account.updated_at})
            return SyncOperation.PATCH, account_id, lambda: adapter.patch(account_id, fields)

        if event.kind is EventKind.DELETED and event.account_id is not None:
            account_id = event.account_id
            return SyncOperation.DELETE, account_id, lambda: adapter.delete(account_id)

        if event.kind in (EventKind.SELECTED, EventKind.STAGES_CHANGED):
            cache = self.cache
            if cache is None:
                return None
            stages = list(event.stages)
            selected_id = event.selected_id
            return SyncOperation.SAVE_META, selected_id, lambda: cache.save_meta(stages, selected_id)

        return None

    def _run(
        self,
        operation: SyncOperation,
        account_id: str | None,
        adapter_name: str,
        call: Callable[[], None],
    ) -> None:
        try:
            call()
        except PersistenceError as e:
            logger.warning("%s(%s) failed: %s", operation.value, account_id, e)
            result = SyncResult(
                operation=operation, account_id=account_id, ok=False, error=str(e), adapter=adapter_name
            )
        except Exception as e:
            logger.exception("Unexpected error during %s(%s)", operation.value, account_id)
            result = SyncResult(
                operation=operation, account_id=account_id, ok=False, error=str(e), adapter=adapter_name
            )
        else:
            logger.debug("%s(%s) ok via %s", operation.value, account_id, adapter_name)
            result = SyncResult(
                operation=operation, account_id=account_id, ok=True, adapter=adapter_name
            )

        with self._idle:
            self._status = self._status.record(result)

        for observer in list(self._observers):
            try:
                observer(result)
            except Exception:
                logger.exception("Sync observer failed")

        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait for every queued call to finish.

        Returns:
            True if the queue drained, False if ``timeout`` expired first
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def close(self, timeout: float | None = None) -> None:
        """Detach, drain the queue and stop the worker."""
        self.detach()
        self.flush(timeout)
        with self._idle:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> SyncController:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
