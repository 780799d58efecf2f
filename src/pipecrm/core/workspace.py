"""
Workspace: the composition root for a pipecrm session.

Wires configuration, the local cache, the resolved persistence adapter,
the in-memory AccountStore and the SyncController together, and owns
their lifecycle.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType

from pipecrm.core.accounts.store import AccountStore
from pipecrm.core.config.loader import load_config
from pipecrm.core.config.models import PipecrmConfig
from pipecrm.core.exceptions import CorruptStateError, PersistenceError
from pipecrm.core.persistence import (
    CachedState,
    LocalCacheAdapter,
    MirroredAdapter,
    PersistenceAdapter,
    resolve_adapter,
)
from pipecrm.core.sync.controller import SyncController

logger = logging.getLogger(__name__)


class Workspace:
    """
    A loaded account store with background persistence attached.

    Example:
        >>> with Workspace.open() as ws:
        ...     account = ws.store.create({"name": "Acme Clinic"})
        ...     ws.store.move(account.id, "Demo booked")
    """

    def __init__(
        self,
        config: PipecrmConfig,
        cache: LocalCacheAdapter,
        adapter: PersistenceAdapter,
        store: AccountStore,
        controller: SyncController,
    ) -> None:
        self.config = config
        self.cache = cache
        self.adapter = adapter
        self.store = store
        self.controller = controller

    @classmethod
    def open(
        cls,
        config: PipecrmConfig | None = None,
        project_dir: Path | None = None,
    ) -> Workspace:
        """
        Load configuration and state and start syncing.

        Args:
            config: Configuration to use (loaded from disk when None)
            project_dir: Directory holding .pipecrm.json (defaults to cwd)

        Returns:
            An open Workspace
        """
        if config is None:
            config = load_config(project_dir)

        cache = LocalCacheAdapter(config.cache.resolved_path(), default_stages=config.stages)
        adapter = resolve_adapter(config, cache)
        store = AccountStore(
            stages=config.stages,
            task_template=config.templates.tasks,
            onboarding_template=config.templates.onboarding,
        )
        controller = SyncController(adapter, cache=cache)

        workspace = cls(config, cache, adapter, store, controller)
        workspace.reload()
        controller.attach(store)
        logger.debug(
            "Opened workspace: %d accounts via %s", len(store), adapter.adapter_name
        )
        return workspace

    @property
    def remote_enabled(self) -> bool:
        return isinstance(self.adapter, MirroredAdapter)

    def _load_cached_state(self) -> CachedState:
        try:
            return self.cache.load_state()
        except CorruptStateError as e:
            logger.warning("Ignoring unreadable local cache: %s", e)
            return CachedState(stages=list(self.config.stages))

    def reload(self) -> None:
        """
        Re-read the backing store into the in-memory store.

        Stored state supersedes in-memory state; no sync events are emitted.
        """
        self.controller.flush()
        state = self._load_cached_state()
        accounts = state.accounts

        if isinstance(self.adapter, MirroredAdapter):
            try:
                accounts = self.adapter.load_all()
            except PersistenceError as e:
                logger.warning("Load failed, keeping local cache: %s", e)
            else:
                try:
                    self.cache.save_state(accounts, state.stages, state.selected_id)
                except PersistenceError as e:
                    logger.warning("Could not refresh local cache: %s", e)

        self.store.set_stages(state.stages)
        self.store.replace_all(accounts, selected_id=state.selected_id)

    def set_remote_enabled(self, enabled: bool) -> bool:
        """
        Turn remote sync on or off for this session and reload.

        Returns:
            Whether remote sync is actually active afterwards (it stays off
            when the remote section is not fully configured)
        """
        self.controller.flush()
        remote = self.config.remote.model_copy(update={"enabled": enabled})
        self.config = self.config.model_copy(update={"remote": remote})

        previous = self.adapter
        self.adapter = resolve_adapter(self.config, self.cache)
        self.controller.set_adapter(self.adapter)
        if previous is not self.adapter and isinstance(previous, MirroredAdapter):
            previous.close()

        self.reload()
        return self.remote_enabled

    def close(self) -> None:
        """Drain pending writes and release resources."""
        self.controller.close()
        if isinstance(self.adapter, MirroredAdapter):
            self.adapter.close()

    def __enter__(self) -> Workspace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
