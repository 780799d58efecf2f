"""
Persistence adapters.

The local cache is always available; the remote adapter is used only
when configured, and then paired with the cache in a MirroredAdapter.
"""

import logging

from pipecrm.core.config.models import PipecrmConfig

from .adapter import PersistenceAdapter, get_adapter_class, list_adapters, register_adapter
from .local import CachedState, LocalCacheAdapter
from .mirrored import MirroredAdapter, compare_account_lists
from .normalize import account_from_row, account_to_row, changes_to_row, parse_timestamp
from .remote import RemoteAdapter

logger = logging.getLogger(__name__)


def resolve_adapter(config: PipecrmConfig, cache: LocalCacheAdapter) -> PersistenceAdapter:
    """
    Pick the adapter for a session.

    Args:
        config: Loaded configuration
        cache: The local cache adapter

    Returns:
        MirroredAdapter(cache, remote) when the remote is usable, else ``cache``
    """
    remote = config.remote
    if remote.is_usable():
        logger.debug("Remote sync enabled: %s (table %s)", remote.url, remote.table)
        return MirroredAdapter(cache, RemoteAdapter.from_config(remote, default_status=config.stages[0]))

    if remote.enabled:
        logger.warning(
            "Remote sync is enabled but not usable (%s); running local-only",
            "; ".join(remote.problems()),
        )
    return cache


__all__ = [
    "CachedState",
    "LocalCacheAdapter",
    "MirroredAdapter",
    "PersistenceAdapter",
    "RemoteAdapter",
    "account_from_row",
    "account_to_row",
    "changes_to_row",
    "compare_account_lists",
    "get_adapter_class",
    "list_adapters",
    "parse_timestamp",
    "register_adapter",
    "resolve_adapter",
]
