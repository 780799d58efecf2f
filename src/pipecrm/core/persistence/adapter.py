"""
Persistence adapter protocol and registry.

This module defines the PersistenceAdapter protocol that every backing
store must implement (local cache, remote table, mirrored pair), plus a
small decorator registry so adapters can be looked up by name.
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from pipecrm.core.accounts.models import Account


@runtime_checkable
class PersistenceAdapter(Protocol):
    """
    Protocol for durable account storage.

    Adapters hold no business logic. They are responsible for:
    - Reading every stored account, normalized into Account values
    - Writing full records (upsert) and partial records (patch)
    - Deleting records

    Implementations raise PersistenceTransientError when the backing
    store fails; callers decide how to report it.
    """

    @property
    def adapter_name(self) -> str:
        """
        Get the name of this adapter.

        Returns:
            Adapter name (e.g., 'local', 'remote', 'mirrored')
        """
        ...

    def load_all(self) -> list[Account]:
        """
        Return every stored account, most recently updated first.

        Returns:
            List of normalized accounts
        """
        ...

    def upsert(self, account: Account) -> None:
        """
        Write a full account record (insert or replace by id).

        Safe to repeat; the adapter's own ordering decides the last write.

        Args:
            account: Account to write
        """
        ...

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        """
        Write only the given fields of an account.

        Args:
            account_id: Account to update
            fields: Changed fields (already row-serialized)
        """
        ...

    def delete(self, account_id: str) -> None:
        """
        Remove a record. Deleting an absent record is a no-op.

        Args:
            account_id: Account to delete
        """
        ...


# Adapter registry
_adapters: dict[str, type] = {}


def register_adapter(name: str) -> Callable[[type], type]:
    """
    Decorator to register a persistence adapter implementation.

    Usage:
        @register_adapter('local')
        class LocalCacheAdapter:
            def load_all(self):
                ...

    Args:
        name: Adapter name (e.g., 'local', 'remote')

    Returns:
        Decorator function
    """

    def decorator(adapter_class: type) -> type:
        _adapters[name] = adapter_class
        return adapter_class

    return decorator


def get_adapter_class(name: str) -> type:
    """
    Look up a registered adapter class by name.

    Raises:
        ValueError: If no adapter is registered under ``name``
    """
    adapter_class = _adapters.get(name)
    if adapter_class is None:
        raise ValueError(
            f"Adapter '{name}' not registered. Available adapters: {', '.join(_adapters.keys())}"
        )
    return adapter_class


def list_adapters() -> list[str]:
    """
    List all registered adapter names.

    Returns:
        List of adapter names
    """
    return list(_adapters.keys())
