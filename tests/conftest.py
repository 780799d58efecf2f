"""
Pytest configuration and shared fixtures.

Provides fixtures for a deterministic clock and id factory, temp cache
paths, sample accounts, isolated config/env directories and fake
persistence adapters used across the test suite.
"""

import itertools
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from pipecrm.core.accounts.models import Account, ChecklistItem
from pipecrm.core.accounts.store import AccountStore
from pipecrm.core.config import clear_cache
from pipecrm.core.exceptions import PersistenceTransientError

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


# ==============================================================================
# Determinism helpers
# ==============================================================================


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class SequentialIds:
    """Id factory producing id-0001, id-0002, ..."""

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter):04d}"


@pytest.fixture
def clock():
    """Provide a frozen, manually advanced clock."""
    return FakeClock()


@pytest.fixture
def ids():
    """Provide a deterministic id factory."""
    return SequentialIds()


@pytest.fixture
def store(clock, ids):
    """Provide an AccountStore with default stages and templates."""
    return AccountStore(clock=clock, id_factory=ids)


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def cache_path(tmp_path) -> Path:
    """Provide a path for the local cache blob (not created)."""
    return tmp_path / "data" / "pipecrm" / "state.json"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """
    Keep every test away from the real user config, data dir and env.

    Points XDG dirs at tmp_path, clears PIPECRM_* variables and resets
    the config cache.
    """
    import os

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for key in list(os.environ):
        if key.startswith("PIPECRM_"):
            monkeypatch.delenv(key, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


def make_account(
    account_id: str = "acct-1",
    name: str = "Acme Clinic",
    status: str = "Lead",
    updated_at: datetime = T0,
    **fields: Any,
) -> Account:
    """Build an Account with small deterministic checklists."""
    fields.setdefault(
        "tasks",
        [ChecklistItem(id="t1", name="Send onboarding email")],
    )
    fields.setdefault(
        "onboarding",
        [
            ChecklistItem(id="o1", name="Configure intake form"),
            ChecklistItem(id="o2", name="Go live"),
        ],
    )
    return Account(
        id=account_id,
        name=name,
        status=status,
        created_at=fields.pop("created_at", updated_at),
        updated_at=updated_at,
        **fields,
    )


@pytest.fixture
def sample_account() -> Account:
    """Provide a single sample Account."""
    return make_account()


@pytest.fixture
def sample_accounts() -> list[Account]:
    """Provide accounts in display order (most recent first)."""
    return [
        make_account("acct-3", "Cedar Dental", "Live", T0 + timedelta(hours=2)),
        make_account("acct-2", "Birch Physio", "Demo booked", T0 + timedelta(hours=1)),
        make_account("acct-1", "Acme Clinic", "Lead", T0),
    ]


# ==============================================================================
# Fake adapters
# ==============================================================================


class RecordingAdapter:
    """In-memory PersistenceAdapter that records every call."""

    def __init__(self, accounts: list[Account] | None = None, name: str = "fake") -> None:
        self.rows: dict[str, Account] = {a.id: a for a in accounts or []}
        self.calls: list[tuple[str, Any]] = []
        self.name = name

    @property
    def adapter_name(self) -> str:
        return self.name

    def load_all(self) -> list[Account]:
        self.calls.append(("load_all", None))
        return sorted(self.rows.values(), key=lambda a: a.updated_at, reverse=True)

    def upsert(self, account: Account) -> None:
        self.calls.append(("upsert", account.id))
        self.rows[account.id] = account

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        self.calls.append(("patch", (account_id, dict(fields))))
        current = self.rows.get(account_id)
        if current is not None:
            data = current.model_dump(mode="json")
            data.update(fields)
            self.rows[account_id] = Account.model_validate(data)

    def delete(self, account_id: str) -> None:
        self.calls.append(("delete", account_id))
        self.rows.pop(account_id, None)


class FailingAdapter(RecordingAdapter):
    """Adapter whose writes (and optionally loads) always fail."""

    def __init__(self, *args: Any, fail_loads: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fail_loads = fail_loads

    def _fail(self, operation: str) -> None:
        raise PersistenceTransientError(self.name, f"{operation} unavailable")

    def load_all(self) -> list[Account]:
        if self.fail_loads:
            self._fail("load_all")
        return super().load_all()

    def upsert(self, account: Account) -> None:
        self.calls.append(("upsert", account.id))
        self._fail("upsert")

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        self.calls.append(("patch", (account_id, dict(fields))))
        self._fail("patch")

    def delete(self, account_id: str) -> None:
        self.calls.append(("delete", account_id))
        self._fail("delete")


@pytest.fixture
def recording_adapter():
    """Provide an empty RecordingAdapter."""
    return RecordingAdapter()


@pytest.fixture
def failing_adapter():
    """Provide an adapter whose writes always raise PersistenceTransientError."""
    return FailingAdapter(name="remote")
