"""
In-memory account store.

AccountStore is the single source of truth for account state during a
session. Every mutation is validated up front and applied synchronously
and all-or-nothing; listeners (the sync controller, UI adapters) are told
about accepted mutations afterwards and can never block or undo them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pipecrm.core.exceptions import NotFoundError, ValidationError

from . import checklist
from .models import (
    CHECKLIST_FIELDS,
    DEFAULT_ONBOARDING_TEMPLATE,
    DEFAULT_STAGES,
    DEFAULT_TASK_TEMPLATE,
    IMMUTABLE_FIELDS,
    PATCHABLE_FIELDS,
    Account,
    ChecklistItem,
    new_id,
    utcnow,
)
from .stage_index import StageIndex, build_stage_index

logger = logging.getLogger(__name__)

# Fields whose values are whitespace-trimmed on every write
_TRIMMED_FIELDS = ("name", "phone", "email", "website")


class EventKind(str, Enum):
    """Kinds of accepted store mutations."""

    CREATED = "created"
    PATCHED = "patched"
    DELETED = "deleted"
    SELECTED = "selected"
    STAGES_CHANGED = "stages_changed"


@dataclass(frozen=True)
class StoreEvent:
    """
    Notification of one accepted mutation.

    ``account`` is the immutable post-mutation snapshot (None for deletes
    and non-account events); ``changes`` holds only the fields written.
    """

    kind: EventKind
    account_id: str | None = None
    account: Account | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    stages: tuple[str, ...] = ()
    selected_id: str | None = None


StoreListener = Callable[[StoreEvent], None]


class AccountDraft(BaseModel):
    """Caller-supplied fields for a new account."""

    name: str = ""
    status: str | None = None
    phone: str = ""
    email: str = ""
    website: str = ""
    notes: str = ""


def normalize_stages(stages: Iterable[str] | None) -> list[str]:
    """
    De-duplicate and clean a stage list, preserving order.

    Raises:
        ValidationError: If no usable stage names remain
    """
    result: list[str] = []
    for stage in stages or []:
        if not isinstance(stage, str):
            continue
        name = stage.strip()
        if name and name not in result:
            result.append(name)
    if not result:
        raise ValidationError("At least one stage is required")
    return result


class AccountStore:
    """
    Authoritative mapping of account id to Account.

    Example:
        >>> store = AccountStore()
        >>> acct = store.create({"name": "Acme Clinic"})
        >>> acct.status
        'Lead'
        >>> store.move(acct.id, "Demo booked").status
        'Demo booked'
    """

    def __init__(
        self,
        stages: Iterable[str] | None = None,
        task_template: Iterable[str] | None = None,
        onboarding_template: Iterable[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            stages: Ordered stage names (defaults to DEFAULT_STAGES)
            task_template: Item names seeded into every new account's tasks
            onboarding_template: Item names seeded into every onboarding checklist
            clock: Source of "now" (injectable for tests)
            id_factory: Source of fresh ids (injectable for tests)
        """
        self._stages = normalize_stages(DEFAULT_STAGES if stages is None else stages)
        self._task_template = list(
            DEFAULT_TASK_TEMPLATE if task_template is None else task_template
        )
        self._onboarding_template = list(
            DEFAULT_ONBOARDING_TEMPLATE if onboarding_template is None else onboarding_template
        )
        self._clock = clock
        self._id_factory = id_factory

        self._accounts: dict[str, Account] = {}
        # Monotonic touch counter; breaks updated_at ties in display order
        self._touched: dict[str, int] = {}
        self._touch_seq = 0
        self._retired_ids: set[str] = set()
        self._selected_id: str | None = None
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a listener for accepted mutations.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Store listener failed on %s event", event.kind.value)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def stages(self) -> list[str]:
        return list(self._stages)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected(self) -> Account | None:
        if self._selected_id is None:
            return None
        return self._accounts.get(self._selected_id)

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts

    def get(self, account_id: str) -> Account | None:
        return self._accounts.get(account_id)

    def all(self) -> list[Account]:
        """Return every account, most recently touched first."""
        return sorted(
            self._accounts.values(),
            key=lambda a: (a.updated_at, self._touched.get(a.id, 0)),
            reverse=True,
        )

    def search(self, query: str = "", status: str | None = None) -> list[Account]:
        """
        Filter accounts in display order.

        Args:
            query: Case-insensitive substring matched against name, email, phone
            status: Exact stage to keep (None keeps all)

        Returns:
            Matching accounts, most recently touched first
        """
        needle = query.strip().lower()
        results = []
        for account in self.all():
            if status is not None and account.status != status:
                continue
            if needle and not any(
                needle in value.lower() for value in (account.name, account.email, account.phone)
            ):
                continue
            results.append(account)
        return results

    def stage_index(self) -> StageIndex:
        """Group current accounts by stage in configured stage order."""
        return build_stage_index(self.all(), self._stages)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, draft: AccountDraft | Mapping[str, Any] | None = None, **fields: Any) -> Account:
        """
        Create a new account seeded from the checklist templates.

        Args:
            draft: AccountDraft or mapping of draft fields
            **fields: Draft fields given as keywords (override ``draft``)

        Returns:
            The created Account (also selected)

        Raises:
            ValidationError: If the name is empty after trimming
        """
        if isinstance(draft, AccountDraft):
            data = draft.model_dump()
        else:
            data = dict(draft or {})
        data.update(fields)
        try:
            parsed = AccountDraft(**data)
        except (PydanticValidationError, TypeError) as e:
            raise ValidationError(f"Invalid account draft: {e}") from e

        name = parsed.name.strip()
        if not name:
            raise ValidationError("Account name must not be empty", field="name")

        status = (parsed.status or "").strip()
        if status not in self._stages:
            status = self._stages[0]

        account_id = self._fresh_id()
        now = self._stamp(None)
        account = Account(
            id=account_id,
            name=name,
            status=status,
            phone=parsed.phone.strip(),
            email=parsed.email.strip(),
            website=parsed.website.strip(),
            notes=parsed.notes.strip(),
            tasks=checklist.make_checklist(self._task_template, self._id_factory),
            onboarding=checklist.make_checklist(self._onboarding_template, self._id_factory),
            created_at=now,
            updated_at=now,
        )
        self._put(account)
        logger.debug("Created account %s (%s)", account.id, account.name)
        self._emit(StoreEvent(kind=EventKind.CREATED, account_id=account.id, account=account))
        self._set_selected(account.id)
        return account

    def patch(self, account_id: str, fields: Mapping[str, Any] | None = None, **kwargs: Any) -> Account:
        """
        Shallow-merge fields over an account and re-stamp ``updated_at``.

        ``id``, ``created_at`` and ``updated_at`` are never overwritten; they
        are dropped from the patch if present.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If a field is unknown or a value is invalid
        """
        account = self._require(account_id)
        changes = self._clean_patch({**(fields or {}), **kwargs})
        return self._write(account, changes)

    def move(self, account_id: str, status: str) -> Account:
        """
        Move an account to another stage.

        Moving to the current stage is still a write and advances
        ``updated_at``.
        """
        return self.patch(account_id, {"status": status})

    def toggle_task(self, account_id: str, item_id: str) -> Account:
        return self._toggle(account_id, "tasks", item_id)

    def toggle_onboarding_item(self, account_id: str, item_id: str) -> Account:
        return self._toggle(account_id, "onboarding", item_id)

    def add_task(self, account_id: str, name: str) -> Account:
        return self._add(account_id, "tasks", name)

    def add_onboarding_item(self, account_id: str, name: str) -> Account:
        return self._add(account_id, "onboarding", name)

    def remove_task(self, account_id: str, item_id: str) -> Account:
        return self._remove(account_id, "tasks", item_id)

    def remove_onboarding_item(self, account_id: str, item_id: str) -> Account:
        return self._remove(account_id, "onboarding", item_id)

    def delete(self, account_id: str) -> bool:
        """
        Delete an account. Deletion is terminal; the id is never reused.

        Returns:
            True if an account was removed, False if it was already absent
        """
        if account_id not in self._accounts:
            return False

        del self._accounts[account_id]
        self._touched.pop(account_id, None)
        self._retired_ids.add(account_id)
        logger.debug("Deleted account %s", account_id)
        self._emit(StoreEvent(kind=EventKind.DELETED, account_id=account_id))

        if self._selected_id == account_id:
            remaining = self.all()
            self._set_selected(remaining[0].id if remaining else None)
        return True

    def select(self, account_id: str | None) -> None:
        """
        Change the selected account.

        Raises:
            NotFoundError: If ``account_id`` is not None and unknown
        """
        if account_id is not None:
            self._require(account_id)
        self._set_selected(account_id)

    def set_stages(self, stages: Iterable[str]) -> list[str]:
        """
        Replace the configured stage list.

        Accounts whose status is no longer a stage are kept; the Stage Index
        shows them in its catch-all group.
        """
        cleaned = normalize_stages(stages)
        if cleaned == self._stages:
            return self.stages
        self._stages = cleaned
        self._emit(
            StoreEvent(
                kind=EventKind.STAGES_CHANGED,
                stages=tuple(cleaned),
                selected_id=self._selected_id,
            )
        )
        return self.stages

    def replace_all(self, accounts: Iterable[Account], selected_id: str | None = None) -> None:
        """
        Swap in loaded state wholesale (used at load time).

        Stored state supersedes in-memory state here, so no events are
        emitted and nothing is re-stamped. ``accounts`` is expected in
        display order (most recent first).
        """
        ordered = list(accounts)
        self._accounts = {}
        self._touched = {}
        for account in reversed(ordered):
            self._put(account)
        if selected_id is not None and selected_id in self._accounts:
            self._selected_id = selected_id
        else:
            first = self.all()
            self._selected_id = first[0].id if first else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}", account_id=account_id)
        return account

    def _fresh_id(self) -> str:
        while True:
            candidate = self._id_factory()
            if candidate not in self._accounts and candidate not in self._retired_ids:
                return candidate

    def _stamp(self, previous: datetime | None) -> datetime:
        now = self._clock()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    def _put(self, account: Account) -> None:
        self._touch_seq += 1
        self._accounts[account.id] = account
        self._touched[account.id] = self._touch_seq

    def _set_selected(self, account_id: str | None) -> None:
        if account_id == self._selected_id:
            return
        self._selected_id = account_id
        self._emit(
            StoreEvent(
                kind=EventKind.SELECTED,
                account_id=account_id,
                stages=tuple(self._stages),
                selected_id=account_id,
            )
        )

    def _write(self, account: Account, changes: dict[str, Any]) -> Account:
        updated_at = self._stamp(account.updated_at)
        for key in CHECKLIST_FIELDS:
            if key in changes:
                changes[key] = tuple(changes[key])
        updated = account.model_copy(update={**changes, "updated_at": updated_at})
        self._put(updated)
        self._emit(
            StoreEvent(
                kind=EventKind.PATCHED,
                account_id=updated.id,
                account=updated,
                changes=dict(changes),
            )
        )
        return updated

    def _clean_patch(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key, value in fields.items():
            if key in IMMUTABLE_FIELDS:
                logger.debug("Ignoring immutable field %r in patch", key)
                continue
            if key not in PATCHABLE_FIELDS:
                raise ValidationError(f"Unknown account field: {key}", field=key)

            if key in CHECKLIST_FIELDS:
                changes[key] = self._coerce_checklist(key, value)
                continue

            if not isinstance(value, str):
                raise ValidationError(f"Field {key} must be a string", field=key)
            if key in _TRIMMED_FIELDS:
                value = value.strip()

            if key == "name" and not value:
                raise ValidationError("Account name must not be empty", field="name")
            if key == "status":
                value = value.strip()
                if value not in self._stages:
                    raise ValidationError(
                        f"Unknown stage: {value!r}", field="status", stages=self.stages
                    )
            changes[key] = value
        return changes

    def _coerce_checklist(self, key: str, value: Any) -> list[ChecklistItem]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"Field {key} must be a list of checklist items", field=key)
        items: list[ChecklistItem] = []
        seen: set[str] = set()
        for raw in value:
            try:
                item = raw if isinstance(raw, ChecklistItem) else ChecklistItem(**raw)
            except (PydanticValidationError, TypeError) as e:
                raise ValidationError(f"Invalid checklist item in {key}: {e}", field=key) from e
            if not item.name.strip():
                raise ValidationError(f"Checklist item names must not be empty ({key})", field=key)
            if item.id in seen:
                raise ValidationError(f"Duplicate checklist item id {item.id!r} in {key}", field=key)
            seen.add(item.id)
            items.append(item)
        return items

    def _toggle(self, account_id: str, which: str, item_id: str) -> Account:
        account = self._require(account_id)
        items = account.checklist(which)
        if checklist.find_item(items, item_id) is None:
            raise NotFoundError(
                f"Checklist item not found: {item_id}",
                account_id=account_id,
                checklist=which,
                item_id=item_id,
            )
        return self._write(account, {which: checklist.toggle_item(items, item_id)})

    def _add(self, account_id: str, which: str, name: str) -> Account:
        account = self._require(account_id)
        if not name.strip():
            raise ValidationError("Checklist item name must not be empty", field=which)
        items = account.checklist(which)
        existing = {item.id for item in items}

        def item_id() -> str:
            while True:
                candidate = self._id_factory()
                if candidate not in existing:
                    return candidate

        return self._write(account, {which: checklist.add_item(items, name, item_id)})

    def _remove(self, account_id: str, which: str, item_id: str) -> Account:
        account = self._require(account_id)
        items = account.checklist(which)
        if checklist.find_item(items, item_id) is None:
            raise NotFoundError(
                f"Checklist item not found: {item_id}",
                account_id=account_id,
                checklist=which,
                item_id=item_id,
            )
        return self._write(account, {which: checklist.remove_item(items, item_id)})
