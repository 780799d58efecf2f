"""
Row <-> Account normalization.

Rows arrive from the local cache blob or the remote store in whatever
shape they were written; ``account_from_row`` is total: any input,
however malformed, becomes a valid Account without raising. Missing
fields take the documented defaults (empty strings, empty checklists,
"now" for absent timestamps, first stage for a missing status).
"""

import json
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from pipecrm.core.accounts.models import (
    CHECKLIST_FIELDS,
    CONTACT_FIELDS,
    DEFAULT_STAGES,
    Account,
    ChecklistItem,
    new_id,
    utcnow,
)

# Fractional seconds of any length; normalized to 6 digits for fromisoformat
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts datetime objects, ``Z`` suffixes and fractional seconds of any
    precision (as Postgres emits them). Returns None for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside datetime's range
        return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    return ""


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y", "t")
    return False


def checklist_from_rows(value: Any) -> list[ChecklistItem]:
    """
    Normalize a stored checklist, preserving item order.

    Accepts a list or a JSON-encoded list. Non-object entries and items
    without a name are skipped; missing or duplicate ids get fresh ones so
    ids stay unique per list.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return []
    if not isinstance(value, (list, tuple)):
        return []

    items: list[ChecklistItem] = []
    seen: set[str] = set()
    for raw in value:
        if isinstance(raw, ChecklistItem):
            item_id, name, done = raw.id, raw.name, raw.done
        elif isinstance(raw, Mapping):
            item_id = _text(raw.get("id"))
            name = _text(raw.get("name"))
            done = _flag(raw.get("done"))
        else:
            continue
        if not name.strip():
            continue
        if not item_id or item_id in seen:
            item_id = new_id()
        seen.add(item_id)
        items.append(ChecklistItem(id=item_id, name=name, done=done))
    return items


def account_from_row(
    row: Any,
    default_status: str = DEFAULT_STAGES[0],
    clock: Callable[[], datetime] = utcnow,
) -> Account:
    """
    Normalize a stored row into an Account. Never raises.

    Contact fields may be flattened on the row or nested under
    ``contact``; flat values win when both are present.

    Args:
        row: Row mapping (anything else is treated as an empty row)
        default_status: Status used when the row has none
        clock: Source of "now" for absent timestamps

    Returns:
        A valid Account
    """
    if not isinstance(row, Mapping):
        row = {}

    nested = row.get("contact")
    if not isinstance(nested, Mapping):
        nested = {}

    contact = {}
    for key in CONTACT_FIELDS:
        value = row.get(key)
        if value is None:
            value = nested.get(key)
        contact[key] = _text(value)

    now = clock()
    updated_at = parse_timestamp(row.get("updated_at"))
    created_at = parse_timestamp(row.get("created_at")) or updated_at or now

    return Account(
        id=_text(row.get("id")) or new_id(),
        name=_text(row.get("name")),
        status=_text(row.get("status")).strip() or default_status,
        tasks=checklist_from_rows(row.get("tasks")),
        onboarding=checklist_from_rows(row.get("onboarding")),
        created_at=created_at,
        updated_at=updated_at or now,
        **contact,
    )


def account_to_row(account: Account) -> dict[str, Any]:
    """Serialize an Account into a flat, JSON-ready row."""
    return account.model_dump(mode="json")


def changes_to_row(changes: Mapping[str, Any]) -> dict[str, Any]:
    """
    Serialize a partial set of account fields for a patch write.

    Checklists become lists of plain dicts and datetimes become ISO strings.
    """
    row: dict[str, Any] = {}
    for key, value in changes.items():
        if key in CHECKLIST_FIELDS:
            row[key] = [
                item.model_dump(mode="json") if isinstance(item, ChecklistItem) else dict(item)
                for item in value
            ]
        elif isinstance(value, datetime):
            row[key] = value.isoformat()
        else:
            row[key] = value
    return row
