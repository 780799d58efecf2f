"""
Checklist operations.

Pure, copy-on-write functions over an ordered list of ChecklistItem. None
of them mutate their input; callers apply the returned list back onto the
owning account.
"""

from collections.abc import Callable, Iterable, Sequence

from .models import ChecklistItem, Progress, new_id


def make_checklist(
    names: Iterable[str], id_factory: Callable[[], str] = new_id
) -> list[ChecklistItem]:
    """Seed a checklist from template names, every item unchecked."""
    return [ChecklistItem(id=id_factory(), name=name, done=False) for name in names]


def add_item(
    items: Sequence[ChecklistItem],
    name: str,
    id_factory: Callable[[], str] = new_id,
) -> list[ChecklistItem]:
    """
    Append a new unchecked item.

    A name that trims to empty is rejected: the list comes back unchanged.

    Args:
        items: Current checklist
        name: Label for the new item (trimmed)
        id_factory: Id generator, overridable for deterministic tests

    Returns:
        New list with the item appended
    """
    label = name.strip()
    if not label:
        return list(items)
    return [*items, ChecklistItem(id=id_factory(), name=label, done=False)]


def toggle_item(items: Sequence[ChecklistItem], item_id: str) -> list[ChecklistItem]:
    """Flip ``done`` on the matching item; unknown ids leave the list as-is."""
    return [
        item.model_copy(update={"done": not item.done}) if item.id == item_id else item
        for item in items
    ]


def remove_item(items: Sequence[ChecklistItem], item_id: str) -> list[ChecklistItem]:
    """Drop the matching item; unknown ids leave the list as-is."""
    return [item for item in items if item.id != item_id]


def find_item(items: Sequence[ChecklistItem], item_id: str) -> ChecklistItem | None:
    for item in items:
        if item.id == item_id:
            return item
    return None


def progress(items: Sequence[ChecklistItem]) -> Progress:
    """
    Summarize completion of a checklist.

    ``pct`` is ``done / total * 100`` rounded half-up (12.5 -> 13), and 0
    for an empty list.

    Example:
        >>> progress([]).pct
        0
    """
    total = len(items)
    done = sum(1 for item in items if item.done)
    if total == 0:
        return Progress(done=0, total=0, pct=0)
    # Integer half-up rounding; built-in round() would give 12 for 12.5.
    pct = (done * 200 + total) // (2 * total)
    return Progress(done=done, total=total, pct=pct)
