"""
Account models, checklist operations, the in-memory store and stage grouping.
"""

from .checklist import add_item, make_checklist, progress, remove_item, toggle_item
from .gesture import DragGesture, GestureState
from .models import (
    DEFAULT_ONBOARDING_TEMPLATE,
    DEFAULT_STAGES,
    DEFAULT_TASK_TEMPLATE,
    Account,
    ChecklistItem,
    Progress,
)
from .stage_index import StageIndex, build_stage_index
from .store import AccountDraft, AccountStore, EventKind, StoreEvent

__all__ = [
    # Models
    "Account",
    "ChecklistItem",
    "Progress",
    "DEFAULT_STAGES",
    "DEFAULT_TASK_TEMPLATE",
    "DEFAULT_ONBOARDING_TEMPLATE",
    # Checklist operations
    "make_checklist",
    "add_item",
    "toggle_item",
    "remove_item",
    "progress",
    # Store
    "AccountDraft",
    "AccountStore",
    "EventKind",
    "StoreEvent",
    # Stage grouping
    "StageIndex",
    "build_stage_index",
    "DragGesture",
    "GestureState",
]
