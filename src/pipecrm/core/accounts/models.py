"""
Account data models for pipecrm.

Defines the Account record tracked through the stage pipeline, its two
checklists, and the progress counters derived from them.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_STAGES: list[str] = [
    "Lead",
    "Demo booked",
    "Demo done",
    "Yes / Closed-Won",
    "Onboarding sent",
    "Build in progress",
    "Testing",
    "Live",
    "Monthly support",
    "Closed-Lost",
]

DEFAULT_TASK_TEMPLATE: list[str] = [
    "Send onboarding email",
    "Confirm Calendly link",
    "Confirm intake form fields",
    "Review clinic branding",
]

DEFAULT_ONBOARDING_TEMPLATE: list[str] = [
    "Confirm intake questions + branding",
    "Configure intake form",
    "Setup automation flows",
    "QA intake form",
    "QA automation flows",
    "Train clinic staff",
    "Go live",
    "Post-launch check-in",
]

CONTACT_FIELDS: tuple[str, ...] = ("phone", "email", "website", "notes")
CHECKLIST_FIELDS: tuple[str, ...] = ("tasks", "onboarding")
PATCHABLE_FIELDS: frozenset[str] = frozenset(
    ("name", "status", *CONTACT_FIELDS, *CHECKLIST_FIELDS)
)
IMMUTABLE_FIELDS: frozenset[str] = frozenset(("id", "created_at", "updated_at"))


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChecklistItem(BaseModel):
    """One named boolean item on a checklist."""

    id: str = Field(default_factory=new_id, description="Unique within its checklist")
    name: str = Field(..., description="Item label")
    done: bool = Field(default=False, description="Whether the item is checked off")

    model_config = ConfigDict(frozen=True)


class Progress(BaseModel):
    """
    Completion counters for a checklist.

    Example:
        >>> Progress(done=1, total=8, pct=13).pct
        13
    """

    done: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    pct: int = Field(default=0, ge=0, le=100)

    model_config = ConfigDict(frozen=True)


class Account(BaseModel):
    """
    A tracked business record moving through the stage pipeline.

    Accounts are immutable values: every store mutation produces a new
    Account via ``model_copy``. ``status`` is a plain string so that a
    stored value outside the configured stages survives a load and can be
    shown in the Stage Index catch-all instead of being rejected.
    """

    id: str = Field(default_factory=new_id, description="Opaque, never reused")
    name: str = Field(default="", description="Display name (non-empty once accepted)")
    status: str = Field(default=DEFAULT_STAGES[0], description="Current stage")

    phone: str = ""
    email: str = ""
    website: str = ""
    notes: str = ""

    tasks: tuple[ChecklistItem, ...] = Field(default_factory=tuple)
    onboarding: tuple[ChecklistItem, ...] = Field(default_factory=tuple)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @property
    def task_progress(self) -> Progress:
        from .checklist import progress

        return progress(self.tasks)

    @property
    def onboarding_progress(self) -> Progress:
        from .checklist import progress

        return progress(self.onboarding)

    def checklist(self, which: str) -> tuple[ChecklistItem, ...]:
        """Return the named checklist ("tasks" or "onboarding")."""
        if which not in CHECKLIST_FIELDS:
            raise KeyError(which)
        items: tuple[ChecklistItem, ...] = getattr(self, which)
        return items
