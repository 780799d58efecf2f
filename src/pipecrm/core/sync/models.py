"""
Data models for the sync controller.

Defines Pydantic models for the outcome of each background persistence
call and the running status folded from those outcomes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class SyncOperation(str, Enum):
    """Persistence call issued for an accepted store mutation."""

    UPSERT = "upsert"
    PATCH = "patch"
    DELETE = "delete"
    SAVE_META = "save_meta"


# Status line text shown after a successful operation
_SUCCESS_MESSAGES = {
    SyncOperation.UPSERT: "Saved.",
    SyncOperation.PATCH: "Saved.",
    SyncOperation.DELETE: "Deleted.",
    SyncOperation.SAVE_META: "Saved.",
}


class SyncResult(BaseModel):
    """
    Outcome of one background persistence call.

    Example:
        >>> result = SyncResult(operation=SyncOperation.DELETE, account_id="abc", ok=True)
        >>> result.summary()
        'Deleted.'
    """

    operation: SyncOperation = Field(description="Adapter call that was made")
    account_id: str | None = Field(default=None, description="Account the call was about")
    ok: bool = Field(description="Whether the call succeeded")
    error: str | None = Field(default=None, description="Error text if the call failed")
    adapter: str = Field(default="", description="Name of the adapter that handled the call")
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> str:
        """Generate a human-readable status line for this result."""
        if self.ok:
            return _SUCCESS_MESSAGES[self.operation]
        return f"{self.operation.value} failed: {self.error}"


class SyncStatus(BaseModel):
    """
    Running sync status folded from every SyncResult so far.

    ``ok`` and ``message`` describe the most recent result; ``failures``
    counts every failed call since the controller started.
    """

    ok: bool = Field(default=True)
    message: str = Field(default="")
    completed: int = Field(default=0, description="Calls that have finished")
    failures: int = Field(default=0, description="Calls that failed")
    pending: int = Field(default=0, description="Calls queued or running")
    last_error: str | None = Field(default=None)
    last_result: SyncResult | None = Field(default=None)

    def record(self, result: SyncResult) -> SyncStatus:
        """Return a new status with ``result`` folded in."""
        return self.model_copy(
            update={
                "ok": result.ok,
                "message": result.summary(),
                "completed": self.completed + 1,
                "failures": self.failures + (0 if result.ok else 1),
                "last_error": self.last_error if result.ok else result.error,
                "last_result": result,
            }
        )
