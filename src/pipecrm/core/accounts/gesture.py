"""
Drag-and-drop stage moves.

A small state machine (idle -> dragging -> dropped | cancelled -> idle)
that turns pointer gestures into a single ``AccountStore.move`` call. The
store knows nothing about gestures; the gesture only ever commits through
the plain ``move`` API.
"""

import logging
from enum import Enum

from pipecrm.core.exceptions import NotFoundError, ValidationError

from .models import Account
from .store import AccountStore

logger = logging.getLogger(__name__)


class GestureState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class DragGesture:
    """
    Transient drag state for moving an account between stages.

    Example:
        >>> gesture = DragGesture(store)
        >>> gesture.start(account.id)
        >>> gesture.hover("Demo booked")
        >>> gesture.drop("Demo booked")   # commits store.move
        >>> gesture.end()                 # always back to idle
    """

    def __init__(self, store: AccountStore) -> None:
        self.store = store
        self.state = GestureState.IDLE
        self.source_id: str | None = None
        self.target_stage: str | None = None

    @property
    def active(self) -> bool:
        return self.state == GestureState.DRAGGING

    def start(self, account_id: str) -> None:
        """Begin dragging ``account_id``. Restarting mid-drag replaces the source."""
        self.state = GestureState.DRAGGING
        self.source_id = account_id
        self.target_stage = None

    def hover(self, stage: str | None) -> None:
        """Track the candidate target stage; never mutates the store."""
        if self.state != GestureState.DRAGGING:
            return
        self.target_stage = stage if stage in self.store.stages else None

    def drop(self, stage: str | None = None) -> Account | None:
        """
        Commit the drop.

        Dropping onto the account's current stage is still a move (and
        advances ``updated_at``). An invalid or missing target, a missing
        source, or a source deleted mid-drag cancels without mutating.

        Args:
            stage: Drop target; defaults to the last hovered stage

        Returns:
            The moved Account, or None if nothing was committed
        """
        if self.state != GestureState.DRAGGING or self.source_id is None:
            self.state = GestureState.CANCELLED
            return None

        target = stage if stage is not None else self.target_stage
        if target is None or target not in self.store.stages:
            logger.debug("Drop target %r is not a stage; cancelling drag", target)
            self.state = GestureState.CANCELLED
            return None

        try:
            moved = self.store.move(self.source_id, target)
        except (NotFoundError, ValidationError) as e:
            logger.debug("Drop of %s cancelled: %s", self.source_id, e)
            self.state = GestureState.CANCELLED
            return None

        self.state = GestureState.DROPPED
        return moved

    def cancel(self) -> None:
        if self.state == GestureState.DRAGGING:
            self.state = GestureState.CANCELLED

    def end(self) -> GestureState:
        """
        Clear transient drag state regardless of outcome.

        Returns:
            The state the gesture finished in (before resetting to idle)
        """
        outcome = self.state
        self.state = GestureState.IDLE
        self.source_id = None
        self.target_stage = None
        return outcome
