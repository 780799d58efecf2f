"""
Tests for the drag-and-drop gesture state machine.
"""

import pytest

from pipecrm.core.accounts.gesture import DragGesture, GestureState


@pytest.fixture
def account(store):
    return store.create(name="Acme")


@pytest.fixture
def gesture(store):
    return DragGesture(store)


class TestDragGesture:
    def test_starts_idle(self, gesture):
        assert gesture.state is GestureState.IDLE
        assert not gesture.active

    def test_drop_moves_account(self, store, gesture, account):
        gesture.start(account.id)
        gesture.hover("Demo booked")
        moved = gesture.drop()

        assert moved.status == "Demo booked"
        assert store.get(account.id).status == "Demo booked"
        assert gesture.end() is GestureState.DROPPED
        assert gesture.state is GestureState.IDLE
        assert gesture.source_id is None

    def test_explicit_drop_target_wins(self, store, gesture, account):
        gesture.start(account.id)
        gesture.hover("Testing")
        gesture.drop("Live")
        assert store.get(account.id).status == "Live"

    def test_same_stage_drop_is_a_write(self, store, gesture, account):
        gesture.start(account.id)
        moved = gesture.drop("Lead")
        assert moved is not None
        assert moved.updated_at > account.updated_at

    def test_hover_never_mutates(self, store, gesture, account):
        gesture.start(account.id)
        gesture.hover("Live")
        assert store.get(account.id) == account

    def test_invalid_target_cancels(self, store, gesture, account):
        gesture.start(account.id)
        gesture.hover("Not a stage")
        assert gesture.target_stage is None
        assert gesture.drop() is None
        assert gesture.end() is GestureState.CANCELLED
        assert store.get(account.id) == account

    def test_source_deleted_mid_drag_cancels(self, store, gesture, account):
        gesture.start(account.id)
        store.delete(account.id)
        assert gesture.drop("Live") is None
        assert gesture.end() is GestureState.CANCELLED

    def test_drop_without_start(self, gesture):
        assert gesture.drop("Live") is None
        assert gesture.end() is GestureState.CANCELLED

    def test_cancel(self, store, gesture, account):
        gesture.start(account.id)
        gesture.cancel()
        assert gesture.end() is GestureState.CANCELLED
        assert store.get(account.id) == account
