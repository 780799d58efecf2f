"""
Tests for row <-> Account normalization.
"""

import json
from datetime import datetime, timezone

import pytest

from conftest import T0, FakeClock
from pipecrm.core.accounts.models import ChecklistItem
from pipecrm.core.persistence.normalize import (
    account_from_row,
    account_to_row,
    changes_to_row,
    checklist_from_rows,
    parse_timestamp,
)


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "value",
        [
            "2024-03-01T09:00:00Z",
            "2024-03-01T09:00:00+00:00",
            "2024-03-01T10:00:00+01:00",
            "2024-03-01T09:00:00",
            T0,
        ],
    )
    def test_parses_to_utc(self, value):
        assert parse_timestamp(value) == T0

    def test_postgres_fraction_precision(self):
        parsed = parse_timestamp("2024-03-01T09:00:00.12345+00:00")
        assert parsed == datetime(2024, 3, 1, 9, 0, 0, 123450, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "yesterday",
            42,
            {},
            "0001-01-01T00:00:00+05:00",
            "9999-12-31T23:00:00-05:00",
        ],
    )
    def test_rejects_garbage(self, value):
        assert parse_timestamp(value) is None


class TestChecklistFromRows:
    def test_preserves_order_and_flags(self):
        items = checklist_from_rows(
            [{"id": "a", "name": "One", "done": True}, {"id": "b", "name": "Two"}]
        )
        assert [(i.id, i.name, i.done) for i in items] == [("a", "One", True), ("b", "Two", False)]

    def test_json_string(self):
        items = checklist_from_rows(json.dumps([{"id": "a", "name": "One", "done": "true"}]))
        assert items == [ChecklistItem(id="a", name="One", done=True)]

    def test_skips_non_objects_and_fixes_ids(self):
        items = checklist_from_rows([{"name": "No id"}, "junk", {"id": "x", "name": "A"},
                                     {"id": "x", "name": "B"}])
        assert [i.name for i in items] == ["No id", "A", "B"]
        assert len({i.id for i in items}) == 3
        assert items[1].id == "x"

    def test_drops_nameless_items(self):
        items = checklist_from_rows(
            [{"id": "a", "name": "One"}, {"id": "b"}, {"id": "c", "name": "   "}, {"id": "d", "name": None}]
        )
        assert [i.id for i in items] == ["a"]

    @pytest.mark.parametrize("value", [None, 3, "not json", {"a": 1}])
    def test_garbage_becomes_empty(self, value):
        assert checklist_from_rows(value) == []


class TestAccountFromRow:
    def test_full_row(self, sample_account):
        row = account_to_row(sample_account)
        assert account_from_row(row) == sample_account

    def test_row_round_trip_preserves_checklist_order(self, sample_account):
        row = json.loads(json.dumps(account_to_row(sample_account)))
        restored = account_from_row(row)
        assert [i.id for i in restored.onboarding] == ["o1", "o2"]
        assert restored.updated_at == sample_account.updated_at

    @pytest.mark.parametrize("row", [None, [], "x", 5, {}])
    def test_never_raises(self, row):
        clock = FakeClock()
        account = account_from_row(row, default_status="Lead", clock=clock)
        assert account.status == "Lead"
        assert account.name == ""
        assert account.tasks == () and account.onboarding == ()
        assert account.updated_at == clock.now
        assert account.id

    def test_out_of_range_timestamps_fall_back_to_now(self):
        clock = FakeClock()
        account = account_from_row(
            {"id": "a", "name": "x", "updated_at": "0001-01-01T00:00:00+05:00",
             "created_at": "9999-12-31T23:00:00-05:00"},
            clock=clock,
        )
        assert account.updated_at == clock.now
        assert account.created_at == clock.now

    def test_defaults_for_missing_fields(self):
        account = account_from_row({"id": "a", "name": "Acme", "phone": None})
        assert account.phone == ""
        assert account.email == ""
        assert account.status == "Lead"

    def test_nested_contact(self):
        account = account_from_row(
            {"id": "a", "name": "Acme", "email": "flat@acme.test",
             "contact": {"email": "nested@acme.test", "phone": "555"}}
        )
        assert account.email == "flat@acme.test"
        assert account.phone == "555"

    def test_created_at_falls_back_to_updated_at(self):
        account = account_from_row({"id": "a", "updated_at": "2024-03-01T09:00:00Z"})
        assert account.created_at == T0

    def test_foreign_status_kept(self):
        assert account_from_row({"status": "Archived"}).status == "Archived"


class TestChangesToRow:
    def test_serializes_checklists_and_datetimes(self):
        row = changes_to_row(
            {
                "status": "Live",
                "tasks": [ChecklistItem(id="a", name="One", done=True)],
                "updated_at": T0,
            }
        )
        assert row == {
            "status": "Live",
            "tasks": [{"id": "a", "name": "One", "done": True}],
            "updated_at": T0.isoformat(),
        }
        json.dumps(row)
