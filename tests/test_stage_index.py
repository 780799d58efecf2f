"""
Tests for stage grouping.
"""

from datetime import timedelta

from conftest import T0, make_account
from pipecrm.core.accounts.models import DEFAULT_STAGES
from pipecrm.core.accounts.stage_index import build_stage_index


class TestBuildStageIndex:
    def test_every_stage_present_even_empty(self):
        index = build_stage_index([], DEFAULT_STAGES)
        assert list(index.columns) == DEFAULT_STAGES
        assert all(count == 0 for count in index.counts().values())
        assert index.total == 0

    def test_groups_in_stage_order_keeping_account_order(self, sample_accounts):
        extra = make_account("acct-4", "Dune Vision", "Lead", T0 - timedelta(hours=1))
        index = build_stage_index([*sample_accounts, extra], DEFAULT_STAGES)

        assert [a.id for a in index["Lead"]] == ["acct-1", "acct-4"]
        assert [a.id for a in index["Demo booked"]] == ["acct-2"]
        assert [a.id for a in index["Live"]] == ["acct-3"]
        assert index.counts()["Lead"] == 2
        assert index.total == 4

    def test_each_account_in_exactly_one_group(self, sample_accounts):
        foreign = make_account("acct-9", "Elm Spa", "Archived")
        index = build_stage_index([*sample_accounts, foreign], DEFAULT_STAGES)

        seen = [a.id for _, accounts in index for a in accounts] + [a.id for a in index.unstaged]
        assert sorted(seen) == ["acct-1", "acct-2", "acct-3", "acct-9"]
        assert [a.id for a in index.unstaged] == ["acct-9"]
        assert "Archived" not in index.columns

    def test_stage_of(self, sample_accounts):
        index = build_stage_index(sample_accounts, DEFAULT_STAGES)
        assert index.stage_of("acct-2") == "Demo booked"
        assert index.stage_of("missing") is None

    def test_resolve_drop_target(self):
        index = build_stage_index([], ["New", "Won"])
        assert index.resolve_drop_target("Won") == "Won"
        assert index.resolve_drop_target("Lost") is None
        assert index.resolve_drop_target(None) is None

    def test_store_index_follows_store_order(self, store, clock):
        a = store.create(name="A")
        clock.advance()
        store.create(name="B")
        clock.advance()
        store.move(a.id, "Lead")
        assert [x.name for x in store.stage_index()["Lead"]] == ["A", "B"]
