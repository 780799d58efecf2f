"""
Tests for the mirrored (local + remote) adapter.
"""

import pytest

from conftest import FailingAdapter, RecordingAdapter, make_account
from pipecrm.core.exceptions import PersistenceTransientError
from pipecrm.core.persistence.local import LocalCacheAdapter
from pipecrm.core.persistence.mirrored import MirroredAdapter, compare_account_lists


@pytest.fixture
def cache(cache_path):
    return LocalCacheAdapter(cache_path)


class TestMirroredAdapter:
    def test_writes_both(self, cache, recording_adapter, sample_account):
        adapter = MirroredAdapter(cache, recording_adapter)
        adapter.upsert(sample_account)
        adapter.patch(sample_account.id, {"status": "Live"})

        assert cache.load_all()[0].status == "Live"
        assert [c[0] for c in recording_adapter.calls] == ["upsert", "patch"]
        assert recording_adapter.rows[sample_account.id].status == "Live"

    def test_delete_both(self, cache, recording_adapter, sample_account):
        adapter = MirroredAdapter(cache, recording_adapter)
        adapter.upsert(sample_account)
        adapter.delete(sample_account.id)
        assert cache.load_all() == []
        assert recording_adapter.rows == {}

    def test_remote_failure_keeps_local_write(self, cache, failing_adapter, sample_account):
        adapter = MirroredAdapter(cache, failing_adapter)
        with pytest.raises(PersistenceTransientError) as exc_info:
            adapter.upsert(sample_account)
        assert exc_info.value.context["operation"] == "upsert"
        assert [a.id for a in cache.load_all()] == [sample_account.id]

    def test_load_prefers_remote(self, cache, sample_accounts):
        cache.upsert(make_account("local-only"))
        remote = RecordingAdapter(sample_accounts, name="remote")
        adapter = MirroredAdapter(cache, remote)
        assert [a.id for a in adapter.load_all()] == ["acct-3", "acct-2", "acct-1"]

    def test_load_falls_back_to_local(self, cache, sample_account):
        cache.upsert(sample_account)
        adapter = MirroredAdapter(cache, FailingAdapter(fail_loads=True, name="remote"))
        assert adapter.load_all() == [sample_account]

    def test_adapter_name(self, cache, recording_adapter):
        assert MirroredAdapter(cache, recording_adapter).adapter_name == "mirrored(local+fake)"


class TestCompareAccountLists:
    def test_identical(self, sample_accounts):
        assert compare_account_lists(sample_accounts, list(sample_accounts)) is None

    def test_differences(self, sample_accounts):
        local = [*sample_accounts, make_account("acct-x")]
        remote = [sample_accounts[0].model_copy(update={"updated_at": make_account().updated_at})]
        summary = compare_account_lists(local, remote)
        assert "3 only in local cache" in summary
        assert "1 with different updated_at" in summary
