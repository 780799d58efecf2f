"""
Tests for the Workspace composition root.
"""

import logging
from unittest.mock import patch

import httpx
import pytest

from conftest import FailingAdapter, make_account
from pipecrm.core.accounts.store import AccountStore
from pipecrm.core.config.models import PipecrmConfig
from pipecrm.core.persistence import LocalCacheAdapter, MirroredAdapter
from pipecrm.core.persistence.normalize import account_to_row
from pipecrm.core.persistence.remote import RemoteAdapter
from pipecrm.core.sync import SyncController
from pipecrm.core.workspace import Workspace


@pytest.fixture
def config(cache_path):
    return PipecrmConfig(cache={"path": cache_path})


@pytest.fixture
def remote_config(cache_path):
    return PipecrmConfig(
        cache={"path": cache_path},
        remote={"enabled": True, "url": "https://xyz.example.co", "api_key": "anon-key"},
    )


def remote_factory(rows=None, fail=False):
    """Patch target for RemoteAdapter.from_config returning a mock-backed adapter."""
    stored = {r["id"]: r for r in rows or []}

    def handler(request: httpx.Request) -> httpx.Response:
        if fail:
            return httpx.Response(503, text="unavailable")
        if request.method == "GET":
            return httpx.Response(200, json=list(stored.values()))
        return httpx.Response(204)

    def from_config(remote, default_status="Lead"):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return RemoteAdapter(remote.url, remote.api_key, client=client, default_status=default_status)

    return from_config


class TestOpen:
    def test_empty_workspace(self, config):
        with Workspace.open(config) as ws:
            assert len(ws.store) == 0
            assert ws.store.stages[0] == "Lead"
            assert ws.adapter.adapter_name == "local"
            assert not ws.remote_enabled

    def test_changes_survive_reopen(self, config):
        with Workspace.open(config) as ws:
            account = ws.store.create(name="Acme Clinic")
            ws.store.move(account.id, "Demo booked")
            ws.store.toggle_onboarding_item(account.id, account.onboarding[0].id)

        with Workspace.open(config) as ws:
            restored = ws.store.get(account.id)
            assert restored.status == "Demo booked"
            assert restored.onboarding_progress.pct == 13
            assert ws.store.selected_id == account.id

    def test_delete_survives_reopen(self, config):
        with Workspace.open(config) as ws:
            keep = ws.store.create(name="Keep")
            gone = ws.store.create(name="Gone")
            ws.store.delete(gone.id)

        with Workspace.open(config) as ws:
            assert [a.id for a in ws.store.all()] == [keep.id]
            assert ws.store.selected_id == keep.id

    def test_uses_configured_templates(self, cache_path):
        config = PipecrmConfig(
            cache={"path": cache_path}, stages=["New", "Won"], templates={"tasks": ["Call"]}
        )
        with Workspace.open(config) as ws:
            account = ws.store.create(name="Acme")
            assert account.status == "New"
            assert [i.name for i in account.tasks] == ["Call"]

    def test_cached_stages_win(self, config):
        with Workspace.open(config) as ws:
            ws.store.set_stages(["Lead", "Won"])

        with Workspace.open(config) as ws:
            assert ws.store.stages == ["Lead", "Won"]

    def test_corrupt_cache_starts_empty(self, config, cache_path, caplog):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text("{broken")
        with caplog.at_level(logging.WARNING):
            with Workspace.open(config) as ws:
                assert len(ws.store) == 0
                ws.store.create(name="Fresh")
        assert "unreadable local cache" in caplog.text

        with Workspace.open(config) as ws:
            assert [a.name for a in ws.store.all()] == ["Fresh"]

    def test_undecodable_cache_starts_empty(self, config, cache_path, caplog):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_bytes(b'{"entities": ["\xff\xfe"]}')
        with caplog.at_level(logging.WARNING):
            with Workspace.open(config) as ws:
                assert len(ws.store) == 0
        assert "unreadable local cache" in caplog.text

    def test_blank_cached_stages_use_defaults(self, config, cache_path):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text('{"entities": [], "stages": ["  "], "selectedId": null}')
        with Workspace.open(config) as ws:
            assert ws.store.stages == config.stages

    def test_loads_from_project_config(self, tmp_path, cache_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / ".pipecrm.json").write_text(
            '{"stages": ["Lead", "Live"], "cache": {"path": "%s"}}' % cache_path.as_posix()
        )
        with Workspace.open(project_dir=project) as ws:
            assert ws.store.stages == ["Lead", "Live"]
            assert ws.cache.path == cache_path


class TestRemote:
    def test_remote_is_authoritative(self, remote_config, cache_path):
        LocalCacheAdapter(cache_path).upsert(make_account("stale", "Stale Local"))
        rows = [account_to_row(make_account("r1", "Remote One", "Live"))]

        with patch.object(RemoteAdapter, "from_config", side_effect=remote_factory(rows)):
            with Workspace.open(remote_config) as ws:
                assert ws.remote_enabled
                assert [a.id for a in ws.store.all()] == ["r1"]

        # Local cache now mirrors the remote
        assert [a.id for a in LocalCacheAdapter(cache_path).load_all()] == ["r1"]

    def test_remote_down_falls_back_to_local(self, remote_config, cache_path):
        LocalCacheAdapter(cache_path).upsert(make_account("local-1", "Local"))
        with patch.object(RemoteAdapter, "from_config", side_effect=remote_factory(fail=True)):
            with Workspace.open(remote_config) as ws:
                assert [a.id for a in ws.store.all()] == ["local-1"]

    def test_remote_write_failure_keeps_local(self, remote_config, cache_path):
        with patch.object(RemoteAdapter, "from_config", side_effect=remote_factory(fail=True)):
            with Workspace.open(remote_config) as ws:
                account = ws.store.create(name="Acme Clinic")
                ws.controller.flush(timeout=5)
                assert ws.store.get(account.id) == account
                assert ws.controller.status.failures == 1

        assert [a.id for a in LocalCacheAdapter(cache_path).load_all()] == [account.id]

    def test_misconfigured_remote_runs_local(self, cache_path, caplog):
        config = PipecrmConfig(cache={"path": cache_path}, remote={"enabled": True})
        with caplog.at_level(logging.WARNING):
            with Workspace.open(config) as ws:
                assert ws.adapter.adapter_name == "local"
        assert "not usable" in caplog.text

    def test_toggle_remote(self, remote_config, cache_path):
        disabled = remote_config.model_copy(
            update={"remote": remote_config.remote.model_copy(update={"enabled": False})}
        )
        rows = [account_to_row(make_account("r1", "Remote One"))]
        with patch.object(RemoteAdapter, "from_config", side_effect=remote_factory(rows)):
            with Workspace.open(disabled) as ws:
                assert len(ws.store) == 0
                assert ws.set_remote_enabled(True) is True
                assert isinstance(ws.adapter, MirroredAdapter)
                assert [a.id for a in ws.store.all()] == ["r1"]

                assert ws.set_remote_enabled(False) is False
                assert ws.adapter is ws.cache
                # Cache was refreshed from the remote on the previous load
                assert [a.id for a in ws.store.all()] == ["r1"]

    def test_enable_without_credentials(self, config):
        with Workspace.open(config) as ws:
            assert ws.set_remote_enabled(True) is False
            assert ws.adapter is ws.cache


class TestReload:
    def test_failed_optimistic_write_lost_on_reload(self, config, cache_path, clock, ids):
        cache = LocalCacheAdapter(cache_path)
        adapter = FailingAdapter(name="remote")
        store = AccountStore(clock=clock, id_factory=ids)
        controller = SyncController(adapter)
        ws = Workspace(config, cache, adapter, store, controller)
        controller.attach(store)
        try:
            account = store.create(name="Acme")
            controller.flush(timeout=5)
            assert account.id in store

            ws.reload()
            assert account.id not in store
        finally:
            ws.close()
