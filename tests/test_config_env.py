"""
Tests for layered .env loading.
"""

import os

import pytest

from pipecrm.core.config.env import load_layered_env


@pytest.fixture
def clean_keys(monkeypatch):
    for key in ("PIPECRM_TEST_A", "PIPECRM_TEST_B", "PIPECRM_TEST_C"):
        monkeypatch.delenv(key, raising=False)
    yield
    for key in ("PIPECRM_TEST_A", "PIPECRM_TEST_B", "PIPECRM_TEST_C"):
        os.environ.pop(key, None)


class TestLoadLayeredEnv:
    def test_precedence(self, tmp_path, monkeypatch, clean_keys):
        user_env = tmp_path / "user.env"
        user_env.write_text("PIPECRM_TEST_A=user\nPIPECRM_TEST_B=user\n")
        project = tmp_path / "project"
        project.mkdir()
        (project / ".env").write_text("PIPECRM_TEST_B=project\nPIPECRM_TEST_C=project\n")
        monkeypatch.setenv("PIPECRM_TEST_C", "shell")

        loaded = load_layered_env(project_dir=project, user_env_paths=[user_env])

        assert os.environ["PIPECRM_TEST_A"] == "user"
        assert os.environ["PIPECRM_TEST_B"] == "project"
        assert os.environ["PIPECRM_TEST_C"] == "shell"
        assert loaded == {"PIPECRM_TEST_A", "PIPECRM_TEST_B"}

    def test_missing_files(self, tmp_path, clean_keys):
        assert load_layered_env(project_dir=tmp_path, user_env_paths=[tmp_path / "nope"]) == set()

    def test_default_user_path(self, tmp_path, clean_keys):
        user_env = tmp_path / "config" / "pipecrm" / ".env"
        user_env.parent.mkdir(parents=True)
        user_env.write_text("PIPECRM_TEST_A=from-xdg\n")
        load_layered_env(project_dir=tmp_path / "empty")
        assert os.environ["PIPECRM_TEST_A"] == "from-xdg"
