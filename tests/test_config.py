"""Unit tests for runtime settings (stencil.config)."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from stencil.config import (
    BUNDLED_BLUEPRINTS_DIR,
    MergePolicy,
    Settings,
    variable_env_name,
)

_ENV_KEYS = (
    "STENCIL_BLUEPRINTS_DIR",
    "STENCIL_MAX_WORKERS",
    "STENCIL_HOOK_TIMEOUT",
    "STENCIL_MERGE_POLICY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestSettingsDefaults:
    @pytest.mark.unit
    def test_defaults(self):
        settings = Settings()
        assert settings.blueprint_dirs == []
        assert settings.max_workers == 8
        assert settings.hook_timeout == 300
        assert settings.merge_policy is MergePolicy.LAST_WINS
        assert settings.env_prefix == "STENCIL_VAR_"

    @pytest.mark.unit
    def test_bundled_dir_searched_last(self, tmp_path: Path):
        settings = Settings(blueprint_dirs=[tmp_path])
        assert settings.search_dirs == [tmp_path, BUNDLED_BLUEPRINTS_DIR]

    @pytest.mark.unit
    def test_bundled_dir_not_repeated(self):
        settings = Settings(blueprint_dirs=[BUNDLED_BLUEPRINTS_DIR])
        assert settings.search_dirs == [BUNDLED_BLUEPRINTS_DIR]

    @pytest.mark.unit
    def test_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(max_workers=0)

    @pytest.mark.unit
    def test_merge_policy_from_string(self):
        assert Settings(merge_policy="first-wins").merge_policy is MergePolicy.FIRST_WINS


class TestFromEnv:
    @pytest.mark.unit
    def test_empty_environment(self, clean_env):
        assert Settings.from_env() == Settings()

    @pytest.mark.unit
    def test_all_variables(self, clean_env, tmp_path: Path):
        a, b = tmp_path / "a", tmp_path / "b"
        clean_env.setenv("STENCIL_BLUEPRINTS_DIR", os.pathsep.join([str(a), str(b)]))
        clean_env.setenv("STENCIL_MAX_WORKERS", "2")
        clean_env.setenv("STENCIL_HOOK_TIMEOUT", "30")
        clean_env.setenv("STENCIL_MERGE_POLICY", "error")
        settings = Settings.from_env()
        assert settings.blueprint_dirs == [a, b]
        assert settings.max_workers == 2
        assert settings.hook_timeout == 30
        assert settings.merge_policy is MergePolicy.ERROR

    @pytest.mark.unit
    def test_invalid_merge_policy(self, clean_env):
        clean_env.setenv("STENCIL_MERGE_POLICY", "newest")
        with pytest.raises(ValueError):
            Settings.from_env()


class TestVariableEnvName:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "name, env",
        [
            ("authType", "STENCIL_VAR_AUTH_TYPE"),
            ("projectName", "STENCIL_VAR_PROJECT_NAME"),
            ("port", "STENCIL_VAR_PORT"),
        ],
    )
    def test_mapping(self, name, env):
        assert variable_env_name(name) == env

    @pytest.mark.unit
    def test_custom_prefix(self):
        assert Settings(env_prefix="X_").variable_env_name("goVersion") == "X_GO_VERSION"
