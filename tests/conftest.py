"""Shared pytest fixtures for the Stencil test suite.

Provides reusable fixtures for:
- Writing throwaway blueprints (descriptor + template sources) to tmp_path
- The auth-middleware and GORM-merge blueprints used across modules
- A fake process runner that records hook invocations
- The bundled blueprint directory
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from stencil.config import BUNDLED_BLUEPRINTS_DIR
from stencil.generator.hooks import Command, ProcessResult


# ---------------------------------------------------------------------------
# Blueprint factory
# ---------------------------------------------------------------------------

BlueprintFactory = Callable[..., Path]


@pytest.fixture
def write_blueprint(tmp_path: Path) -> BlueprintFactory:
    """Write a blueprint directory and return its path.

    Usage::

        def test_x(write_blueprint):
            root = write_blueprint(
                {"name": "demo", "files": [...]},
                templates={"main.go.tmpl": "package main\\n"},
            )
    """
    counter = {"n": 0}

    def _write(
        descriptor: dict[str, Any],
        templates: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Path:
        counter["n"] += 1
        root = tmp_path / "blueprints" / descriptor.get("name", f"bp{counter['n']}")
        root.mkdir(parents=True, exist_ok=True)
        (root / "blueprint.yaml").write_text(yaml.safe_dump(descriptor, sort_keys=False))
        for rel, body in (templates or {}).items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(body))
        for rel, data in (extra or {}).items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(yaml.safe_dump(data, sort_keys=False))
        return root

    return _write


# ---------------------------------------------------------------------------
# Scenario blueprints
# ---------------------------------------------------------------------------

AUTH_TEMPLATE = """\
package middleware

{{ if authType == "jwt" }}
import "github.com/golang-jwt/jwt/v5"

// Auth validates JWT bearer tokens.
var _ = jwt.Parse
{{ else }}
// Auth checks {{ authType }} credentials.
{{ end }}
"""


@pytest.fixture
def auth_blueprint(write_blueprint: BlueprintFactory) -> Path:
    """Blueprint whose auth middleware exists only when authType is set."""
    return write_blueprint(
        {
            "name": "auth-demo",
            "type": "web-api",
            "variables": [
                {"name": "projectName", "type": "string", "required": True},
                {"name": "modulePath", "type": "string", "required": True},
                {
                    "name": "authType",
                    "type": "enum",
                    "choices": ["", "jwt", "oauth2"],
                    "default": "",
                },
            ],
            "files": [
                {"source": "main.go.tmpl", "destination": "main.go"},
                {
                    "source": "auth.go.tmpl",
                    "destination": "internal/middleware/auth.go",
                    "condition": 'authType != ""',
                },
            ],
            "dependencies": [
                {
                    "module": "github.com/golang-jwt/jwt/v5",
                    "version": "v5.2.0",
                    "condition": 'authType == "jwt"',
                },
            ],
        },
        templates={
            "main.go.tmpl": "package main // {{ projectName }}\n",
            "auth.go.tmpl": AUTH_TEMPLATE,
        },
    )


@pytest.fixture
def gorm_blueprint(write_blueprint: BlueprintFactory) -> Path:
    """Blueprint declaring gorm.io/gorm twice under overlapping conditions."""
    return write_blueprint(
        {
            "name": "gorm-demo",
            "variables": [
                {"name": "modulePath", "type": "string", "default": "example.com/demo"},
                {"name": "orm", "type": "enum", "choices": ["", "gorm", "raw"], "default": ""},
                {
                    "name": "driver",
                    "type": "enum",
                    "choices": ["", "postgres", "mysql"],
                    "default": "",
                },
            ],
            "files": [{"source": "db.go.tmpl", "destination": "db.go"}],
            "dependencies": [
                {"module": "gorm.io/gorm", "version": "v1.25.0", "condition": 'orm=="gorm"'},
                {
                    "module": "gorm.io/gorm",
                    "version": "v1.25.4",
                    "condition": 'orm=="gorm" and driver=="postgres"',
                },
            ],
        },
        templates={"db.go.tmpl": "package db // {{ driver }}\n"},
    )


# ---------------------------------------------------------------------------
# Process runner
# ---------------------------------------------------------------------------

class FakeRunner:
    """Records every command and answers with canned results.

    ``results`` maps a substring of the command to ``(exit_code, stdout, stderr)``;
    unmatched commands succeed.
    """

    def __init__(self, results: dict[str, tuple[int, str, str]] | None = None) -> None:
        self.results = dict(results or {})
        self.calls: list[tuple[Command, Path, int]] = []

    async def run(self, command: Command, cwd: Path, timeout: int) -> ProcessResult:
        self.calls.append((command, cwd, timeout))
        text = command if isinstance(command, str) else " ".join(command)
        for needle, (code, out, err) in self.results.items():
            if needle in text:
                return ProcessResult(code, out, err)
        return ProcessResult(0, "", "")

    @property
    def commands(self) -> list[str]:
        return [c if isinstance(c, str) else " ".join(c) for c, _, _ in self.calls]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

@pytest.fixture
def bundled_dir() -> Path:
    """Directory holding the blueprints shipped with the package."""
    assert BUNDLED_BLUEPRINTS_DIR.is_dir()
    return BUNDLED_BLUEPRINTS_DIR


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Destination for generated projects (does not exist yet)."""
    return tmp_path / "out" / "project"
