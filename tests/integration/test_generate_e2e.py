"""End-to-end generation of the bundled blueprints through the CLI.

Hooks are skipped (they need a Go toolchain); everything else runs for real:
blueprint discovery, variable resolution, rendering, writing and the
go.mod manifest.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stencil.cli import main

pytestmark = pytest.mark.integration


def _files(root: Path) -> list[str]:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())


def _assert_rendered(root: Path) -> None:
    for path in root.rglob("*"):
        if path.is_file():
            assert "{{" not in path.read_text(), path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("STENCIL_BLUEPRINTS_DIR", "STENCIL_MERGE_POLICY"):
        monkeypatch.delenv(key, raising=False)


class TestCliSimple:
    def test_generates_cobra_project(self, output_dir):
        code = main(
            [
                "generate", "cli-simple", str(output_dir),
                "--var", "projectName=my-tool",
                "--var", "modulePath=github.com/acme/my-tool",
                "--var", "logger=zap",
                "--skip-hooks",
            ]
        )
        assert code == 0
        assert _files(output_dir) == [
            ".gitignore",
            "Makefile",
            "README.md",
            "cmd/root.go",
            "cmd/version.go",
            "go.mod",
            "main.go",
            "scripts/build.sh",
        ]
        assert (output_dir / "scripts" / "build.sh").stat().st_mode & 0o111
        gomod = (output_dir / "go.mod").read_text()
        assert gomod.startswith("module github.com/acme/my-tool\n")
        assert "github.com/spf13/cobra v1.8.0" in gomod
        assert "go.uber.org/zap v1.26.0" in gomod
        assert "logrus" not in gomod
        assert "github.com/acme/my-tool/cmd" in (output_dir / "main.go").read_text()
        _assert_rendered(output_dir)


class TestWebApiStandard:
    def test_minimal_api(self, output_dir):
        code = main(
            [
                "generate", "web-api-standard", str(output_dir),
                "--var", "projectName=orders",
                "--var", "modulePath=github.com/acme/orders",
                "--skip-hooks",
            ]
        )
        assert code == 0
        files = _files(output_dir)
        assert "cmd/server/main.go" in files
        assert "internal/middleware/auth.go" not in files
        assert "internal/database/connection.go" not in files
        gomod = (output_dir / "go.mod").read_text()
        assert "github.com/gin-gonic/gin v1.9.1" in gomod
        assert "gorm" not in gomod
        _assert_rendered(output_dir)

    def test_full_featured_api(self, output_dir):
        code = main(
            [
                "generate", "web-api-standard", str(output_dir),
                "--var", "projectName=OrderService",
                "--var", "modulePath=github.com/acme/order-service",
                "--var", "framework=echo",
                "--var", "drivers=postgres,redis",
                "--var", "orm=gorm",
                "--var", "authType=jwt",
                "--var", "logger=zerolog",
                "--skip-hooks",
            ]
        )
        assert code == 0
        files = _files(output_dir)
        assert "internal/middleware/auth.go" in files
        assert "internal/database/connection.go" in files
        assert "internal/models/order_service.go" in files

        gomod = (output_dir / "go.mod").read_text()
        assert gomod.count("gorm.io/gorm ") == 1
        assert "gorm.io/gorm v1.25.4" in gomod
        assert "gorm.io/driver/postgres v1.5.4" in gomod
        assert "github.com/redis/go-redis/v9" in gomod
        assert "github.com/labstack/echo/v4" in gomod
        assert "github.com/golang-jwt/jwt/v5" in gomod
        assert "github.com/rs/zerolog" in gomod
        assert "gin-gonic" not in gomod
        assert "jackc/pgx" not in gomod
        _assert_rendered(output_dir)

    def test_identical_runs_identical_trees(self, tmp_path):
        args = [
            "--var", "projectName=orders",
            "--var", "modulePath=github.com/acme/orders",
            "--var", "drivers=mysql",
            "--skip-hooks",
        ]
        first, second = tmp_path / "a", tmp_path / "b"
        assert main(["generate", "web-api-standard", str(first), *args]) == 0
        assert main(["generate", "web-api-standard", str(second), "--workers", "1", *args]) == 0
        assert _files(first) == _files(second)
        for rel in _files(first):
            assert (first / rel).read_bytes() == (second / rel).read_bytes()
