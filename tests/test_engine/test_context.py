"""Tests for the typed template context (stencil.engine.context)."""

from __future__ import annotations

import pytest

from stencil.engine.context import (
    ContextValue,
    TemplateContext,
    ValueKind,
    build_context,
    normalize_driver,
)

pytestmark = pytest.mark.unit


class TestContextValue:
    @pytest.mark.parametrize(
        "raw, kind",
        [
            ("x", ValueKind.STRING),
            (True, ValueKind.BOOL),
            (3, ValueKind.INT),
            (["a"], ValueKind.LIST),
            (("a", "b"), ValueKind.LIST),
            (None, ValueKind.STRING),
        ],
    )
    def test_kind_inference(self, raw, kind):
        assert ContextValue.of(raw).kind is kind

    def test_render(self):
        assert ContextValue.of(True).render() == "true"
        assert ContextValue.of(["a", "b"]).render() == "a, b"
        assert ContextValue.of(7).render() == "7"

    def test_truthiness(self):
        assert not ContextValue.of("").truthy
        assert not ContextValue.of(()).truthy
        assert ContextValue.of(0).truthy is False
        assert ContextValue.of("x").truthy


class TestTemplateContext:
    def test_is_read_only_mapping(self):
        ctx = TemplateContext({"a": "x"})
        with pytest.raises(TypeError):
            ctx["b"] = "y"  # type: ignore[index]

    def test_with_values_returns_new_context(self):
        ctx = TemplateContext({"a": "x"})
        extended = ctx.with_values(outputPath="/tmp/p")
        assert "outputPath" in extended
        assert "outputPath" not in ctx

    def test_plain(self):
        ctx = TemplateContext({"a": "x", "l": ("p", "q")})
        assert ctx.plain() == {"a": "x", "l": ["p", "q"]}


class TestBuildContext:
    def test_copies_parameters(self):
        ctx = build_context({"projectName": "demo"})
        assert ctx["projectName"].value == "demo"

    def test_has_flags(self):
        ctx = build_context({"authType": "", "orm": "gorm"})
        assert ctx["hasAuthType"].value is False
        assert ctx["hasOrm"].value is True

    @pytest.mark.parametrize("auth, expected", [("jwt", True), ("", False), ("none", False)])
    def test_has_auth(self, auth, expected):
        assert build_context({"authType": auth})["hasAuth"].value is expected

    def test_database_flags_from_list(self):
        ctx = build_context({"drivers": ("PostgreSQL", "redis")})
        assert ctx["primaryDriver"].value == "postgres"
        assert ctx["hasDatabase"].value is True
        assert ctx["hasPostgres"].value is True
        assert ctx["hasRedis"].value is True
        assert ctx["hasMysql"].value is False
        assert ctx["hasMultipleDatabases"].value is True

    def test_database_flags_from_single_driver(self):
        ctx = build_context({"driver": "mongo"})
        assert ctx["primaryDriver"].value == "mongodb"
        assert ctx["hasMongodb"].value is True
        assert ctx["hasMultipleDatabases"].value is False

    def test_no_database(self):
        ctx = build_context({})
        assert ctx["primaryDriver"].value == ""
        assert ctx["hasDatabase"].value is False

    def test_logger_flag(self):
        assert build_context({"logger": "zerolog"})["useZerolog"].value is True

    def test_every_known_logger_flag_defined(self):
        ctx = build_context({"logger": "slog"})
        assert ctx["useSlog"].value is True
        assert [ctx[n].value for n in ("useZap", "useLogrus", "useZerolog")] == [False] * 3
        assert build_context({})["useZap"].value is False

    def test_unknown_logger_flag(self):
        assert build_context({"logger": "glog"})["useGlog"].value is True

    def test_declared_parameter_wins_over_derived(self):
        ctx = build_context({"hasDatabase": "custom"})
        assert ctx["hasDatabase"].value == "custom"

    def test_pure(self):
        params = {"projectName": "demo", "drivers": ("postgres",)}
        assert build_context(params).plain() == build_context(params).plain()

    def test_normalize_driver(self):
        assert normalize_driver(" Mongo ") == "mongodb"
        assert normalize_driver("sqlite3") == "sqlite"
