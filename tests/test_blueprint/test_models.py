"""Tests for blueprint models (stencil.blueprint.models)."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from stencil.blueprint.models import (
    Blueprint,
    Dependency,
    FileMapping,
    Hook,
    ManifestFormat,
    ManifestSpec,
    Variable,
    VariableType,
)

pytestmark = pytest.mark.unit


class TestVariable:
    def test_defaults(self):
        var = Variable(name="projectName")
        assert var.type is VariableType.STRING
        assert var.required is False
        assert var.choices == []
        assert var.question == "projectName"

    def test_question_prefers_prompt(self):
        var = Variable(name="x", description="Thing", prompt="Which thing?")
        assert var.question == "Which thing?"
        assert Variable(name="x", description="Thing").question == "Thing"

    def test_choices_stringified(self):
        var = Variable(name="x", type="enum", choices=[None, 1, "a"])
        assert var.choices == ["", "1", "a"]

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Variable(name="x", type="float")

    def test_frozen(self):
        var = Variable(name="x")
        with pytest.raises(ValidationError):
            var.name = "y"


class TestDeclarations:
    def test_file_mapping(self):
        mapping = FileMapping(source="a.tmpl", destination="a.go")
        assert mapping.condition is None
        assert mapping.executable is False

    def test_dependency_version_stringified(self):
        assert Dependency(module="m", version=1.5).version == "1.5"

    def test_hook_work_dir_alias(self):
        hook = Hook.model_validate({"name": "tidy", "command": "go mod tidy", "work_dir": "sub"})
        assert hook.workdir == "sub"
        assert hook.critical is True
        assert hook.timeout is None

    def test_hook_timeout_positive(self):
        with pytest.raises(ValidationError):
            Hook(name="h", command="true", timeout=0)

    def test_manifest_defaults(self):
        spec = ManifestSpec()
        assert spec.path == "go.mod"
        assert spec.format is ManifestFormat.GOMOD


class TestBlueprint:
    @pytest.fixture
    def blueprint(self) -> Blueprint:
        return Blueprint.model_validate(
            {
                "name": "demo",
                "root": "/tmp/demo",
                "variables": [{"name": "authType", "type": "enum", "choices": ["", "jwt"]}],
                "files": [
                    {"source": "main.go.tmpl", "destination": "main.go"},
                    {"source": "auth.go.tmpl", "destination": "auth.go", "condition": "hasAuth"},
                ],
                "dependencies": [{"module": "jwt", "version": "v5", "condition": 'authType == "jwt"'}],
                "post_hooks": [{"name": "fmt", "command": "gofmt", "condition": "true"}],
            }
        )

    def test_post_hooks_alias(self, blueprint):
        assert [h.name for h in blueprint.hooks] == ["fmt"]

    def test_variable_lookup(self, blueprint):
        assert blueprint.variable("authType").type is VariableType.ENUM
        assert blueprint.variable("missing") is None

    def test_source_path(self, blueprint):
        assert blueprint.source_path(blueprint.files[0]) == Path("/tmp/demo/main.go.tmpl")

    def test_conditions(self, blueprint):
        assert blueprint.conditions() == [
            ("file auth.go.tmpl", "hasAuth"),
            ("dependency jwt", 'authType == "jwt"'),
            ("hook fmt", "true"),
        ]

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Blueprint.model_validate({"files": []})
