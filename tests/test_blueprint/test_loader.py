"""Tests for blueprint loading, validation and discovery (stencil.blueprint.loader).

Covers:
- YAML and JSON descriptors, ``include:`` files
- Consistency checks that reject broken blueprints before any generation
- The registry's search order, listing order and selectors
- The bundled blueprints
"""

from __future__ import annotations

import json

import pytest

from stencil.blueprint import BlueprintRegistry, load_blueprint
from stencil.errors import BlueprintError

pytestmark = pytest.mark.unit


def _minimal(name: str = "demo", **extra) -> dict:
    data = {
        "name": name,
        "variables": [{"name": "projectName", "required": True}],
        "files": [{"source": "main.go.tmpl", "destination": "main.go"}],
    }
    data.update(extra)
    return data


TEMPLATES = {"main.go.tmpl": "package main // {{ projectName }}\n"}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_load_directory(self, write_blueprint):
        root = write_blueprint(_minimal(), TEMPLATES)
        bp = load_blueprint(root)
        assert bp.name == "demo"
        assert bp.root == root.resolve()
        assert bp.files[0].destination == "main.go"

    def test_load_descriptor_file(self, write_blueprint):
        root = write_blueprint(_minimal(), TEMPLATES)
        assert load_blueprint(root / "blueprint.yaml").name == "demo"

    def test_load_json(self, tmp_path):
        root = tmp_path / "jsonbp"
        root.mkdir()
        (root / "blueprint.json").write_text(json.dumps(_minimal("jsonbp")))
        (root / "main.go.tmpl").write_text("package main\n")
        assert load_blueprint(root).name == "jsonbp"

    def test_missing_path(self, tmp_path):
        with pytest.raises(BlueprintError, match="not found"):
            load_blueprint(tmp_path / "nope")

    def test_directory_without_descriptor(self, tmp_path):
        with pytest.raises(BlueprintError, match="no blueprint descriptor"):
            load_blueprint(tmp_path)

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "blueprint.yaml").write_text("name: [unclosed\n")
        with pytest.raises(BlueprintError, match="invalid YAML"):
            load_blueprint(tmp_path)

    def test_top_level_must_be_mapping(self, tmp_path):
        (tmp_path / "blueprint.yaml").write_text("- a\n- b\n")
        with pytest.raises(BlueprintError, match="mapping"):
            load_blueprint(tmp_path)

    def test_schema_error_names_field(self, write_blueprint):
        data = _minimal()
        data["files"] = [{"source": "main.go.tmpl"}]
        root = write_blueprint(data, TEMPLATES)
        with pytest.raises(BlueprintError, match="destination"):
            load_blueprint(root)


class TestIncludes:
    def test_included_list_prepended(self, write_blueprint):
        data = _minimal(include={"variables": "config/variables.yaml"})
        data["variables"] = [{"name": "author"}]
        root = write_blueprint(
            data,
            TEMPLATES,
            extra={"config/variables.yaml": [{"name": "projectName", "required": True}]},
        )
        bp = load_blueprint(root)
        assert [v.name for v in bp.variables] == ["projectName", "author"]

    def test_included_mapping_keyed_by_section(self, write_blueprint):
        data = _minimal(include={"dependencies": "deps.yaml"})
        root = write_blueprint(
            data,
            TEMPLATES,
            extra={"deps.yaml": {"dependencies": [{"module": "m", "version": "v1"}]}},
        )
        assert load_blueprint(root).dependencies[0].module == "m"

    def test_missing_include(self, write_blueprint):
        root = write_blueprint(_minimal(include={"variables": "absent.yaml"}), TEMPLATES)
        with pytest.raises(BlueprintError, match="cannot read"):
            load_blueprint(root)

    def test_include_must_be_mapping(self, write_blueprint):
        root = write_blueprint(_minimal(include=["vars.yaml"]), TEMPLATES)
        with pytest.raises(BlueprintError, match="include"):
            load_blueprint(root)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_duplicate_variable(self, write_blueprint):
        data = _minimal()
        data["variables"].append({"name": "projectName"})
        with pytest.raises(BlueprintError, match="declared twice"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_enum_without_choices(self, write_blueprint):
        data = _minimal()
        data["variables"].append({"name": "framework", "type": "enum"})
        with pytest.raises(BlueprintError, match="no choices"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_bad_pattern(self, write_blueprint):
        data = _minimal()
        data["variables"].append({"name": "x", "validation": "([a-z"})
        with pytest.raises(BlueprintError, match="invalid pattern"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_default_outside_choices(self, write_blueprint):
        data = _minimal()
        data["variables"].append(
            {"name": "logger", "type": "enum", "choices": ["slog"], "default": "zap"}
        )
        with pytest.raises(BlueprintError, match="invalid default"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_malformed_condition(self, write_blueprint):
        data = _minimal()
        data["files"][0]["condition"] = "authType =="
        with pytest.raises(BlueprintError, match="file main.go.tmpl"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_missing_source(self, write_blueprint):
        with pytest.raises(BlueprintError, match="does not exist"):
            load_blueprint(write_blueprint(_minimal(), {}))

    def test_unterminated_destination(self, write_blueprint):
        data = _minimal()
        data["files"][0]["destination"] = "{{ projectName .go"
        with pytest.raises(BlueprintError, match="destination"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_file_onto_manifest(self, write_blueprint):
        data = _minimal()
        data["files"].append({"source": "main.go.tmpl", "destination": "go.mod"})
        with pytest.raises(BlueprintError, match="dependency manifest"):
            load_blueprint(write_blueprint(data, TEMPLATES))

    def test_disabled_manifest_frees_path(self, write_blueprint):
        data = _minimal(manifest={"path": ""})
        data["files"].append({"source": "main.go.tmpl", "destination": "go.mod"})
        assert load_blueprint(write_blueprint(data, TEMPLATES)).manifest.path == ""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_discovery(self, tmp_path, write_blueprint):
        write_blueprint(_minimal("zeta", type="cli"), TEMPLATES)
        write_blueprint(_minimal("alpha", type="web-api"), TEMPLATES)
        write_blueprint(_minimal("beta", type="cli"), TEMPLATES)
        registry = BlueprintRegistry([tmp_path / "blueprints"])
        assert registry.names() == ["alpha", "beta", "zeta"]
        assert [b.name for b in registry.list()] == ["beta", "zeta", "alpha"]

    def test_earlier_directory_wins(self, tmp_path, write_blueprint):
        first = write_blueprint(_minimal("shared", description="first"), TEMPLATES)
        other = tmp_path / "other" / "shared"
        other.mkdir(parents=True)
        (other / "blueprint.yaml").write_text("name: shared\ndescription: second\n")
        registry = BlueprintRegistry([first.parent, tmp_path / "other"])
        assert registry.get("shared").description == "first"

    def test_missing_directory_ignored(self, tmp_path):
        assert BlueprintRegistry([tmp_path / "missing"]).names() == []

    def test_unknown_name(self, tmp_path, write_blueprint):
        write_blueprint(_minimal("alpha"), TEMPLATES)
        registry = BlueprintRegistry([tmp_path / "blueprints"])
        with pytest.raises(BlueprintError, match="available: alpha"):
            registry.get("omega")

    def test_resolve_by_path(self, tmp_path, write_blueprint):
        root = write_blueprint(_minimal("pathy"), TEMPLATES)
        registry = BlueprintRegistry([])
        assert registry.resolve(str(root)).name == "pathy"

    def test_get_is_cached(self, tmp_path, write_blueprint):
        write_blueprint(_minimal("alpha"), TEMPLATES)
        registry = BlueprintRegistry([tmp_path / "blueprints"])
        assert registry.get("alpha") is registry.get("alpha")


class TestBundled:
    def test_bundled_blueprints_load(self, bundled_dir):
        registry = BlueprintRegistry([bundled_dir])
        assert {"cli-simple", "web-api-standard"} <= set(registry.names())
        for bp in registry.list():
            assert bp.files

    def test_web_api_includes(self, bundled_dir):
        bp = load_blueprint(bundled_dir / "web-api-standard")
        names = [v.name for v in bp.variables]
        assert names[:2] == ["projectName", "modulePath"]
        assert "drivers" in names
        modules = [d.module for d in bp.dependencies]
        assert modules.count("gorm.io/gorm") == 2
