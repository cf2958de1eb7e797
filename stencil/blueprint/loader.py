"""Blueprint loading and discovery.

Blueprints live in their own directory: a descriptor (``blueprint.yaml``,
``template.yaml`` or a ``.json`` equivalent) next to the template sources it
references.  :func:`load_blueprint` parses and validates one descriptor;
:class:`BlueprintRegistry` discovers every blueprint under a list of search
directories.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stencil.blueprint.models import Blueprint, VariableType
from stencil.engine.conditions import parse_condition
from stencil.engine.renderer import compile_template
from stencil.errors import BlueprintError, ConditionEvaluationError, ConfigValidationError, RenderError
from stencil.resolver.schema import coerce_value, is_empty

logger = logging.getLogger(__name__)

DESCRIPTOR_NAMES = ("blueprint.yaml", "blueprint.yml", "template.yaml", "template.yml", "blueprint.json")

_INCLUDABLE = ("variables", "files", "dependencies", "hooks", "post_hooks")


# ---------------------------------------------------------------------------
# Descriptor parsing
# ---------------------------------------------------------------------------

def _read_document(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BlueprintError(f"cannot read {path}: {exc.strerror or exc}") from exc
    try:
        if path.suffix == ".json":
            return json.loads(raw)
        return yaml.safe_load(raw)
    except json.JSONDecodeError as exc:
        raise BlueprintError(f"{path}: invalid JSON at line {exc.lineno}: {exc.msg}") from exc
    except yaml.YAMLError as exc:
        raise BlueprintError(f"{path}: invalid YAML: {exc}") from exc


def _apply_includes(data: dict[str, Any], root: Path) -> dict[str, Any]:
    """Merge ``include:`` files into *data*.

    ``include`` maps a section name to a file relative to the blueprint root.
    The file holds either a list or a mapping with that section as its key.
    Included entries come before the entries declared inline.
    """
    includes = data.pop("include", None) or {}
    if not isinstance(includes, dict):
        raise BlueprintError("'include' must map section names to files")
    for section, rel in includes.items():
        if section not in _INCLUDABLE:
            logger.debug("Ignoring include for unsupported section '%s'", section)
            continue
        doc = _read_document(root / str(rel))
        entries = doc.get(section, []) if isinstance(doc, dict) else doc
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise BlueprintError(f"included file {rel} must provide a list of {section}")
        target = "hooks" if section == "post_hooks" and "hooks" in data else section
        data[target] = list(entries) + list(data.get(target) or [])
    return data


def load_blueprint(path: str | Path) -> Blueprint:
    """Load and validate a blueprint.

    Args:
        path: A descriptor file, or a directory containing one.

    Returns:
        A frozen :class:`Blueprint` whose ``root`` is the descriptor's directory.

    Raises:
        BlueprintError: If the descriptor is missing, malformed or inconsistent.
    """
    descriptor = _find_descriptor(Path(path))
    root = descriptor.parent.resolve()
    data = _read_document(descriptor)
    if not isinstance(data, dict):
        raise BlueprintError(f"{descriptor}: top level must be a mapping")
    data = _apply_includes(dict(data), root)
    data["root"] = root
    try:
        blueprint = Blueprint.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise BlueprintError(
            f"{descriptor}: {where}: {first['msg']}", blueprint=data.get("name")
        ) from exc
    validate_blueprint(blueprint)
    logger.debug("Loaded blueprint '%s' from %s", blueprint.name, descriptor)
    return blueprint


def _find_descriptor(path: Path) -> Path:
    if path.is_file():
        return path
    if path.is_dir():
        for name in DESCRIPTOR_NAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise BlueprintError(f"no blueprint descriptor found in {path}")
    raise BlueprintError(f"blueprint not found: {path}")


# ---------------------------------------------------------------------------
# Consistency checks
# ---------------------------------------------------------------------------

def validate_blueprint(blueprint: Blueprint) -> None:
    """Check a blueprint for internal consistency.

    * Variable names are unique; enum variables declare choices; validation
      patterns compile; declared defaults satisfy their own variable.
    * Every condition parses and every destination template compiles.
    * Every file source exists under the blueprint root.
    * No file maps onto the dependency manifest path.

    Raises:
        BlueprintError: Describing the first problem found.
    """
    name = blueprint.name
    seen: set[str] = set()
    for var in blueprint.variables:
        if var.name in seen:
            raise BlueprintError(f"variable '{var.name}' declared twice", blueprint=name)
        seen.add(var.name)
        if var.type is VariableType.ENUM and not var.choices:
            raise BlueprintError(f"enum variable '{var.name}' declares no choices", blueprint=name)
        if var.validation:
            try:
                compile_pattern(var.validation)
            except ValueError as exc:
                raise BlueprintError(
                    f"variable '{var.name}' has an invalid pattern: {exc}", blueprint=name
                ) from exc
        if not is_empty(var.default):
            try:
                coerce_value(var, var.default)
            except ConfigValidationError as exc:
                raise BlueprintError(f"invalid default: {exc}", blueprint=name) from exc

    for owner, expression in blueprint.conditions():
        try:
            parse_condition(expression)
        except ConditionEvaluationError as exc:
            raise BlueprintError(f"{owner}: {exc}", blueprint=name) from exc

    manifest_path = (blueprint.manifest.path or "").strip("/")
    for mapping in blueprint.files:
        if not blueprint.source_path(mapping).is_file():
            raise BlueprintError(f"template source '{mapping.source}' does not exist", blueprint=name)
        try:
            compile_template(mapping.destination, mapping.destination)
        except RenderError as exc:
            raise BlueprintError(f"destination '{mapping.destination}': {exc}", blueprint=name) from exc
        if manifest_path and mapping.destination.strip("/") == manifest_path:
            raise BlueprintError(
                f"file '{mapping.source}' maps onto the dependency manifest '{manifest_path}'",
                blueprint=name,
            )


def compile_pattern(pattern: str) -> None:
    """Raise ``ValueError`` if *pattern* is not a valid regular expression."""
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class BlueprintRegistry:
    """Discovers blueprints under a list of search directories.

    Earlier directories take precedence when two blueprints share a name.
    Blueprints are loaded lazily and cached.
    """

    def __init__(self, search_dirs: list[Path]) -> None:
        self.search_dirs = [Path(d) for d in search_dirs]
        self._index: dict[str, Path] | None = None
        self._loaded: dict[str, Blueprint] = {}

    def _discover(self) -> dict[str, Path]:
        if self._index is not None:
            return self._index
        index: dict[str, Path] = {}
        for base in self.search_dirs:
            if not base.is_dir():
                logger.debug("Skipping missing blueprint directory %s", base)
                continue
            for child in sorted(base.iterdir()):
                if not child.is_dir():
                    continue
                if any((child / n).is_file() for n in DESCRIPTOR_NAMES):
                    index.setdefault(child.name, child)
        self._index = index
        return index

    def names(self) -> list[str]:
        """Names of every discoverable blueprint, sorted."""
        return sorted(self._discover())

    def get(self, name: str) -> Blueprint:
        """Load the blueprint registered as *name*.

        Raises:
            BlueprintError: If no such blueprint exists.
        """
        if name in self._loaded:
            return self._loaded[name]
        path = self._discover().get(name)
        if path is None:
            available = ", ".join(self.names()) or "none"
            raise BlueprintError(f"unknown blueprint (available: {available})", blueprint=name)
        blueprint = load_blueprint(path)
        self._loaded[name] = blueprint
        return blueprint

    def list(self) -> list[Blueprint]:
        """Every discoverable blueprint, sorted by type then name."""
        blueprints = [self.get(name) for name in self.names()]
        return sorted(blueprints, key=lambda b: (b.type, b.name))

    def resolve(self, selector: str) -> Blueprint:
        """Load a blueprint by registry name or by filesystem path."""
        if selector in self._discover():
            return self.get(selector)
        path = Path(selector)
        if path.exists():
            return load_blueprint(path)
        return self.get(selector)
