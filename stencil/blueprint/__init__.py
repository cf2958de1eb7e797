"""Blueprint models, loading and discovery.

Quick usage::

    from stencil.blueprint import BlueprintRegistry, load_blueprint

    blueprint = load_blueprint("blueprints/web-api-standard")
    registry = BlueprintRegistry([Path("./blueprints")])
    print([b.name for b in registry.list()])
"""

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
from stencil.blueprint.loader import BlueprintRegistry, load_blueprint, validate_blueprint

__all__ = [
    "Blueprint",
    "BlueprintRegistry",
    "Dependency",
    "FileMapping",
    "Hook",
    "ManifestFormat",
    "ManifestSpec",
    "Variable",
    "VariableType",
    "load_blueprint",
    "validate_blueprint",
]
