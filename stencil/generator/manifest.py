"""Dependency manifest formatting.

Renders a :class:`DependencyManifest` into the file format a blueprint asks
for.  Formats are Jinja2 templates stored under ``generator/templates``.
"""

from __future__ import annotations

import json
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from stencil.blueprint.models import ManifestFormat, ManifestSpec
from stencil.engine.context import TemplateContext
from stencil.errors import RenderError
from stencil.generator.dependencies import DependencyManifest

_TEMPLATE_DIR = Path(__file__).parent / "templates"

DEFAULT_GO_VERSION = "1.21"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)


def _context_text(context: TemplateContext, name: str) -> str:
    value = context.get(name)
    return value.render().strip() if value is not None else ""


def format_manifest(
    manifest: DependencyManifest, context: TemplateContext, spec: ManifestSpec
) -> str:
    """Render *manifest* in the format described by *spec*.

    ``gomod`` needs ``modulePath`` in the context and takes ``goVersion``
    when present (``"auto"`` or empty mean the default Go version).

    Raises:
        RenderError: When the context lacks what the format needs.
    """
    if spec.format is ManifestFormat.JSON:
        payload = {
            "dependencies": [
                {"module": req.module, "version": req.version} for req in manifest
            ]
        }
        return json.dumps(payload, indent=2) + "\n"

    module_path = _context_text(context, "modulePath")
    if not module_path:
        raise RenderError(
            "a go.mod manifest needs a non-empty 'modulePath'",
            source=spec.path,
            reference="modulePath",
        )
    go_version = _context_text(context, "goVersion")
    if go_version in ("", "auto"):
        go_version = DEFAULT_GO_VERSION
    template = _env.get_template("go.mod.j2")
    return template.render(
        module_path=module_path,
        go_version=go_version,
        requirements=list(manifest),
    )
