"""Template engine: typed context, condition language and body renderer.

Quick usage::

    from stencil.engine import TemplateRenderer, build_context, evaluate

    context = build_context({"projectName": "demo", "authType": "jwt"})
    evaluate('authType != ""', context)          # True
    TemplateRenderer().render("{{ projectName | upper }}", context)  # "DEMO"
"""

from stencil.engine.conditions import check_references, evaluate, parse_condition, references
from stencil.engine.context import ContextValue, TemplateContext, ValueKind, build_context
from stencil.engine.renderer import TemplateRenderer, compile_template

__all__ = [
    "ContextValue",
    "TemplateContext",
    "TemplateRenderer",
    "ValueKind",
    "build_context",
    "check_references",
    "compile_template",
    "evaluate",
    "parse_condition",
    "references",
]
