"""Inline transforms applied to substituted values.

``{{ projectName | pascal_case }}`` pipes the value of ``projectName``
through the ``pascal_case`` transform.  Transforms take the current value
plus zero or more literal arguments and return a new value.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from stencil.engine.context import ContextValue, ValueKind
from stencil.utils import camel_case, kebab_case, pascal_case, slugify, snake_case


@dataclass(frozen=True)
class Transform:
    """A named transform and the number of literal arguments it takes."""

    name: str
    arity: int
    func: Callable[..., ContextValue]


def _text(fn: Callable[[str], str]) -> Callable[[ContextValue], ContextValue]:
    def apply(value: ContextValue) -> ContextValue:
        return ContextValue(ValueKind.STRING, fn(value.render()))
    return apply


def _replace(value: ContextValue, old: str, new: str) -> ContextValue:
    return ContextValue(ValueKind.STRING, value.render().replace(old, new))


def _quote(value: ContextValue) -> ContextValue:
    escaped = value.render().replace("\\", "\\\\").replace('"', '\\"')
    return ContextValue(ValueKind.STRING, f'"{escaped}"')


def _default(value: ContextValue, fallback: str) -> ContextValue:
    return value if value.truthy else ContextValue(ValueKind.STRING, fallback)


def _join(value: ContextValue, separator: str) -> ContextValue:
    if value.kind is ValueKind.LIST:
        return ContextValue(ValueKind.STRING, separator.join(value.value))  # type: ignore[arg-type]
    return ContextValue(ValueKind.STRING, value.render())


def _first(value: ContextValue) -> ContextValue:
    if value.kind is ValueKind.LIST:
        items = value.value
        return ContextValue(ValueKind.STRING, items[0] if items else "")  # type: ignore[index]
    return value


TRANSFORMS: dict[str, Transform] = {
    t.name: t
    for t in (
        Transform("upper", 0, _text(str.upper)),
        Transform("lower", 0, _text(str.lower)),
        Transform("title", 0, _text(str.title)),
        Transform("trim", 0, _text(str.strip)),
        Transform("snake_case", 0, _text(snake_case)),
        Transform("kebab_case", 0, _text(kebab_case)),
        Transform("camel_case", 0, _text(camel_case)),
        Transform("pascal_case", 0, _text(pascal_case)),
        Transform("slugify", 0, _text(slugify)),
        Transform("replace", 2, _replace),
        Transform("quote", 0, _quote),
        Transform("default", 1, _default),
        Transform("join", 1, _join),
        Transform("first", 0, _first),
    )
}
