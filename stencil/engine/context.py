"""Typed template context.

The context is an immutable mapping of names to :class:`ContextValue`
tagged variants (string, bool, int or list).  It is built once per run from
the resolved parameters plus a fixed set of derived flags, and shared by the
condition evaluator, the template renderer, the dependency aggregator and
the hook executor.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from stencil.utils import pascal_case


class ValueKind(str, Enum):
    """Tag of a :class:`ContextValue`."""
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    LIST = "list"


Payload = Union[str, bool, int, tuple]


@dataclass(frozen=True)
class ContextValue:
    """A single tagged context value."""

    kind: ValueKind
    value: Payload

    @classmethod
    def of(cls, raw: Any) -> "ContextValue":
        """Wrap a plain Python value, inferring its kind.

        ``None`` becomes the empty string.  Lists, tuples and sets become
        tuples of strings.
        """
        if isinstance(raw, ContextValue):
            return raw
        if raw is None:
            return cls(ValueKind.STRING, "")
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, int):
            return cls(ValueKind.INT, raw)
        if isinstance(raw, (list, tuple, set, frozenset)):
            items = sorted(raw) if isinstance(raw, (set, frozenset)) else raw
            return cls(ValueKind.LIST, tuple(str(i) for i in items))
        return cls(ValueKind.STRING, str(raw))

    @property
    def truthy(self) -> bool:
        """Non-empty strings/lists, non-zero ints and ``True`` are truthy."""
        return bool(self.value)

    def render(self) -> str:
        """Text form used when the value is substituted into a template."""
        if self.kind is ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind is ValueKind.LIST:
            return ", ".join(self.value)  # type: ignore[arg-type]
        return str(self.value)


class TemplateContext(Mapping[str, ContextValue]):
    """Immutable name -> :class:`ContextValue` mapping."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, ContextValue] = {
            name: ContextValue.of(raw) for name, raw in (values or {}).items()
        }

    def __getitem__(self, name: str) -> ContextValue:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TemplateContext({self.plain()!r})"

    def with_values(self, **extra: Any) -> "TemplateContext":
        """Return a new context with *extra* added (existing names are replaced)."""
        merged: dict[str, Any] = dict(self._values)
        merged.update(extra)
        return TemplateContext(merged)

    def plain(self) -> dict[str, Any]:
        """Unwrapped payloads, lists as Python lists (for Jinja2 and JSON)."""
        return {
            name: list(v.value) if v.kind is ValueKind.LIST else v.value
            for name, v in self._values.items()
        }


# ---------------------------------------------------------------------------
# Context building
# ---------------------------------------------------------------------------

# Canonical driver name -> suffix of its ``has<Driver>`` flag.
_DRIVER_FLAGS: dict[str, str] = {
    "postgres": "Postgres",
    "mysql": "Mysql",
    "mongodb": "Mongodb",
    "sqlite": "Sqlite",
    "redis": "Redis",
}

_LOGGERS = ("slog", "zap", "logrus", "zerolog")

_DRIVER_ALIASES: dict[str, str] = {
    "postgresql": "postgres",
    "pg": "postgres",
    "mongo": "mongodb",
    "sqlite3": "sqlite",
}


def normalize_driver(name: str) -> str:
    """``"PostgreSQL"`` -> ``"postgres"``, ``"mongo"`` -> ``"mongodb"``."""
    lowered = name.strip().lower()
    return _DRIVER_ALIASES.get(lowered, lowered)


def build_context(params: Mapping[str, Any]) -> TemplateContext:
    """Build the template context for one run.

    Every parameter is copied in unchanged.  The following derived names are
    added, but never replace a parameter of the same name:

    * ``has<Name>`` for every non-bool parameter (truthiness of its value).
    * ``hasAuth``: ``authType`` is set and is not ``"none"``.
    * ``primaryDriver``: first entry of ``drivers``, else ``driver``, else ``""``.
    * ``hasDatabase``, ``hasMultipleDatabases`` and one ``has<Driver>`` flag
      per known driver (postgres, mysql, mongodb, sqlite, redis).
    * ``useSlog``, ``useZap``, ``useLogrus`` and ``useZerolog``, true only for
      the selected ``logger``; an unknown logger gets its own ``use<Logger>``.

    Args:
        params: Resolved parameter values.

    Returns:
        A new :class:`TemplateContext`.  Pure: equal inputs give equal contexts.
    """
    values: dict[str, ContextValue] = {
        name: ContextValue.of(raw) for name, raw in params.items()
    }
    derived: dict[str, Any] = {}

    for name, value in values.items():
        if value.kind is not ValueKind.BOOL:
            derived[f"has{name[:1].upper()}{name[1:]}"] = value.truthy

    auth = values.get("authType")
    derived["hasAuth"] = bool(auth and auth.truthy and str(auth.value).lower() != "none")

    drivers: list[str] = []
    if "drivers" in values and values["drivers"].kind is ValueKind.LIST:
        drivers = [normalize_driver(d) for d in values["drivers"].value if d]  # type: ignore[union-attr]
    elif "driver" in values and values["driver"].truthy:
        drivers = [normalize_driver(str(values["driver"].value))]
    derived["primaryDriver"] = drivers[0] if drivers else ""
    derived["hasDatabase"] = bool(drivers)
    derived["hasMultipleDatabases"] = len(drivers) > 1
    for driver, suffix in _DRIVER_FLAGS.items():
        derived[f"has{suffix}"] = driver in drivers

    logger = values.get("logger")
    selected = str(logger.value).strip().lower() if logger is not None else ""
    for name in _LOGGERS:
        derived[f"use{pascal_case(name)}"] = name == selected
    if selected and selected not in _LOGGERS:
        derived[f"use{pascal_case(selected)}"] = True

    for name, raw in derived.items():
        values.setdefault(name, ContextValue.of(raw))
    return TemplateContext(values)
