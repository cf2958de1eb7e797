"""Variable value coercion and validation.

Values arrive from several places (CLI ``--var`` flags, environment
variables, interactive answers, blueprint defaults), mostly as strings.
:func:`coerce_value` turns a raw value into the canonical typed value for a
variable declaration or raises :class:`ConfigValidationError` naming the
variable and the failing rule.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from stencil.blueprint.models import Variable, VariableType
from stencil.errors import ConfigValidationError

_TRUE = {"true", "yes", "y", "on", "1"}
_FALSE = {"false", "no", "n", "off", "0", ""}


@lru_cache(maxsize=128)
def _pattern(regex: str) -> re.Pattern[str]:
    return re.compile(regex)


def is_empty(value: Any) -> bool:
    """``None``, blank strings and empty lists count as "no value"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _match_choice(variable: Variable, value: str) -> str:
    for choice in variable.choices:
        if choice.lower() == value.strip().lower():
            return choice
    allowed = ", ".join(repr(c) for c in variable.choices)
    raise ConfigValidationError(
        variable.name, "choices", f"{value!r} is not one of {allowed}"
    )


def _check_pattern(variable: Variable, value: str) -> None:
    if variable.validation and not _pattern(variable.validation).fullmatch(value):
        raise ConfigValidationError(
            variable.name,
            "validation",
            f"{value!r} does not match pattern {variable.validation!r}",
        )


def _split_list(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(raw, (list, tuple, set)):
        return [str(item).strip() for item in raw if str(item).strip()]
    return [str(raw).strip()]


def coerce_value(variable: Variable, raw: Any) -> Any:
    """Convert *raw* into the typed value declared by *variable*.

    * ``string``: ``str``; the validation pattern must match the whole value.
    * ``int``: ``int``; strings are parsed.
    * ``bool``: ``bool``; strings ``true/yes/on/1`` and ``false/no/off/0``.
    * ``enum``: one of ``choices``, compared case-insensitively and stored in
      its declared spelling.
    * ``list``: ``tuple[str, ...]``; strings are split on commas.  Items must
      be valid choices when choices are declared, and must match the
      validation pattern.

    Raises:
        ConfigValidationError: With rule ``type``, ``choices`` or ``validation``.
    """
    vtype = variable.type
    if vtype is VariableType.BOOL:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int):
            return raw != 0
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigValidationError(variable.name, "type", f"{raw!r} is not a boolean")

    if vtype is VariableType.INT:
        if isinstance(raw, bool):
            raise ConfigValidationError(variable.name, "type", f"{raw!r} is not an integer")
        if isinstance(raw, int):
            value = raw
        else:
            try:
                value = int(str(raw).strip())
            except ValueError:
                raise ConfigValidationError(
                    variable.name, "type", f"{raw!r} is not an integer"
                ) from None
        _check_pattern(variable, str(value))
        return value

    if vtype is VariableType.LIST:
        items = _split_list(raw)
        if variable.choices:
            items = [_match_choice(variable, item) for item in items]
        for item in items:
            _check_pattern(variable, item)
        return tuple(dict.fromkeys(items))

    if isinstance(raw, (list, tuple, dict)):
        raise ConfigValidationError(variable.name, "type", f"{raw!r} is not a string")
    text = "" if raw is None else str(raw)
    if vtype is VariableType.ENUM:
        return _match_choice(variable, text)
    if text:
        _check_pattern(variable, text)
    return text


def empty_value(variable: Variable) -> Any:
    """The value an optional variable takes when nothing supplies one."""
    if variable.type is VariableType.BOOL:
        return False
    if variable.type is VariableType.INT:
        return 0
    if variable.type is VariableType.LIST:
        return ()
    return ""
