"""Configuration resolution.

Turns explicit values, interactive answers, environment variables and
declared defaults into one validated, immutable set of parameters.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from typing import Any, Optional

from stencil.blueprint.models import Variable
from stencil.config import DEFAULT_ENV_PREFIX, variable_env_name
from stencil.errors import ConfigValidationError
from stencil.resolver.answers import AnswerSource, Question
from stencil.resolver.schema import coerce_value, empty_value, is_empty
from stencil.resolver.steps import PROMPT_STEPS, STEP_NAMES, DisclosureLevel, PromptStep

logger = logging.getLogger(__name__)


class ResolvedParameters(Mapping[str, Any]):
    """Immutable variable name -> typed value mapping, in declaration order."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ResolvedParameters({self._values!r})"


class ConfigurationResolver:
    """Resolves blueprint variables into :class:`ResolvedParameters`.

    Each variable takes the first available of: the explicit value passed to
    :meth:`resolve`, an answer from the injected answer source, the
    ``<prefix><UPPER_SNAKE_NAME>`` environment variable, and the declared
    default.  Without an answer source nothing is prompted.

    Args:
        variables: The blueprint's variable declarations.
        answer_source: Where interactive answers come from, or ``None``.
        env: Environment mapping (defaults to ``os.environ``).
        env_prefix: Prefix of per-variable environment variables.
        disclosure: ``BASIC`` asks the primary questions only; ``ADVANCED``
            also asks the advanced questions and every remaining variable.
    """

    def __init__(
        self,
        variables: list[Variable],
        answer_source: Optional[AnswerSource] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        disclosure: DisclosureLevel = DisclosureLevel.BASIC,
    ) -> None:
        self.variables = list(variables)
        self.answer_source = answer_source
        self.env = os.environ if env is None else env
        self.env_prefix = env_prefix
        self.disclosure = disclosure
        self._by_name = {v.name: v for v in self.variables}

    # ------------------------------------------------------------------

    def resolve(self, explicit: Optional[Mapping[str, Any]] = None) -> ResolvedParameters:
        """Resolve every declared variable.

        Raises:
            ConfigValidationError: For unknown explicit keys, values that fail
                validation and required variables left without a value.
        """
        explicit = dict(explicit or {})
        unknown = sorted(set(explicit) - set(self._by_name))
        if unknown:
            raise ConfigValidationError(
                unknown[0], "unknown", "not declared by this blueprint"
            )

        values: dict[str, Any] = {}
        for name, raw in explicit.items():
            values[name] = coerce_value(self._by_name[name], raw)

        if self.answer_source is not None:
            self._prompt(values)

        for var in self.variables:
            if var.name in values:
                continue
            fallback = self._fallback(var)
            if not is_empty(fallback):
                values[var.name] = coerce_value(var, fallback)
            else:
                values[var.name] = empty_value(var)

        for var in self.variables:
            if var.required and is_empty(values[var.name]):
                raise ConfigValidationError(var.name, "required", "a value is required")

        return ResolvedParameters({v.name: values[v.name] for v in self.variables})

    # ------------------------------------------------------------------

    def _fallback(self, var: Variable) -> Any:
        env_value = self.env.get(variable_env_name(var.name, self.env_prefix))
        if env_value is not None and env_value.strip():
            return env_value
        return var.default

    def _plan(self) -> list[tuple[Variable, Optional[PromptStep]]]:
        """Variables to prompt for, in prompting order."""
        plan: list[tuple[Variable, Optional[PromptStep]]] = []
        for step in PROMPT_STEPS:
            var = self._by_name.get(step.variable)
            if var is not None:
                plan.append((var, step))
        if self.disclosure is DisclosureLevel.ADVANCED:
            plan.extend((v, None) for v in self.variables if v.name not in STEP_NAMES)
        return plan

    def _prompt(self, values: dict[str, Any]) -> None:
        assert self.answer_source is not None
        for var, step in self._plan():
            if var.name in values:
                continue
            if step is not None and not step.applies(values, self.disclosure):
                logger.debug("Skipping prompt for '%s'", var.name)
                continue

            default = self._fallback(var)
            if is_empty(default) and step is not None and step.default is not None:
                default = step.default(values)
            text = (step.question if step and step.question else "") or var.question
            question = Question(
                variable=var,
                text=text,
                default=default,
                validate=lambda raw, _var=var: coerce_value(_var, raw),
            )
            answer = self.answer_source.ask(question)
            if is_empty(answer):
                if not is_empty(default):
                    values[var.name] = coerce_value(var, default)
                continue
            values[var.name] = coerce_value(var, answer)
