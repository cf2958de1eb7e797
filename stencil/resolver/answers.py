"""Answer sources for interactive configuration.

The resolver never talks to a terminal directly.  It asks an injected
:class:`AnswerSource` for each question; :class:`ConsoleAnswerSource` prompts
a human through Rich, :class:`ScriptedAnswerSource` replays recorded answers.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, IntPrompt, Prompt

from stencil.blueprint.models import Variable, VariableType
from stencil.errors import ConfigValidationError
from stencil.utils import console as default_console


@dataclass(frozen=True)
class Question:
    """One question asked for one variable."""

    variable: Variable
    text: str
    default: Any = None
    validate: Optional[Callable[[Any], Any]] = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return self.variable.name

    @property
    def choices(self) -> list[str]:
        return list(self.variable.choices)


class AnswerSource(Protocol):
    """Anything that can answer a :class:`Question`.

    Returning ``None`` means "no answer"; the resolver then falls back to the
    environment and the declared default.
    """

    def ask(self, question: Question) -> Any: ...


class ScriptedAnswerSource:
    """Replays pre-recorded answers keyed by variable name.

    Every question asked is recorded in :attr:`asked`, in order, so callers
    can assert on the prompting sequence.
    """

    def __init__(self, answers: Mapping[str, Any] | None = None) -> None:
        self.answers = dict(answers or {})
        self.asked: list[str] = []

    def ask(self, question: Question) -> Any:
        self.asked.append(question.name)
        return self.answers.get(question.name)


class ConsoleAnswerSource:
    """Prompts on the terminal with Rich, re-asking until the answer is valid."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    def ask(self, question: Question) -> Any:
        while True:
            raw = self._prompt(question)
            if question.validate is None:
                return raw
            try:
                question.validate(raw)
            except ConfigValidationError as exc:
                self.console.print(f"[bold red]{escape(str(exc))}[/bold red]")
                continue
            return raw

    def _prompt(self, question: Question) -> Any:
        var = question.variable
        default = question.default
        if var.type is VariableType.BOOL:
            return Confirm.ask(question.text, default=bool(default), console=self.console)
        if var.type is VariableType.INT:
            return IntPrompt.ask(
                question.text,
                default=int(default) if default not in (None, "") else None,
                console=self.console,
            )
        if var.type is VariableType.ENUM:
            return Prompt.ask(
                question.text,
                choices=question.choices,
                default=str(default) if default is not None else None,
                console=self.console,
                case_sensitive=False,
            )
        if var.type is VariableType.LIST:
            hint = f" ({', '.join(question.choices)})" if question.choices else ""
            if isinstance(default, (list, tuple)):
                default = ",".join(default)
            return Prompt.ask(
                f"{question.text}{hint} [dim]comma-separated[/dim]",
                default=default or "",
                console=self.console,
            )
        return Prompt.ask(
            question.text,
            default=str(default) if default not in (None, "") else None,
            console=self.console,
        )
