"""The interactive prompting sequence.

Prompting is a fixed, ordered list of guarded steps.  Each step is bound to
a well-known variable name and runs only when the blueprint declares that
variable, no explicit value was given, the disclosure level includes it and
its guard holds for the answers collected so far.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from stencil.utils import suggest_project_name


class DisclosureLevel(str, Enum):
    """How much the interactive flow asks."""
    BASIC = "basic"
    ADVANCED = "advanced"


Answers = Mapping[str, Any]


@dataclass(frozen=True)
class PromptStep:
    """A single guarded question in the prompting sequence."""

    variable: str
    level: DisclosureLevel = DisclosureLevel.BASIC
    guard: Optional[Callable[[Answers], bool]] = None
    default: Optional[Callable[[Answers], Any]] = None
    question: str = ""

    def applies(self, answers: Answers, level: DisclosureLevel) -> bool:
        if self.level is DisclosureLevel.ADVANCED and level is not DisclosureLevel.ADVANCED:
            return False
        return self.guard is None or self.guard(answers)


def _has_database(answers: Answers) -> bool:
    return bool(answers.get("drivers")) or bool(answers.get("driver"))


def _has_framework(answers: Answers) -> bool:
    return answers.get("projectType", "web-api") in ("web-api", "cli")


def _needs_logger(answers: Answers) -> bool:
    return answers.get("projectType") != "library"


def _module_default(answers: Answers) -> Any:
    name = answers.get("projectName")
    return f"github.com/username/{name}" if name else None


PROMPT_STEPS: tuple[PromptStep, ...] = (
    PromptStep(
        "projectName",
        default=lambda _answers: suggest_project_name(),
        question="What's your project name?",
    ),
    PromptStep("modulePath", default=_module_default, question="Module path"),
    PromptStep("projectType", question="What type of project?"),
    PromptStep("framework", guard=_has_framework, question="Which framework?"),
    PromptStep("logger", guard=_needs_logger, question="Which logger?"),
    PromptStep("architecture", DisclosureLevel.ADVANCED, question="Which architecture pattern?"),
    PromptStep("drivers", DisclosureLevel.ADVANCED, question="Which databases?"),
    PromptStep("driver", DisclosureLevel.ADVANCED, question="Which database?"),
    PromptStep("orm", DisclosureLevel.ADVANCED, guard=_has_database, question="Database access style?"),
    PromptStep("authType", DisclosureLevel.ADVANCED, question="Authentication type?"),
    PromptStep("logLevel", DisclosureLevel.ADVANCED, guard=_needs_logger, question="Log level?"),
    PromptStep("logFormat", DisclosureLevel.ADVANCED, guard=_needs_logger, question="Log format?"),
)

STEP_NAMES = frozenset(step.variable for step in PROMPT_STEPS)
