"""Configuration resolution: explicit values, prompts, environment, defaults."""

from stencil.resolver.answers import AnswerSource, ConsoleAnswerSource, Question, ScriptedAnswerSource
from stencil.resolver.resolver import ConfigurationResolver, ResolvedParameters
from stencil.resolver.schema import coerce_value
from stencil.resolver.steps import PROMPT_STEPS, DisclosureLevel, PromptStep

__all__ = [
    "AnswerSource",
    "ConfigurationResolver",
    "ConsoleAnswerSource",
    "DisclosureLevel",
    "PROMPT_STEPS",
    "PromptStep",
    "Question",
    "ResolvedParameters",
    "ScriptedAnswerSource",
    "coerce_value",
]
