"""Dependency aggregation.

Collects the dependencies whose conditions hold, de-duplicates them by
module and picks one version per module according to a merge policy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from stencil.blueprint.models import Dependency
from stencil.config import MergePolicy
from stencil.engine.conditions import evaluate
from stencil.engine.context import TemplateContext
from stencil.errors import DependencyConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requirement:
    """One resolved ``module@version`` entry of the manifest."""

    module: str
    version: str


@dataclass(frozen=True)
class DependencyManifest:
    """Merged requirements, in first-seen order of their modules."""

    requirements: tuple[Requirement, ...] = ()

    def __iter__(self) -> Iterator[Requirement]:
        return iter(self.requirements)

    def __len__(self) -> int:
        return len(self.requirements)

    def version_of(self, module: str) -> str | None:
        for req in self.requirements:
            if req.module == module:
                return req.version
        return None

    def as_dict(self) -> dict[str, str]:
        return {req.module: req.version for req in self.requirements}


def aggregate_dependencies(
    dependencies: Iterable[Dependency],
    context: TemplateContext,
    policy: MergePolicy = MergePolicy.LAST_WINS,
) -> DependencyManifest:
    """Merge the dependencies that apply to *context*.

    Args:
        dependencies: Declarations in blueprint order.
        context: Context the conditions are evaluated against.
        policy: ``LAST_WINS`` keeps the last declared version of a module,
            ``FIRST_WINS`` the first, ``ERROR`` rejects differing versions.

    Returns:
        A :class:`DependencyManifest` with one entry per distinct module,
        ordered by where each module first appeared.

    Raises:
        DependencyConflictError: Under ``ERROR`` when versions differ.
        ConditionEvaluationError: When a condition cannot be evaluated.
    """
    seen: dict[str, list[str]] = {}
    for dep in dependencies:
        if not evaluate(dep.condition, context, f"dependency {dep.module}"):
            logger.debug("Dropping dependency %s@%s (condition false)", dep.module, dep.version)
            continue
        seen.setdefault(dep.module, []).append(dep.version)

    requirements: list[Requirement] = []
    for module, versions in seen.items():
        distinct = list(dict.fromkeys(versions))
        if len(distinct) > 1:
            if policy is MergePolicy.ERROR:
                raise DependencyConflictError(module, distinct)
            logger.debug("Merging %s versions %s with %s", module, distinct, policy.value)
        version = versions[0] if policy is MergePolicy.FIRST_WINS else versions[-1]
        requirements.append(Requirement(module, version))
    return DependencyManifest(tuple(requirements))
