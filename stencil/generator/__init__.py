"""Project generation: dependency merging, file materialization and hooks.

Quick usage::

    from stencil.generator import ProjectGenerator

    generator = ProjectGenerator(blueprint)
    result = await generator.generate(params, "/tmp/my-service")
    print(result.status, len(result.files))
"""

from stencil.generator.dependencies import DependencyManifest, Requirement, aggregate_dependencies
from stencil.generator.generator import (
    GenerationPlan,
    GenerationResult,
    GenerationStatus,
    ProjectGenerator,
)
from stencil.generator.hooks import (
    HookExecutor,
    HookOutcome,
    HookReport,
    HookStatus,
    ProcessResult,
    ProcessRunner,
    SubprocessRunner,
)
from stencil.generator.manifest import format_manifest
from stencil.generator.materializer import Materializer, RenderedFile

__all__ = [
    "DependencyManifest",
    "GenerationPlan",
    "GenerationResult",
    "GenerationStatus",
    "HookExecutor",
    "HookOutcome",
    "HookReport",
    "HookStatus",
    "Materializer",
    "ProcessResult",
    "ProcessRunner",
    "ProjectGenerator",
    "RenderedFile",
    "Requirement",
    "SubprocessRunner",
    "aggregate_dependencies",
    "format_manifest",
]
