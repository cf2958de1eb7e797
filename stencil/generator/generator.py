"""Project generation orchestrator.

:class:`ProjectGenerator` takes a loaded blueprint and resolved parameters
through the whole pipeline:

1. Build the template context.
2. Check every condition and every reference statically.
3. Render all selected files concurrently (nothing is written yet).
4. Merge dependencies and format the manifest.
5. Write all files concurrently, then the manifest.
6. Run hooks in order.

Validation, condition and render errors abort before anything touches the
filesystem.  A failing critical hook leaves the written tree in place and is
reported in the :class:`GenerationResult`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from stencil.blueprint.models import Blueprint, FileMapping
from stencil.config import Settings
from stencil.engine.conditions import check_references, evaluate
from stencil.engine.context import TemplateContext, build_context
from stencil.engine.renderer import TemplateRenderer, compile_template
from stencil.errors import (
    BlueprintError,
    HookExecutionError,
    StencilError,
)
from stencil.generator.dependencies import DependencyManifest, aggregate_dependencies
from stencil.generator.hooks import HookExecutor, HookReport, ProcessRunner, SubprocessRunner
from stencil.generator.manifest import format_manifest
from stencil.generator.materializer import Materializer, RenderedFile, check_relative

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class GenerationPlan:
    """Everything a run would write, computed without touching the disk."""

    context: TemplateContext
    files: tuple[RenderedFile, ...]
    dependencies: DependencyManifest
    manifest: Optional[RenderedFile]

    @property
    def paths(self) -> list[str]:
        paths = [f.path for f in self.files]
        if self.manifest is not None:
            paths.append(self.manifest.path)
        return paths


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation run."""

    blueprint: str
    destination: Path
    status: GenerationStatus
    files: tuple[Path, ...] = ()
    dependencies: DependencyManifest = field(default_factory=DependencyManifest)
    manifest_path: Optional[Path] = None
    hooks: HookReport = field(default_factory=HookReport)
    dry_run: bool = False
    duration: float = 0.0
    error: Optional[StencilError] = None

    @property
    def ok(self) -> bool:
        return self.status is not GenerationStatus.FAILURE


class ProjectGenerator:
    """Generates a project tree from a blueprint.

    Args:
        blueprint: The loaded blueprint.
        settings: Runtime settings (worker count, hook timeout, merge policy).
        runner: Process capability used for hooks.  Defaults to real
            subprocesses.
        renderer: Template renderer; a fresh one is created when omitted.
    """

    def __init__(
        self,
        blueprint: Blueprint,
        settings: Settings | None = None,
        runner: ProcessRunner | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.blueprint = blueprint
        self.settings = settings or Settings()
        self.renderer = renderer or TemplateRenderer()
        self.hook_executor = HookExecutor(
            runner or SubprocessRunner(),
            self.renderer,
            default_timeout=self.settings.hook_timeout,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, context: TemplateContext) -> None:
        """Check every condition and hook template against *context*.

        All references are checked, including those a short-circuiting
        evaluation would never reach.

        Raises:
            ConditionEvaluationError: For undefined references in conditions.
            RenderError: For undefined references in hook templates.
        """
        hook_ctx = self.hook_executor.hook_context(context, Path("."))
        for mapping in self.blueprint.files:
            if mapping.condition:
                check_references(mapping.condition, context, f"file {mapping.source}")
            compile_template(mapping.destination, mapping.destination).check(context)
        for dep in self.blueprint.dependencies:
            if dep.condition:
                check_references(dep.condition, context, f"dependency {dep.module}")
        for hook in self.blueprint.hooks:
            if hook.condition:
                check_references(hook.condition, hook_ctx, f"hook {hook.name}")
            source = f"hook {hook.name}"
            for text in (hook.command, *hook.args, hook.workdir or ""):
                compile_template(text, source).check(hook_ctx)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _render_file(self, mapping: FileMapping, context: TemplateContext) -> RenderedFile:
        source_path = self.blueprint.source_path(mapping)
        try:
            text = source_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BlueprintError(
                f"cannot read template '{mapping.source}': {exc.strerror or exc}",
                blueprint=self.blueprint.name,
            ) from exc
        destination = self.renderer.render_path(mapping.destination, context, source=mapping.source)
        content = self.renderer.render(text, context, source=mapping.source)
        return RenderedFile(destination, content, mapping.executable, mapping.source)

    async def plan(self, params: Mapping[str, Any]) -> GenerationPlan:
        """Render everything a run would write, without writing it.

        Raises:
            ConditionEvaluationError, RenderError, BlueprintError,
            DependencyConflictError: On the first problem found.
        """
        context = build_context(params)
        self.validate(context)

        selected: list[FileMapping] = []
        for mapping in self.blueprint.files:
            if evaluate(mapping.condition, context, f"file {mapping.source}"):
                selected.append(mapping)
            else:
                logger.debug("Skipping %s (condition false)", mapping.source)

        semaphore = asyncio.Semaphore(self.settings.max_workers)

        async def _render(mapping: FileMapping) -> RenderedFile:
            async with semaphore:
                return await asyncio.to_thread(self._render_file, mapping, context)

        files = list(await asyncio.gather(*(_render(m) for m in selected)))

        owners: dict[str, str] = {}
        for rendered in files:
            check_relative(rendered.path)
            if rendered.path in owners:
                raise BlueprintError(
                    f"'{owners[rendered.path]}' and '{rendered.source}' both map to '{rendered.path}'",
                    blueprint=self.blueprint.name,
                )
            owners[rendered.path] = rendered.source

        dependencies = aggregate_dependencies(
            self.blueprint.dependencies, context, self.settings.merge_policy
        )
        manifest: Optional[RenderedFile] = None
        spec = self.blueprint.manifest
        if spec.path:
            manifest_path = self.renderer.render_path(spec.path, context)
            check_relative(manifest_path)
            if manifest_path in owners:
                raise BlueprintError(
                    f"'{owners[manifest_path]}' maps onto the dependency manifest '{manifest_path}'",
                    blueprint=self.blueprint.name,
                )
            manifest = RenderedFile(
                manifest_path, format_manifest(dependencies, context, spec), source="manifest"
            )

        return GenerationPlan(context, tuple(files), dependencies, manifest)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        params: Mapping[str, Any],
        destination: str | Path,
        *,
        dry_run: bool = False,
        overwrite: bool = False,
        run_hooks: bool = True,
    ) -> GenerationResult:
        """Generate the project into *destination*.

        Args:
            params: Resolved parameters.
            destination: Output directory; must be absent or empty unless
                *overwrite* is set.
            dry_run: Plan only; nothing is written, no hook runs and the
                destination may hold files already.
            overwrite: Allow a non-empty destination.
            run_hooks: Run the blueprint's hooks after writing.

        Returns:
            A :class:`GenerationResult`.  A failed critical hook gives status
            ``FAILURE`` with a :class:`HookExecutionError` attached; failed
            best-effort hooks give ``PARTIAL``.

        Raises:
            StencilError: For any failure before or while writing the tree.
        """
        started = time.monotonic()
        materializer = Materializer(
            destination, max_workers=self.settings.max_workers, overwrite=overwrite
        )
        root = materializer.root
        if not dry_run:
            materializer.check_destination()

        plan = await self.plan(params)

        if dry_run:
            return GenerationResult(
                blueprint=self.blueprint.name,
                destination=root,
                status=GenerationStatus.SUCCESS,
                files=tuple(root / p for p in plan.paths),
                dependencies=plan.dependencies,
                manifest_path=root / plan.manifest.path if plan.manifest else None,
                dry_run=True,
                duration=time.monotonic() - started,
            )

        for path in plan.paths:
            materializer.target(path)
        written = await materializer.write_all(plan.files)
        manifest_path: Optional[Path] = None
        if plan.manifest is not None:
            manifest_path = await asyncio.to_thread(
                materializer.write_file, plan.manifest.path, plan.manifest.content
            )
            written.append(manifest_path)
        logger.info("Wrote %d files to %s", len(written), root)

        report = HookReport()
        if run_hooks and self.blueprint.hooks:
            report = await self.hook_executor.run(self.blueprint.hooks, plan.context, root)

        status = GenerationStatus.SUCCESS
        error: Optional[StencilError] = None
        failed = report.critical_failure
        if failed is not None:
            status = GenerationStatus.FAILURE
            error = HookExecutionError(failed.name, failed.exit_code, failed.stderr or failed.stdout)
        elif report.failures:
            status = GenerationStatus.PARTIAL

        return GenerationResult(
            blueprint=self.blueprint.name,
            destination=root,
            status=status,
            files=tuple(written),
            dependencies=plan.dependencies,
            manifest_path=manifest_path,
            hooks=report,
            duration=time.monotonic() - started,
            error=error,
        )
