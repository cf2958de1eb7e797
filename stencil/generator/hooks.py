"""Post-generation hook execution.

Hooks run one at a time, in declaration order, after the tree and the
dependency manifest are written.  The process capability is injected as a
:class:`ProcessRunner` so tests (and embedders) can replace real
subprocesses.  Failures are reported as data in a :class:`HookReport`, never
raised.
"""

from __future__ import annotations

import logging
import shlex
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Union

from stencil.blueprint.models import Hook
from stencil.engine.conditions import evaluate
from stencil.engine.context import TemplateContext
from stencil.engine.renderer import TemplateRenderer
from stencil.utils import run_command

logger = logging.getLogger(__name__)

# Characters that need a shell to mean what the author intended.
_SHELL_CHARS = set("*?[]|&;<>$`")


# ---------------------------------------------------------------------------
# Process capability
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


Command = Union[str, list[str]]


class ProcessRunner(Protocol):
    """Runs one external command and reports how it went."""

    async def run(self, command: Command, cwd: Path, timeout: int) -> ProcessResult: ...


class SubprocessRunner:
    """:class:`ProcessRunner` backed by real subprocesses."""

    async def run(self, command: Command, cwd: Path, timeout: int) -> ProcessResult:
        try:
            code, stdout, stderr = await run_command(command, cwd=cwd, timeout=timeout)
        except OSError as exc:
            return ProcessResult(126, "", f"cannot start command: {exc}")
        return ProcessResult(code, stdout, stderr)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class HookStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_RUN = "not_run"


@dataclass(frozen=True)
class HookOutcome:
    """What happened to one hook."""

    name: str
    status: HookStatus
    critical: bool = True
    command: str = ""
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0


@dataclass(frozen=True)
class HookReport:
    outcomes: tuple[HookOutcome, ...] = field(default_factory=tuple)

    @property
    def critical_failure(self) -> Optional[HookOutcome]:
        """The critical hook that stopped the sequence, if any."""
        for outcome in self.outcomes:
            if outcome.status is HookStatus.FAILED and outcome.critical:
                return outcome
        return None

    @property
    def failures(self) -> list[HookOutcome]:
        return [o for o in self.outcomes if o.status is HookStatus.FAILED]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

def build_command(command: str, args: Iterable[str]) -> Command:
    """Turn a rendered hook command into something a runner can execute.

    Commands containing shell metacharacters (globs, pipes, redirects,
    variable expansion) run through the shell as one string; everything else
    is split into an argument vector.
    """
    args = list(args)
    if _SHELL_CHARS & set(command) or any(_SHELL_CHARS & set(a) for a in args):
        return " ".join([command, *(shlex.quote(a) for a in args)])
    return shlex.split(command) + args


class HookExecutor:
    """Runs hooks sequentially against a materialized tree.

    Args:
        runner: The process capability.
        renderer: Renders ``{{ ... }}`` references in commands, args and
            working directories.
        default_timeout: Seconds allowed per hook when the hook sets none.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        renderer: TemplateRenderer | None = None,
        default_timeout: int = 300,
    ) -> None:
        self.runner = runner
        self.renderer = renderer or TemplateRenderer()
        self.default_timeout = default_timeout

    def hook_context(self, context: TemplateContext, root: Path) -> TemplateContext:
        """Context hooks are rendered with: *context* plus ``outputPath``."""
        return context.with_values(outputPath=str(root))

    def prepare(self, hook: Hook, context: TemplateContext, root: Path) -> tuple[Command, Path]:
        """Render *hook*'s command and working directory.

        Relative working directories resolve under *root*; no working
        directory means *root* itself.
        """
        source = f"hook {hook.name}"
        command = self.renderer.render(hook.command, context, source=source).strip()
        args = [self.renderer.render(a, context, source=source) for a in hook.args]
        workdir = root
        if hook.workdir:
            rendered = self.renderer.render(hook.workdir, context, source=source).strip()
            if rendered:
                candidate = Path(rendered)
                workdir = candidate if candidate.is_absolute() else root / candidate
        return build_command(command, args), workdir

    async def run(
        self, hooks: Iterable[Hook], context: TemplateContext, root: Path
    ) -> HookReport:
        """Run *hooks* in order.

        A hook whose condition is false is ``SKIPPED``.  A failing critical
        hook stops the sequence and every later hook is ``NOT_RUN``; a failing
        best-effort hook is logged and the sequence continues.
        """
        ctx = self.hook_context(context, root)
        outcomes: list[HookOutcome] = []
        stopped = False

        for hook in hooks:
            if stopped:
                outcomes.append(HookOutcome(hook.name, HookStatus.NOT_RUN, hook.critical))
                continue
            if not evaluate(hook.condition, ctx, f"hook {hook.name}"):
                logger.debug("Skipping hook '%s' (condition false)", hook.name)
                outcomes.append(HookOutcome(hook.name, HookStatus.SKIPPED, hook.critical))
                continue

            command, workdir = self.prepare(hook, ctx, root)
            display = command if isinstance(command, str) else shlex.join(command)
            logger.info("Running hook '%s': %s", hook.name, display)
            started = time.monotonic()
            result = await self.runner.run(
                command, workdir, hook.timeout or self.default_timeout
            )
            duration = time.monotonic() - started

            status = HookStatus.SUCCEEDED if result.exit_code == 0 else HookStatus.FAILED
            outcomes.append(
                HookOutcome(
                    name=hook.name,
                    status=status,
                    critical=hook.critical,
                    command=display,
                    exit_code=result.exit_code,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    duration=duration,
                )
            )
            if status is HookStatus.FAILED:
                if hook.critical:
                    logger.error(
                        "Critical hook '%s' failed with exit code %s", hook.name, result.exit_code
                    )
                    stopped = True
                else:
                    logger.warning(
                        "Hook '%s' failed with exit code %s (continuing)",
                        hook.name,
                        result.exit_code,
                    )

        return HookReport(tuple(outcomes))
