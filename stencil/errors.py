"""Error taxonomy for Stencil.

Every error carries a stable ``code`` and the process ``exit_code`` the CLI
returns for it, plus structured attributes naming the offending variable,
file, dependency or hook.
"""

from __future__ import annotations

from pathlib import Path


class StencilError(Exception):
    """Base class for all errors raised by Stencil."""

    code = "STENCIL_ERROR"
    exit_code = 1


class BlueprintError(StencilError):
    """Raised when a blueprint descriptor cannot be found, parsed or validated."""

    code = "BLUEPRINT_ERROR"
    exit_code = 1

    def __init__(self, message: str, blueprint: str | None = None) -> None:
        self.blueprint = blueprint
        prefix = f"Blueprint '{blueprint}': " if blueprint else ""
        super().__init__(f"{prefix}{message}")


class ConfigValidationError(StencilError):
    """Raised when a parameter value violates its variable declaration."""

    code = "VALIDATION_ERROR"
    exit_code = 2

    def __init__(self, variable: str, rule: str, message: str) -> None:
        self.variable = variable
        self.rule = rule
        super().__init__(f"Variable '{variable}' ({rule}): {message}")


class ConditionEvaluationError(StencilError):
    """Raised when a condition expression is malformed or cannot be evaluated."""

    code = "CONDITION_ERROR"
    exit_code = 3

    def __init__(
        self,
        expression: str,
        message: str,
        position: int | None = None,
        owner: str | None = None,
    ) -> None:
        self.expression = expression
        self.detail = message
        self.position = position
        self.owner = owner
        where = f" at offset {position}" if position is not None else ""
        prefix = f"{owner}: " if owner else ""
        super().__init__(f"{prefix}Condition {expression!r}{where}: {message}")

    def for_owner(self, owner: str) -> ConditionEvaluationError:
        """The same error attributed to *owner* (e.g. ``file auth.go.tmpl``)."""
        if self.owner:
            return self
        return ConditionEvaluationError(self.expression, self.detail, self.position, owner)


class RenderError(StencilError):
    """Raised when a template body cannot be rendered."""

    code = "RENDER_ERROR"
    exit_code = 3

    def __init__(
        self,
        message: str,
        source: str | None = None,
        reference: str | None = None,
        line: int | None = None,
    ) -> None:
        self.source = source
        self.reference = reference
        self.line = line
        location = source or "<template>"
        if line is not None:
            location = f"{location}:{line}"
        super().__init__(f"{location}: {message}")


class DependencyConflictError(StencilError):
    """Raised under the ``error`` merge policy when versions disagree."""

    code = "DEPENDENCY_CONFLICT"
    exit_code = 6

    def __init__(self, module: str, versions: list[str]) -> None:
        self.module = module
        self.versions = list(versions)
        super().__init__(
            f"Dependency '{module}' declared with conflicting versions: "
            + ", ".join(self.versions)
        )


class HookExecutionError(StencilError):
    """Raised (or reported) when a critical hook fails."""

    code = "HOOK_FAILED"
    exit_code = 4

    def __init__(self, hook: str, exit_code: int | None, output: str = "") -> None:
        self.hook = hook
        self.hook_exit_code = exit_code
        self.output = output
        detail = f" (exit code {exit_code})" if exit_code is not None else ""
        message = f"Hook '{hook}' failed{detail}"
        if output.strip():
            message += f": {output.strip().splitlines()[-1]}"
        super().__init__(message)


class FilesystemError(StencilError):
    """Raised when the destination tree cannot be written."""

    code = "FILESYSTEM_ERROR"
    exit_code = 5

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{path}: {message}")
