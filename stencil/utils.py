"""Shared utility functions for Stencil.

Provides async command execution, identifier case conversion, project-name
suggestions, logging setup and Rich-based console output helpers.
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import re
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously.

    Args:
        cmd: Shell command string or list of arguments.  A string is run
            through the shell, a list is executed directly.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        capture: Whether to capture stdout/stderr (if ``False`` they inherit
            the parent's streams).
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed-out process yields
        return code ``-1`` and an explanatory stderr.  A missing executable
        yields return code ``127``; a missing working directory yields ``1``.
    """
    if cwd is not None and not Path(cwd).is_dir():
        return (1, "", f"Working directory does not exist: {cwd}")

    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    stdout_pipe = asyncio.subprocess.PIPE if capture else None
    stderr_pipe = asyncio.subprocess.PIPE if capture else None

    try:
        if isinstance(cmd, list):
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=stdout_pipe,
                stderr=stderr_pipe,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
            )
        else:
            process = await asyncio.create_subprocess_shell(
                cmd,
                stdout=stdout_pipe,
                stderr=stderr_pipe,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
            )
    except FileNotFoundError as exc:
        return (127, "", f"Command not found: {exc.filename or cmd}")

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (
            -1,
            "",
            f"Command timed out after {timeout}s: {cmd if isinstance(cmd, str) else ' '.join(cmd)}",
        )

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------

_WORD_BOUNDARY = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")


def split_words(text: str) -> list[str]:
    """Split an identifier into words.

    Handles separators (space, hyphen, underscore, dot) as well as
    ``camelCase`` and ``PascalCase`` boundaries.

    Examples::

        split_words("userAuthToken") -> ["user", "Auth", "Token"]
        split_words("my-cool_app")   -> ["my", "cool", "app"]
        split_words("HTTPServer")    -> ["HTTP", "Server"]
    """
    words: list[str] = []
    for chunk in re.split(r"[\s\-_./]+", text.strip()):
        words.extend(_WORD_BOUNDARY.findall(chunk))
    return words


def snake_case(text: str) -> str:
    """``"My Cool App"`` -> ``"my_cool_app"``."""
    return "_".join(w.lower() for w in split_words(text))


def kebab_case(text: str) -> str:
    """``"myCoolApp"`` -> ``"my-cool-app"``."""
    return "-".join(w.lower() for w in split_words(text))


def pascal_case(text: str) -> str:
    """``"my-cool-app"`` -> ``"MyCoolApp"``."""
    return "".join(w[:1].upper() + w[1:].lower() for w in split_words(text))


def camel_case(text: str) -> str:
    """``"my-cool-app"`` -> ``"myCoolApp"``."""
    pascal = pascal_case(text)
    return pascal[:1].lower() + pascal[1:]


def slugify(text: str) -> str:
    """Convert an arbitrary string to a URL/directory-safe slug.

    * Lowercases the input.
    * Replaces runs of characters other than letters and digits with a
      single hyphen.
    * Strips leading/trailing hyphens.

    Examples::

        slugify("User Authentication") -> "user-authentication"
        slugify("  2FA (TOTP)  ")      -> "2fa-totp"
    """
    result = re.sub(r"[^a-z0-9]+", "-", text.strip().lower())
    return result.strip("-")


_ADJECTIVES = (
    "awesome", "brilliant", "clever", "dynamic", "elegant", "fast",
    "graceful", "helpful", "innovative", "lightweight", "modern", "nimble",
    "optimal", "powerful", "quick", "robust", "smart", "tidy",
)

_NOUNS = (
    "api", "app", "builder", "engine", "gateway", "hub", "kit", "manager",
    "platform", "processor", "server", "service", "system", "toolkit",
    "tracker", "worker",
)


def suggest_project_name(rng: random.Random | None = None) -> str:
    """Return a random ``adjective-noun`` project name such as ``"nimble-api"``."""
    rng = rng or random.Random()
    return f"{rng.choice(_ADJECTIVES)}-{rng.choice(_NOUNS)}"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.25)  -> "250ms"
        format_duration(3.7)   -> "3.7s"
        format_duration(65.2)  -> "1m 5s"
    """
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route the ``stencil`` loggers through a Rich handler.

    Args:
        verbose: Emit debug-level diagnostics.
        quiet: Only emit errors.
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logger = logging.getLogger("stencil")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, show_time=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
