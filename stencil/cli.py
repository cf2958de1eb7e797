"""Stencil command line interface.

Usage::

    stencil generate web-api-standard ./my-api --var projectName=my-api \\
        --var modulePath=github.com/acme/my-api --var authType=jwt
    stencil generate ./blueprints/cli-simple ./my-cli --interactive
    stencil list
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.table import Table

from stencil import __version__
from stencil.blueprint.loader import BlueprintRegistry
from stencil.config import MergePolicy, Settings
from stencil.errors import ConfigValidationError, StencilError
from stencil.generator.generator import GenerationResult, GenerationStatus, ProjectGenerator
from stencil.generator.hooks import HookStatus
from stencil.resolver.answers import ConsoleAnswerSource
from stencil.resolver.resolver import ConfigurationResolver
from stencil.resolver.steps import DisclosureLevel
from stencil.utils import (
    configure_logging,
    console,
    format_duration,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

logger = logging.getLogger(__name__)

EXIT_USAGE = 2


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _parse_var(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    return key.strip(), value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stencil",
        description="Stencil -- generate project trees from blueprints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  stencil list\n"
            "  stencil generate cli-simple ./my-cli --var projectName=my-cli "
            "--var modulePath=github.com/acme/my-cli\n"
            "  stencil generate web-api-standard ./my-api --interactive --advanced\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--blueprints-dir",
        action="append",
        type=Path,
        default=[],
        metavar="DIR",
        help="Extra directory to search for blueprints (repeatable)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show errors")

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a project from a blueprint")
    gen.add_argument("blueprint", help="Blueprint name or path to a blueprint directory")
    gen.add_argument("destination", type=Path, help="Output directory")
    gen.add_argument(
        "--var",
        dest="variables",
        action="append",
        type=_parse_var,
        default=[],
        metavar="KEY=VALUE",
        help="Set a blueprint variable (repeatable)",
    )
    gen.add_argument("-i", "--interactive", action="store_true", help="Prompt for unset variables")
    gen.add_argument(
        "--advanced", action="store_true", help="Also prompt for advanced options (implies -i)"
    )
    gen.add_argument("--dry-run", action="store_true", help="Show what would be written")
    gen.add_argument("--force", action="store_true", help="Write into a non-empty destination")
    gen.add_argument("--skip-hooks", action="store_true", help="Do not run post-generation hooks")
    gen.add_argument(
        "--merge-policy",
        choices=[p.value for p in MergePolicy],
        default=None,
        help="How conflicting dependency versions merge (default: last-wins)",
    )
    gen.add_argument("--workers", type=int, default=None, help="Concurrent render/write tasks")

    sub.add_parser("list", help="List available blueprints")
    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    updates: dict[str, Any] = {}
    if args.blueprints_dir:
        updates["blueprint_dirs"] = list(args.blueprints_dir) + settings.blueprint_dirs
    if getattr(args, "workers", None) is not None:
        updates["max_workers"] = args.workers
    if getattr(args, "merge_policy", None):
        updates["merge_policy"] = MergePolicy(args.merge_policy)
    if updates:
        settings = Settings(**{**settings.model_dump(), **updates})
    return settings


def cmd_list(settings: Settings) -> int:
    """Print a table of every discoverable blueprint."""
    registry = BlueprintRegistry(settings.search_dirs)
    blueprints = registry.list()
    if not blueprints:
        print_warning("No blueprints found.")
        return 0
    table = Table(title="Blueprints", show_header=True, header_style="bold cyan")
    table.add_column("Name", no_wrap=True)
    table.add_column("Type")
    table.add_column("Architecture")
    table.add_column("Description")
    for bp in blueprints:
        table.add_row(bp.name, bp.type, bp.architecture, bp.description)
    console.print(table)
    return 0


def _report(result: GenerationResult) -> None:
    rows = {
        "Blueprint": result.blueprint,
        "Destination": str(result.destination),
        "Files": str(len(result.files)),
        "Dependencies": str(len(result.dependencies)),
        "Status": result.status.value,
        "Duration": format_duration(result.duration),
    }
    print_summary_table(rows, title="Dry run" if result.dry_run else "Generation")
    if result.dry_run:
        for path in result.files:
            console.print(f"  {path.relative_to(result.destination)}", markup=False)
    for outcome in result.hooks.outcomes:
        if outcome.status is HookStatus.FAILED:
            detail = (outcome.stderr or outcome.stdout).strip()
            print_warning(f"Hook '{outcome.name}' failed (exit code {outcome.exit_code})")
            if detail:
                console.print(detail, markup=False, highlight=False)
        elif outcome.status is HookStatus.NOT_RUN:
            print_warning(f"Hook '{outcome.name}' was not run")


def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    """Resolve variables, generate the project and report the outcome."""
    registry = BlueprintRegistry(settings.search_dirs)
    blueprint = registry.resolve(args.blueprint)

    explicit: dict[str, str] = {}
    for key, value in args.variables:
        explicit[key] = value

    interactive = args.interactive or args.advanced
    resolver = ConfigurationResolver(
        blueprint.variables,
        ConsoleAnswerSource() if interactive else None,
        env_prefix=settings.env_prefix,
        disclosure=DisclosureLevel.ADVANCED if args.advanced else DisclosureLevel.BASIC,
    )
    params = resolver.resolve(explicit)
    logger.debug("Resolved parameters for %s: %r", blueprint.name, dict(params))

    generator = ProjectGenerator(blueprint, settings)
    result = asyncio.run(
        generator.generate(
            params,
            args.destination,
            dry_run=args.dry_run,
            overwrite=args.force,
            run_hooks=not args.skip_hooks,
        )
    )
    _report(result)

    if result.error is not None:
        print_error(f"Error: {result.error}")
        return result.error.exit_code
    if result.status is GenerationStatus.PARTIAL:
        print_warning("Project generated, but some hooks failed.")
    elif result.dry_run:
        print_success("Dry run complete; nothing was written.")
    else:
        print_success(f"Project generated in {result.destination}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code) if isinstance(exc.code, int) else EXIT_USAGE

    configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        settings = _settings(args)
    except ValueError as exc:
        print_error(f"Invalid settings: {exc}")
        return EXIT_USAGE

    try:
        if args.command == "list":
            return cmd_list(settings)
        return cmd_generate(args, settings)
    except ConfigValidationError as exc:
        print_error(f"Invalid configuration: {exc}")
        return exc.exit_code
    except StencilError as exc:
        print_error(f"Error: {exc}")
        return exc.exit_code
    except KeyboardInterrupt:
        print_error("Aborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
