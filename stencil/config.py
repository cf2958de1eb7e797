"""Stencil configuration.

Typed runtime settings built with Pydantic v2 so they are validated at
construction time and can be assembled from environment variables.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from stencil.utils import snake_case

BUNDLED_BLUEPRINTS_DIR = Path(__file__).parent / "blueprints"

DEFAULT_ENV_PREFIX = "STENCIL_VAR_"


class MergePolicy(str, Enum):
    """How duplicate dependency declarations with different versions merge."""

    LAST_WINS = "last-wins"
    FIRST_WINS = "first-wins"
    ERROR = "error"


class Settings(BaseModel):
    """Runtime settings for a Stencil invocation.

    Instances are created once by the CLI (usually via :meth:`from_env`) and
    handed to the registry and the generator.
    """

    blueprint_dirs: list[Path] = Field(
        default_factory=list,
        description="Extra directories searched for blueprints, before the bundled ones",
    )
    max_workers: int = Field(
        default=8, ge=1, description="Maximum concurrent render/write tasks"
    )
    hook_timeout: int = Field(
        default=300, ge=1, description="Per-hook timeout in seconds"
    )
    merge_policy: MergePolicy = Field(default=MergePolicy.LAST_WINS)
    env_prefix: str = Field(default=DEFAULT_ENV_PREFIX)

    @property
    def search_dirs(self) -> list[Path]:
        """Blueprint search path; the bundled directory always comes last."""
        dirs = [Path(d) for d in self.blueprint_dirs]
        if BUNDLED_BLUEPRINTS_DIR not in dirs:
            dirs.append(BUNDLED_BLUEPRINTS_DIR)
        return dirs

    def variable_env_name(self, name: str) -> str:
        """Environment variable consulted for blueprint variable *name*.

        ``authType`` -> ``STENCIL_VAR_AUTH_TYPE``.
        """
        return variable_env_name(name, self.env_prefix)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            STENCIL_BLUEPRINTS_DIR (``os.pathsep``-separated),
            STENCIL_MAX_WORKERS, STENCIL_HOOK_TIMEOUT, STENCIL_MERGE_POLICY.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("STENCIL_BLUEPRINTS_DIR"):
            kwargs["blueprint_dirs"] = [
                Path(p)
                for p in os.environ["STENCIL_BLUEPRINTS_DIR"].split(os.pathsep)
                if p.strip()
            ]
        if os.environ.get("STENCIL_MAX_WORKERS"):
            kwargs["max_workers"] = int(os.environ["STENCIL_MAX_WORKERS"])
        if os.environ.get("STENCIL_HOOK_TIMEOUT"):
            kwargs["hook_timeout"] = int(os.environ["STENCIL_HOOK_TIMEOUT"])
        if os.environ.get("STENCIL_MERGE_POLICY"):
            kwargs["merge_policy"] = MergePolicy(os.environ["STENCIL_MERGE_POLICY"])
        return cls(**kwargs)


def variable_env_name(name: str, prefix: str = DEFAULT_ENV_PREFIX) -> str:
    """Map a blueprint variable name to its environment variable name."""
    return prefix + snake_case(name).upper()
