"""Pydantic v2 models describing a blueprint.

A blueprint is the declarative description of one generatable project
archetype: typed variables, conditional file mappings, dependency
declarations, post-generation hooks and the dependency manifest format.
All models are frozen so a loaded blueprint can be shared across concurrent
render tasks.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class VariableType(str, Enum):
    """Value type of a blueprint variable."""
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    ENUM = "enum"
    LIST = "list"


class ManifestFormat(str, Enum):
    """Output format of the merged dependency manifest."""
    GOMOD = "gomod"
    JSON = "json"


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Variable(_Frozen):
    """A typed, named input to a blueprint."""
    name: str = Field(..., min_length=1, description="Unique variable name, e.g. 'authType'")
    type: VariableType = Field(default=VariableType.STRING)
    description: str = Field(default="")
    prompt: str = Field(default="", description="Question shown when prompting interactively")
    required: bool = Field(default=False)
    default: Any = Field(default=None)
    choices: list[str] = Field(default_factory=list, description="Allowed values for enum/list")
    validation: Optional[str] = Field(
        default=None, description="Regular expression the whole value must match"
    )

    @field_validator("choices", mode="before")
    @classmethod
    def _stringify_choices(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ["" if v is None else str(v) for v in value]
        return value

    @property
    def question(self) -> str:
        """Text used when asking for this variable."""
        return self.prompt or self.description or self.name


class FileMapping(_Frozen):
    """Maps a template source inside the blueprint to a destination path."""
    source: str = Field(..., min_length=1, description="Path relative to the blueprint root")
    destination: str = Field(
        ..., min_length=1, description="Destination relative to the output root; may contain references"
    )
    condition: Optional[str] = Field(default=None)
    executable: bool = Field(default=False)


class Dependency(_Frozen):
    """A module/version requirement, optionally gated by a condition."""
    module: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    condition: Optional[str] = Field(default=None)

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value


class Hook(_Frozen):
    """An external command run after the tree and manifest are written."""
    name: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    workdir: Optional[str] = Field(default=None, alias="work_dir")
    condition: Optional[str] = Field(default=None)
    critical: bool = Field(
        default=True, description="A failing critical hook stops the remaining hooks"
    )
    timeout: Optional[int] = Field(default=None, ge=1, description="Seconds; defaults to settings")


class ManifestSpec(_Frozen):
    """Where and how the merged dependency manifest is written."""
    path: Optional[str] = Field(default="go.mod", description="Empty or null disables the manifest")
    format: ManifestFormat = Field(default=ManifestFormat.GOMOD)


# ---------------------------------------------------------------------------
# Blueprint
# ---------------------------------------------------------------------------

class Blueprint(_Frozen):
    """A complete, validated blueprint loaded from disk."""
    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    type: str = Field(default="")
    architecture: str = Field(default="")
    version: str = Field(default="1.0.0")
    variables: list[Variable] = Field(default_factory=list)
    files: list[FileMapping] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    hooks: list[Hook] = Field(default_factory=list, alias="post_hooks")
    manifest: ManifestSpec = Field(default_factory=ManifestSpec)
    root: Path = Field(default=Path("."), description="Directory template sources are read from")

    def variable(self, name: str) -> Variable | None:
        """Return the variable declared as *name*, if any."""
        for var in self.variables:
            if var.name == name:
                return var
        return None

    def source_path(self, mapping: FileMapping) -> Path:
        """Absolute path of *mapping*'s template source."""
        return self.root / mapping.source

    def conditions(self) -> list[tuple[str, str]]:
        """Every ``(owner, expression)`` pair declared by the blueprint."""
        found: list[tuple[str, str]] = []
        for mapping in self.files:
            if mapping.condition:
                found.append((f"file {mapping.source}", mapping.condition))
        for dep in self.dependencies:
            if dep.condition:
                found.append((f"dependency {dep.module}", dep.condition))
        for hook in self.hooks:
            if hook.condition:
                found.append((f"hook {hook.name}", hook.condition))
        return found
