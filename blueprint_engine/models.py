"""Pydantic v2 models for blueprint manifests and generation results.

Manifest models (``BlueprintManifest`` and everything it contains) are frozen:
once the registry has loaded a blueprint nobody can mutate it, which is what
makes concurrent lookups safe without locking.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from blueprint_engine.errors import BlueprintError, ErrorKind


# ---------------------------------------------------------------------------
# Raw and resolved values
# ---------------------------------------------------------------------------

RawValue = Union[str, int, bool, list[str], tuple[str, ...]]
"""What a front-end may supply for a variable."""

Value = Union[str, int, bool, tuple[str, ...]]
"""A resolved, typed variable value as stored in a ``GenerationContext``."""

_INT_RE = re.compile(r"^[+-]?\d+$")
_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


class VariableType(str, Enum):
    """Declared type of a blueprint variable."""
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    LIST = "list"

    def zero(self) -> Value:
        """Value used for an absent optional variable without a default."""
        return {
            VariableType.STRING: "",
            VariableType.INT: 0,
            VariableType.BOOL: False,
            VariableType.LIST: (),
        }[self]

    def coerce(self, value: Any) -> Value:
        """Coerce *value* to this type.

        Raises:
            ValueError: If the value cannot be represented as this type.
        """
        if self is VariableType.STRING:
            if isinstance(value, str):
                return value
            if isinstance(value, int) and not isinstance(value, bool):
                return str(value)
        elif self is VariableType.INT:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            if isinstance(value, str) and _INT_RE.match(value.strip()):
                return int(value.strip())
        elif self is VariableType.BOOL:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
        elif self is VariableType.LIST:
            if isinstance(value, str):
                return tuple(part.strip() for part in value.split(",") if part.strip())
            if isinstance(value, (list, tuple)) and all(
                isinstance(item, (str, int)) and not isinstance(item, bool) for item in value
            ):
                return tuple(str(item) for item in value)
        raise ValueError(f"cannot convert {value!r} to {self.value}")


def _as_text(value: Any) -> Any:
    """YAML reads unquoted versions such as 1.0 as numbers."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def is_empty(value: Any) -> bool:
    """True for values that count as "not supplied" for required variables."""
    return value is None or value == "" or value == ()


# ---------------------------------------------------------------------------
# Manifest parts
# ---------------------------------------------------------------------------

class VariableDef(BaseModel):
    """A configurable variable declared by a blueprint."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Variable name, unique within a blueprint")
    type: VariableType = Field(default=VariableType.STRING, description="Declared value type")
    description: str = Field(default="", description="Prompt text shown by front-ends")
    required: bool = Field(default=False)
    default: Optional[Any] = Field(default=None, description="Default value; None means no default")
    choices: tuple[Any, ...] = Field(default=(), description="Closed set of allowed values")
    validation: Optional[str] = Field(default=None, description="Regex a string value must match")

    @model_validator(mode="after")
    def check_default(self) -> "VariableDef":
        if self.validation:
            try:
                re.compile(self.validation)
            except re.error as exc:
                raise ValueError(f"variable {self.name!r}: invalid validation regex: {exc}") from exc
        choices = self.choice_values()
        default = self.default_value()
        if default is None:
            return self
        if choices and not is_empty(default) and default not in choices:
            raise ValueError(
                f"variable {self.name!r}: default {default!r} is not one of {list(choices)}"
            )
        if self.validation and isinstance(default, str) and default != "":
            if not re.search(self.validation, default):
                raise ValueError(
                    f"variable {self.name!r}: default {default!r} does not match {self.validation!r}"
                )
        return self

    def default_value(self) -> Optional[Value]:
        """The default coerced to the declared type, or ``None``."""
        if self.default is None:
            return None
        try:
            return self.type.coerce(self.default)
        except ValueError as exc:
            raise ValueError(f"variable {self.name!r}: default {exc}") from exc

    def choice_values(self) -> tuple[Value, ...]:
        """The choices coerced to the declared type."""
        try:
            return tuple(self.type.coerce(choice) for choice in self.choices)
        except ValueError as exc:
            raise ValueError(f"variable {self.name!r}: choice {exc}") from exc


class FileEntry(BaseModel):
    """A file a blueprint may generate."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(default="", description="Template path relative to the blueprint root")
    destination: str = Field(..., description="Destination path template")
    condition: str = Field(default="", description="Gating expression; empty means always")
    content: Optional[str] = Field(default=None, description="Inline template text, overrides source")
    executable: bool = Field(default=False, description="Write with the executable file mode")


class DependencyEntry(BaseModel):
    """An external module the generated project depends on."""

    model_config = ConfigDict(frozen=True)

    module: str = Field(..., min_length=1)
    version: str = Field(default="")
    condition: str = Field(default="")

    @field_validator("version", mode="before")
    @classmethod
    def version_as_text(cls, value: Any) -> Any:
        return _as_text(value)


class PostHook(BaseModel):
    """A command to run in the output directory after generation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="")
    command: str = Field(..., min_length=1)
    args: tuple[str, ...] = Field(default=())
    work_dir: str = Field(default="")
    condition: str = Field(default="")


class BlueprintManifest(BaseModel):
    """A complete, validated blueprint definition."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Registry key")
    name: str = Field(default="")
    description: str = Field(default="")
    type: str = Field(default="")
    architecture: str = Field(default="")
    version: str = Field(default="")
    author: str = Field(default="")
    license: str = Field(default="")
    variables: tuple[VariableDef, ...] = Field(default=())
    files: tuple[FileEntry, ...] = Field(default=())
    dependencies: tuple[DependencyEntry, ...] = Field(default=())
    post_hooks: tuple[PostHook, ...] = Field(default=())
    metadata: dict[str, Any] = Field(default_factory=dict)
    root: Optional[Path] = Field(default=None, description="Directory source paths resolve against")

    @field_validator("version", mode="before")
    @classmethod
    def version_as_text(cls, value: Any) -> Any:
        return _as_text(value)

    def variable(self, name: str) -> Optional[VariableDef]:
        """Return the declaration for *name*, if any."""
        for var in self.variables:
            if var.name == name:
                return var
        return None


# ---------------------------------------------------------------------------
# Generation results
# ---------------------------------------------------------------------------

class GenerationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class GeneratedFile(BaseModel):
    """A file committed to the output directory."""
    destination: str = Field(..., description="Path relative to the output directory")
    size: int = Field(default=0, ge=0, description="Bytes written")


class PlannedFile(BaseModel):
    """A rendered file that has not been written (dry run)."""
    destination: str
    content: str
    executable: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


class ProgressEvent(BaseModel):
    """Emitted once per file entry while materializing."""
    index: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    destination: str = Field(default="", description="Rendered destination; empty when skipped")
    action: str = Field(..., description="'written' or 'skipped'")


class GenerationResult(BaseModel):
    """Outcome of one generation request.

    On failure ``files`` still lists everything committed before the error, so
    callers can report exactly how far generation got.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    blueprint_id: str = Field(default="")
    output_dir: str = Field(default="")
    status: GenerationStatus = Field(default=GenerationStatus.SUCCESS)
    reason: str = Field(default="")
    error_kind: Optional[ErrorKind] = Field(default=None)
    files: list[GeneratedFile] = Field(default_factory=list)
    dependencies: list[DependencyEntry] = Field(default_factory=list)
    post_hooks: list[PostHook] = Field(default_factory=list)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    error: Optional[BlueprintError] = Field(default=None, exclude=True, repr=False)

    @computed_field  # type: ignore[misc]
    @property
    def succeeded(self) -> bool:
        return self.status is GenerationStatus.SUCCESS

    @property
    def destinations(self) -> list[str]:
        """Committed destinations in write order."""
        return [f.destination for f in self.files]

    def fail(self, error: BlueprintError) -> "GenerationResult":
        """Mark this result failed with *error* and return it."""
        self.status = GenerationStatus.FAILED
        self.error = error
        self.error_kind = error.kind
        self.reason = str(error)
        return self

    def raise_for_status(self) -> None:
        """Re-raise the stored error when generation failed."""
        if self.error is not None:
            raise self.error
