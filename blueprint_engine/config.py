"""Blueprint engine configuration.

Centralised, typed configuration for the engine.  All settings use Pydantic
v2 models so they can be validated at construction time and serialised to/from
JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    """Global engine configuration.

    Instances are typically created once by the host (CLI or web front-end)
    and passed to :class:`~blueprint_engine.scaffolder.BlueprintGenerator`.
    """

    blueprints_dir: Path = Field(default=Path("./blueprints"), description="Root scanned for */template.yaml")
    output_dir: Path = Field(default=Path("./output"), description="Default parent for generated projects")
    overwrite: bool = Field(
        default=False, description="Replace existing files instead of failing with DestinationExists"
    )
    file_mode: int = Field(default=0o644, ge=0, le=0o777)
    executable_mode: int = Field(default=0o755, ge=0, le=0o777)
    temp_prefix: str = Field(default=".bp-", min_length=1, description="Prefix for in-flight temp files")
    verbose: bool = Field(default=False, description="Print per-file progress and a summary")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            BLUEPRINT_DIR, BLUEPRINT_OUTPUT_DIR, BLUEPRINT_OVERWRITE,
            BLUEPRINT_VERBOSE.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("BLUEPRINT_DIR"):
            kwargs["blueprints_dir"] = Path(os.environ["BLUEPRINT_DIR"])
        if os.environ.get("BLUEPRINT_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["BLUEPRINT_OUTPUT_DIR"])
        if os.environ.get("BLUEPRINT_OVERWRITE"):
            kwargs["overwrite"] = os.environ["BLUEPRINT_OVERWRITE"].strip().lower() in _TRUTHY
        if os.environ.get("BLUEPRINT_VERBOSE"):
            kwargs["verbose"] = os.environ["BLUEPRINT_VERBOSE"].strip().lower() in _TRUTHY
        return cls(**kwargs)
