"""Shared pytest fixtures for the blueprint engine test suite.

Provides reusable fixtures for:
- The on-disk fixture blueprints under ``tests/fixtures/blueprints``
- In-memory manifest construction
- Registries and generators wired to either of the above
- Output directories
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from blueprint_engine.config import EngineConfig
from blueprint_engine.models import BlueprintManifest
from blueprint_engine.registry import Registry
from blueprint_engine.scaffolder import BlueprintGenerator

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def blueprints_dir() -> Path:
    """Directory holding the fixture blueprints."""
    path = FIXTURES_DIR / "blueprints"
    assert path.is_dir(), f"Fixture blueprints not found at {path}"
    return path


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    """Output directory for a generation (not created up front)."""
    return tmp_path / "out"


@pytest.fixture
def cli_variables() -> dict[str, Any]:
    """Minimal valid input for the ``cli-simple`` fixture blueprint."""
    return {"ProjectName": "my-cli", "ModulePath": "example.com/my-cli"}


# ---------------------------------------------------------------------------
# Manifests, registries, generators
# ---------------------------------------------------------------------------

@pytest.fixture
def make_manifest() -> Callable[..., BlueprintManifest]:
    """Factory for in-memory manifests.

    Usage::

        manifest = make_manifest(
            variables=[{"name": "Name", "required": True}],
            files=[{"destination": "{{.Name}}/main.go", "content": "package main\\n"}],
        )
    """

    def _make(**fields: Any) -> BlueprintManifest:
        fields.setdefault("id", "test")
        fields.setdefault("name", "test")
        fields.setdefault("type", "test")
        return BlueprintManifest.model_validate(fields)

    return _make


@pytest.fixture
def registry(blueprints_dir: Path) -> Registry:
    """Registry loaded from the fixture blueprints."""
    return Registry.from_directory(blueprints_dir)


@pytest.fixture
def generator(registry: Registry) -> BlueprintGenerator:
    """Generator over the fixture blueprints with default configuration."""
    return BlueprintGenerator(registry)


@pytest.fixture
def generator_for() -> Callable[..., BlueprintGenerator]:
    """Build a generator around ad-hoc manifests."""

    def _make(*manifests: BlueprintManifest, config: EngineConfig | None = None) -> BlueprintGenerator:
        return BlueprintGenerator(Registry(manifests), config)

    return _make


def tree_snapshot(root: Path) -> dict[str, bytes]:
    """Map every file under *root* (relative POSIX path) to its bytes."""
    if not root.exists():
        return {}
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def snapshot() -> Callable[[Path], dict[str, bytes]]:
    return tree_snapshot
