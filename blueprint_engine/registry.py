"""Blueprint manifest loading and lookup.

A manifest is a ``template.yaml`` (or ``.yml`` / ``.json``) describing a
blueprint's variables, files, dependencies and post-hooks.  Loading validates
everything that can be checked without user input; problems that depend on
the variable values (unknown variables in conditions, for instance) surface
at generation time.

Usage::

    from blueprint_engine.registry import Registry

    registry = Registry.from_directory("blueprints")
    manifest = registry.get("cli-simple")
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from blueprint_engine.conditions import parse_condition
from blueprint_engine.config import EngineConfig
from blueprint_engine.errors import (
    BlueprintNotFoundError,
    MalformedExpressionError,
    ManifestInvalidError,
    TemplateSyntaxError,
)
from blueprint_engine.models import BlueprintManifest
from blueprint_engine.scaffolder.templates import TemplateRenderer
from blueprint_engine.utils import load_document

MANIFEST_NAMES = ("template.yaml", "template.yml", "template.json")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _find_manifest(path: Path) -> Path:
    if path.is_dir():
        for name in MANIFEST_NAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise ManifestInvalidError(f"no template.yaml in {path}", path=str(path))
    if not path.is_file():
        raise ManifestInvalidError(f"manifest not found: {path}", path=str(path))
    return path


def _derive_id(data: dict[str, Any], directory: Path) -> str:
    """Mirror the historical id scheme: ``<type>-<architecture>`` or ``<type>``."""
    blueprint_type = str(data.get("type") or "")
    architecture = str(data.get("architecture") or "")
    if blueprint_type and architecture and architecture != "standard":
        return f"{blueprint_type}-{architecture}"
    return blueprint_type or directory.name


def load_manifest(path: str | Path) -> BlueprintManifest:
    """Load and validate a blueprint manifest.

    Args:
        path: A manifest file, or a directory containing ``template.yaml``.

    Raises:
        ManifestInvalidError: If the manifest cannot be read, parsed or
            validated.
    """
    manifest_path = _find_manifest(Path(path))
    try:
        data = load_document(manifest_path)
    except (OSError, ValueError) as exc:
        raise ManifestInvalidError(f"cannot read manifest {manifest_path}: {exc}", path=str(manifest_path)) from exc

    # None values in YAML ("post_hooks:" with nothing under it) mean "empty".
    data = {key: value for key, value in data.items() if value is not None}
    data.setdefault("id", _derive_id(data, manifest_path.parent))
    data["root"] = manifest_path.parent

    try:
        manifest = BlueprintManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestInvalidError(
            f"invalid manifest {manifest_path}: {exc}", path=str(manifest_path)
        ) from exc

    validate_manifest(manifest)
    return manifest


def validate_manifest(manifest: BlueprintManifest, renderer: TemplateRenderer | None = None) -> None:
    """Check a manifest's internal consistency.

    * variable names are unique
    * every condition parses
    * every destination is non-empty and syntactically valid
    * every ``source`` exists under the manifest root

    Raises:
        ManifestInvalidError: On the first problem found.
    """
    renderer = renderer or TemplateRenderer()
    label = manifest.id or manifest.name or "<unnamed>"

    seen: set[str] = set()
    for var in manifest.variables:
        if var.name in seen:
            raise ManifestInvalidError(
                f"blueprint {label!r}: duplicate variable {var.name!r}", variable=var.name
            )
        seen.add(var.name)

    conditions = (
        [(f"file {f.destination!r}", f.condition) for f in manifest.files]
        + [(f"dependency {d.module!r}", d.condition) for d in manifest.dependencies]
        + [(f"post-hook {h.name or h.command!r}", h.condition) for h in manifest.post_hooks]
    )
    for owner, condition in conditions:
        if not condition.strip():
            continue
        try:
            parse_condition(condition)
        except MalformedExpressionError as exc:
            raise ManifestInvalidError(
                f"blueprint {label!r}: {owner} has a malformed condition: {exc.message}",
                condition=condition,
            ) from exc

    for entry in manifest.files:
        if not entry.destination.strip():
            raise ManifestInvalidError(
                f"blueprint {label!r}: file {entry.source!r} has an empty destination",
                source=entry.source,
            )
        try:
            renderer.check_syntax(entry.destination)
        except TemplateSyntaxError as exc:
            raise ManifestInvalidError(
                f"blueprint {label!r}: destination {entry.destination!r}: {exc.message}",
                destination=entry.destination,
            ) from exc
        if entry.content is None and entry.source and manifest.root is not None:
            if not (manifest.root / entry.source).is_file():
                raise ManifestInvalidError(
                    f"blueprint {label!r}: source {entry.source!r} not found under {manifest.root}",
                    source=entry.source,
                )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class Registry:
    """Read-only collection of loaded blueprints.

    Contents are fixed at construction, so concurrent ``get``/``list`` calls
    need no locking.
    """

    def __init__(self, manifests: Iterable[BlueprintManifest] = ()) -> None:
        by_id: dict[str, BlueprintManifest] = {}
        for manifest in manifests:
            if not manifest.id:
                raise ManifestInvalidError(f"blueprint {manifest.name!r} has no id")
            if manifest.id in by_id:
                raise ManifestInvalidError(f"duplicate blueprint id {manifest.id!r}", id=manifest.id)
            by_id[manifest.id] = manifest
        self._manifests = MappingProxyType(by_id)

    load = staticmethod(load_manifest)

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path]) -> "Registry":
        """Load one manifest per path."""
        return cls(load_manifest(p) for p in paths)

    @classmethod
    def from_directory(cls, root: str | Path) -> "Registry":
        """Load every ``<root>/<name>/template.yaml`` (sorted by directory name)."""
        root_path = Path(root)
        if not root_path.is_dir():
            raise ManifestInvalidError(f"blueprint directory not found: {root_path}", path=str(root_path))
        directories = [
            child for child in sorted(root_path.iterdir())
            if child.is_dir() and any((child / name).is_file() for name in MANIFEST_NAMES)
        ]
        return cls.from_paths(directories)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "Registry":
        """Load every blueprint under ``config.blueprints_dir``."""
        return cls.from_directory(config.blueprints_dir)

    def get(self, blueprint_id: str) -> BlueprintManifest:
        """Return the manifest registered under *blueprint_id*.

        Raises:
            BlueprintNotFoundError: If no such blueprint exists.
        """
        try:
            return self._manifests[blueprint_id]
        except KeyError:
            raise BlueprintNotFoundError(
                f"blueprint {blueprint_id!r} not found", id=blueprint_id
            ) from None

    def list(self) -> list[BlueprintManifest]:
        """All manifests, sorted by type then id."""
        return sorted(self._manifests.values(), key=lambda m: (m.type, m.id))

    def exists(self, blueprint_id: str) -> bool:
        return blueprint_id in self._manifests

    def types(self) -> list[str]:
        """Distinct blueprint types, sorted."""
        return sorted({m.type for m in self._manifests.values()})

    def by_type(self, blueprint_type: str) -> list[BlueprintManifest]:
        return [m for m in self.list() if m.type == blueprint_type]

    def __len__(self) -> int:
        return len(self._manifests)

    def __contains__(self, blueprint_id: object) -> bool:
        return blueprint_id in self._manifests
