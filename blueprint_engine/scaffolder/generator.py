"""Main generation orchestrator.

Takes a blueprint id and raw variable values, and drives a single generation:
registry lookup, variable resolution, dependency/post-hook selection and file
materialization, producing a ``GenerationResult``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.markup import escape

from blueprint_engine.config import EngineConfig
from blueprint_engine.errors import BlueprintError
from blueprint_engine.models import GenerationResult, PlannedFile, ProgressEvent, RawValue
from blueprint_engine.utils import console, print_generation_result
from blueprint_engine.variables import resolve_variables

from .materializer import Materializer, ProgressCallback
from .selection import select_dependencies, select_post_hooks
from .templates import TemplateRenderer

if TYPE_CHECKING:
    from blueprint_engine.registry import Registry


class BlueprintGenerator:
    """Generates projects from the blueprints in a ``Registry``.

    A generator holds no per-request state, so one instance may serve many
    concurrent ``generate`` calls as long as each targets its own output
    directory.
    """

    def __init__(self, registry: Registry, config: Optional[EngineConfig] = None) -> None:
        self.registry = registry
        self.config = config or EngineConfig()
        self.renderer = TemplateRenderer()
        self.materializer = Materializer(
            self.renderer,
            file_mode=self.config.file_mode,
            executable_mode=self.config.executable_mode,
            temp_prefix=self.config.temp_prefix,
        )

    # -- Public API --------------------------------------------------------

    async def generate(
        self,
        blueprint_id: str,
        variables: Optional[Mapping[str, RawValue]] = None,
        output_dir: str | Path | None = None,
        *,
        force: Optional[bool] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """Generate *blueprint_id* into *output_dir*.

        Engine errors never propagate from here: a failure is reported as a
        result with ``status == "failed"``.  Call
        :meth:`GenerationResult.raise_for_status` to turn it into an exception.

        Args:
            blueprint_id: Registry id of the blueprint.
            variables: Raw values keyed by variable name.
            output_dir: Target directory; defaults to ``config.output_dir``.
            force: Overwrite existing files; defaults to ``config.overwrite``.
            on_progress: Called once per file entry.
        """
        started = time.monotonic()
        out = Path(output_dir) if output_dir is not None else self.config.output_dir
        overwrite = self.config.overwrite if force is None else force
        result = GenerationResult(blueprint_id=blueprint_id, output_dir=str(out))

        try:
            manifest = self.registry.get(blueprint_id)
            ctx = resolve_variables(manifest.variables, variables)
            # Selected before any write so a bad condition leaves no partial tree.
            dependencies = select_dependencies(manifest.dependencies, ctx)
            post_hooks = select_post_hooks(manifest.post_hooks, ctx)
        except BlueprintError as exc:
            result.fail(exc)
            return self._finish(result, started)

        materialized = await self.materializer.materialize(
            manifest.files,
            ctx,
            out,
            source_root=manifest.root,
            force=overwrite,
            on_progress=self._progress(on_progress),
        )
        result.files = materialized.files
        if materialized.error is not None:
            result.fail(materialized.error)
        else:
            result.dependencies = dependencies
            result.post_hooks = post_hooks
        return self._finish(result, started)

    def preview(
        self,
        blueprint_id: str,
        variables: Optional[Mapping[str, RawValue]] = None,
    ) -> list[PlannedFile]:
        """Render a blueprint in memory without writing anything.

        Raises:
            BlueprintError: On the first resolution or rendering error.
        """
        manifest = self.registry.get(blueprint_id)
        ctx = resolve_variables(manifest.variables, variables)
        return self.materializer.plan(manifest.files, ctx, source_root=manifest.root)

    # -- Helpers -----------------------------------------------------------

    def _progress(self, callback: Optional[ProgressCallback]) -> Optional[ProgressCallback]:
        if not self.config.verbose:
            return callback

        def _report(event: ProgressEvent) -> None:
            if event.action == "written":
                console.print(f"  [green]+[/green] {escape(event.destination)}")
            if callback is not None:
                callback(event)

        return _report

    def _finish(self, result: GenerationResult, started: float) -> GenerationResult:
        result.duration_seconds = time.monotonic() - started
        if self.config.verbose:
            print_generation_result(result)
        return result
