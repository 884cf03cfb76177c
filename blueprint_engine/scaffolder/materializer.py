"""File tree materialization.

Walks a blueprint's file entries in declaration order, gates each on its
condition, renders its destination and content, and commits it to the output
directory with a write-to-temp-then-rename so no partially written file is
ever observable.

Each file is atomic on its own; the tree as a whole is not.  When an entry
fails, iteration stops and the returned ``GenerationResult`` lists the files
already committed.  Rolling back (for example by deleting the output
directory) is left to the caller.

The materializer assumes it owns ``output_dir`` for the duration of a call;
hosts running generations concurrently must not point two of them at the same
directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any, Callable, Optional

from blueprint_engine.conditions import condition_holds
from blueprint_engine.errors import (
    BlueprintError,
    DestinationExistsError,
    PathTraversalRejectedError,
    WriteFailedError,
)
from blueprint_engine.models import FileEntry, GeneratedFile, GenerationResult, PlannedFile, ProgressEvent

from .templates import TemplateRenderer

ProgressCallback = Callable[[ProgressEvent], None]


def safe_relative_path(destination: str) -> str:
    """Normalise a rendered destination to a safe relative POSIX path.

    Raises:
        PathTraversalRejectedError: If the path is empty, absolute, or
            contains a ``..`` segment.
    """
    if "\x00" in destination:
        raise PathTraversalRejectedError(
            f"destination {destination!r} contains a NUL byte", destination=destination
        )
    normalized = destination.replace("\\", "/")
    if (
        PurePosixPath(normalized).is_absolute()
        or PureWindowsPath(destination).drive
        or normalized.startswith("/")
    ):
        raise PathTraversalRejectedError(
            f"destination {destination!r} is absolute", destination=destination
        )
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if ".." in parts:
        raise PathTraversalRejectedError(
            f"destination {destination!r} contains '..'", destination=destination
        )
    if not parts:
        raise PathTraversalRejectedError(
            f"destination {destination!r} renders to an empty path", destination=destination
        )
    return "/".join(parts)


class Materializer:
    """Renders and writes file entries into an output directory."""

    def __init__(
        self,
        renderer: Optional[TemplateRenderer] = None,
        *,
        file_mode: int = 0o644,
        executable_mode: int = 0o755,
        temp_prefix: str = ".bp-",
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.file_mode = file_mode
        self.executable_mode = executable_mode
        self.temp_prefix = temp_prefix

    # -- Public API --------------------------------------------------------

    async def materialize(
        self,
        files: Iterable[FileEntry],
        ctx: Mapping[str, Any],
        output_dir: str | Path,
        *,
        source_root: Optional[Path] = None,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """Materialize *files* into *output_dir*.

        Args:
            files: Entries in manifest order.
            ctx: Resolved variables.
            output_dir: Directory the destinations are relative to.
            source_root: Directory ``FileEntry.source`` paths resolve against.
            force: Replace existing files instead of failing.
            on_progress: Called once per entry with a ``ProgressEvent``.

        Returns:
            A successful result, or a failed one holding the files committed
            before the first error.
        """
        out = Path(output_dir)
        result = GenerationResult(output_dir=str(out))
        entries = list(files)
        total = len(entries)

        for index, entry in enumerate(entries):
            try:
                planned = self._render_entry(entry, ctx, source_root)
                if planned is None:
                    _notify(on_progress, ProgressEvent(index=index, total=total, action="skipped"))
                    continue

                target = self._target(out, planned.destination)
                if not force and (target.exists() or target.is_symlink()):
                    raise DestinationExistsError(
                        f"{planned.destination!r} already exists in {out}",
                        destination=planned.destination,
                    )
                mode = self.executable_mode if planned.executable else self.file_mode
                size = await asyncio.to_thread(self._write_atomic, target, planned.content, mode)
            except BlueprintError as exc:
                return result.fail(exc)

            result.files.append(GeneratedFile(destination=planned.destination, size=size))
            _notify(
                on_progress,
                ProgressEvent(
                    index=index, total=total, destination=planned.destination, action="written"
                ),
            )

        return result

    def plan(
        self,
        files: Iterable[FileEntry],
        ctx: Mapping[str, Any],
        *,
        source_root: Optional[Path] = None,
    ) -> list[PlannedFile]:
        """Render every selected entry in memory without touching disk."""
        planned: list[PlannedFile] = []
        for entry in files:
            rendered = self._render_entry(entry, ctx, source_root)
            if rendered is not None:
                planned.append(rendered)
        return planned

    # -- Internals ---------------------------------------------------------

    def _render_entry(
        self, entry: FileEntry, ctx: Mapping[str, Any], source_root: Optional[Path]
    ) -> Optional[PlannedFile]:
        if not condition_holds(entry.condition, ctx):
            return None
        destination = safe_relative_path(self.renderer.render_path(entry.destination, ctx))
        template_text = self.renderer.load_source(entry, source_root)
        content = self.renderer.render(template_text, ctx)
        return PlannedFile(destination=destination, content=content, executable=entry.executable)

    def _target(self, out: Path, destination: str) -> Path:
        target = out / destination
        # A symlinked directory inside the tree must not lead outside it.
        root = out.resolve()
        if not target.resolve().is_relative_to(root):
            raise PathTraversalRejectedError(
                f"destination {destination!r} resolves outside {out}", destination=destination
            )
        return target

    def _write_atomic(self, target: Path, content: str, mode: int) -> int:
        """Write *content* to *target* via a temp file in the same directory."""
        data = content.encode("utf-8")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f"{self.temp_prefix}{target.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.chmod(tmp_name, mode)
                os.replace(tmp_name, target)
            except BaseException:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise WriteFailedError(f"cannot write {target}: {exc}", destination=str(target)) from exc
        return len(data)


def _notify(callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
    if callback is not None:
        callback(event)
