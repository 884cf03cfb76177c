"""Shared utility functions for the blueprint engine.

Provides structured-document loading (YAML/JSON), the string helpers behind
the template pipeline functions, duration formatting, and Rich-based console
reporting.  Nothing here touches the network or spawns processes.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from blueprint_engine.models import GenerationResult

console = Console()

# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def to_text(value: Any) -> str:
    """Render a context value as template output.

    Booleans print as ``true``/``false`` and lists as comma-separated items,
    independent of Python's ``repr`` conventions.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(to_text(item) for item in value)
    return str(value)


def slugify(value: str) -> str:
    """Convert a string to a URL/filename-safe slug.

    Examples::

        slugify("User Authentication") -> "user-authentication"
        slugify("  2FA (TOTP)  ") -> "2fa-totp"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def pascal_case(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def snake_case(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def camel_case(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


# ---------------------------------------------------------------------------
# Structured document I/O
# ---------------------------------------------------------------------------


def load_document(path: str | Path) -> dict[str, Any]:
    """Load a YAML or JSON mapping from *path*.

    ``.json`` files are parsed as JSON, everything else as YAML.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not parse or is not a mapping.
    """
    file_path = Path(path)
    raw = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"{file_path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"{file_path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.0042) -> "4ms"
        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
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


def format_size(size: int) -> str:
    """Format a byte count: ``512 B``, ``1.5 KB``, ``2.0 MB``."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


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
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_generation_result(result: "GenerationResult") -> None:
    """Print the files, dependencies and hooks of a generation run."""
    if result.files:
        files = Table(title="Generated files", show_header=True, header_style="bold cyan")
        files.add_column("Destination")
        files.add_column("Size", justify="right", style="dim")
        for generated in result.files:
            files.add_row(escape(generated.destination), format_size(generated.size))
        console.print(files)

    print_summary_table(
        {
            "Blueprint": result.blueprint_id,
            "Output": result.output_dir,
            "Files": str(len(result.files)),
            "Dependencies": ", ".join(
                f"{d.module}@{d.version}" if d.version else d.module for d in result.dependencies
            ) or "-",
            "Post-hooks": ", ".join(h.name or h.command for h in result.post_hooks) or "-",
            "Duration": format_duration(result.duration_seconds),
        },
        title="Generation summary",
    )

    if result.succeeded:
        print_success(f"Generated {len(result.files)} file(s) into {result.output_dir}")
    else:
        print_error(f"Generation failed: {escape(result.reason)}")
