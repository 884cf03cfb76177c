"""Dependency and post-hook selection.

Filters a blueprint's declared dependencies and post-generation hooks by
their conditions.  Declaration order is preserved and duplicates are kept as
declared.  Nothing here installs packages or runs commands; callers hand the
selected entries to a package manager integration or a hook runner.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, TypeVar

from blueprint_engine.conditions import condition_holds
from blueprint_engine.models import DependencyEntry, PostHook


class _Conditional(Protocol):
    condition: str


T = TypeVar("T", bound=_Conditional)


def select_entries(entries: Iterable[T], ctx: Mapping[str, Any]) -> list[T]:
    """Return the entries whose condition holds, in declaration order."""
    return [entry for entry in entries if condition_holds(entry.condition, ctx)]


def select_dependencies(
    entries: Iterable[DependencyEntry], ctx: Mapping[str, Any]
) -> list[DependencyEntry]:
    """Dependencies that apply to *ctx*."""
    return select_entries(entries, ctx)


def select_post_hooks(hooks: Iterable[PostHook], ctx: Mapping[str, Any]) -> list[PostHook]:
    """Post-generation hooks that apply to *ctx*."""
    return select_entries(hooks, ctx)
