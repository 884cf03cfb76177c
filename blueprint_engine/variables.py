"""Variable resolution: raw front-end input to a typed ``GenerationContext``.

Usage::

    from blueprint_engine.variables import resolve_variables

    ctx = resolve_variables(manifest.variables, {"ProjectName": "svc"})
    ctx["ProjectName"]  # -> "svc"
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Optional

from blueprint_engine.errors import (
    InvalidChoiceError,
    InvalidTypeError,
    MissingRequiredError,
    ValidationFailedError,
)
from blueprint_engine.models import RawValue, Value, VariableDef, VariableType, is_empty


class GenerationContext(Mapping[str, Value]):
    """Immutable mapping of variable name to resolved value.

    Built once per generation request and shared read-only by every later
    stage.  Values are ``str``, ``int``, ``bool`` or ``tuple[str, ...]``.
    """

    __slots__ = ("_values", "_types")

    def __init__(
        self,
        values: Optional[Mapping[str, Value]] = None,
        types: Optional[Mapping[str, VariableType]] = None,
    ) -> None:
        frozen: dict[str, Value] = {}
        for name, value in (values or {}).items():
            frozen[name] = tuple(value) if isinstance(value, list) else value
        self._values = MappingProxyType(frozen)
        self._types = MappingProxyType(dict(types or {}))

    def __getitem__(self, name: str) -> Value:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"GenerationContext({dict(self._values)!r})"

    def type_of(self, name: str) -> Optional[VariableType]:
        """Declared type of *name*, when the context was built by the resolver."""
        return self._types.get(name)

    def as_dict(self) -> dict[str, Value]:
        """Plain ``dict`` copy of the values."""
        return dict(self._values)


def resolve_variables(
    variables: Iterable[VariableDef],
    raw_input: Optional[Mapping[str, RawValue]] = None,
) -> GenerationContext:
    """Validate *raw_input* against *variables* and build a context.

    Input names that are not declared are ignored.

    Raises:
        InvalidTypeError: A supplied value cannot be coerced to its type.
        MissingRequiredError: A required variable has no non-empty value.
        InvalidChoiceError: A value is not one of the declared choices.
        ValidationFailedError: A string value does not match its regex.
    """
    raw_input = raw_input or {}
    values: dict[str, Value] = {}
    types: dict[str, VariableType] = {}

    for var in variables:
        values[var.name] = resolve_variable(var, raw_input)
        types[var.name] = var.type

    return GenerationContext(values, types)


def resolve_variable(var: VariableDef, raw_input: Mapping[str, Any]) -> Value:
    """Resolve a single declaration against *raw_input*."""
    supplied = var.name in raw_input and raw_input[var.name] is not None

    if supplied:
        try:
            value = var.type.coerce(raw_input[var.name])
        except ValueError as exc:
            raise InvalidTypeError(
                f"variable {var.name!r} expects {var.type.value}: {exc}",
                variable=var.name,
            ) from exc
    else:
        value = var.default_value()

    if var.required and is_empty(value):
        raise MissingRequiredError(
            f"variable {var.name!r} is required", variable=var.name
        )

    if is_empty(value):
        # Optional and empty: not checked against choices or validation.
        return var.type.zero() if value is None else value

    choices = var.choice_values()
    if choices and value not in choices:
        raise InvalidChoiceError(
            f"variable {var.name!r}: {value!r} is not one of {list(choices)}",
            variable=var.name,
            value=value,
        )

    if var.validation and var.type is VariableType.STRING:
        if not re.search(var.validation, value):  # type: ignore[arg-type]
            raise ValidationFailedError(
                f"variable {var.name!r}: {value!r} does not match {var.validation!r}",
                variable=var.name,
                value=value,
            )

    return value
