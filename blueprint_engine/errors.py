"""Error taxonomy for the blueprint engine.

Every failure the engine reports is a :class:`BlueprintError` carrying an
:class:`ErrorKind`.  Each stage raises the first error it meets; none of these
errors are transient, so callers should surface them rather than retry.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable identifiers for every error the engine can report."""

    # Variable resolver
    MISSING_REQUIRED = "MissingRequired"
    INVALID_TYPE = "InvalidType"
    INVALID_CHOICE = "InvalidChoice"
    VALIDATION_FAILED = "ValidationFailed"
    # Condition evaluator
    UNKNOWN_VARIABLE = "UnknownVariable"
    MALFORMED_EXPRESSION = "MalformedExpression"
    # Template renderer
    UNDEFINED_VARIABLE = "UndefinedVariable"
    TEMPLATE_SYNTAX_ERROR = "TemplateSyntaxError"
    # Materializer
    PATH_TRAVERSAL_REJECTED = "PathTraversalRejected"
    DESTINATION_EXISTS = "DestinationExists"
    WRITE_FAILED = "WriteFailed"
    # Registry
    MANIFEST_INVALID = "ManifestInvalid"
    BLUEPRINT_NOT_FOUND = "BlueprintNotFound"


class BlueprintError(Exception):
    """Base class for all engine errors.

    Attributes:
        kind: The error kind.
        message: Human-readable description.
        detail: Extra context (variable name, destination, condition, ...).
    """

    kind: ErrorKind = ErrorKind.MANIFEST_INVALID

    def __init__(self, message: str, **detail: Any) -> None:
        self.message = message
        self.detail = detail
        super().__init__(f"[{self.kind.value}] {message}")


class MissingRequiredError(BlueprintError):
    kind = ErrorKind.MISSING_REQUIRED


class InvalidTypeError(BlueprintError):
    kind = ErrorKind.INVALID_TYPE


class InvalidChoiceError(BlueprintError):
    kind = ErrorKind.INVALID_CHOICE


class ValidationFailedError(BlueprintError):
    kind = ErrorKind.VALIDATION_FAILED


class UnknownVariableError(BlueprintError):
    kind = ErrorKind.UNKNOWN_VARIABLE


class MalformedExpressionError(BlueprintError):
    kind = ErrorKind.MALFORMED_EXPRESSION


class UndefinedVariableError(BlueprintError):
    kind = ErrorKind.UNDEFINED_VARIABLE


class TemplateSyntaxError(BlueprintError):
    """Raised for malformed template text.

    ``line`` is 1-based; ``snippet`` is the offending action text.
    """

    kind = ErrorKind.TEMPLATE_SYNTAX_ERROR

    def __init__(self, message: str, *, line: int = 0, snippet: str = "", **detail: Any) -> None:
        self.line = line
        self.snippet = snippet
        if line:
            message = f"line {line}: {message}"
        if snippet:
            message = f"{message} (near {snippet!r})"
        super().__init__(message, line=line, snippet=snippet, **detail)


class PathTraversalRejectedError(BlueprintError):
    kind = ErrorKind.PATH_TRAVERSAL_REJECTED


class DestinationExistsError(BlueprintError):
    kind = ErrorKind.DESTINATION_EXISTS


class WriteFailedError(BlueprintError):
    kind = ErrorKind.WRITE_FAILED


class ManifestInvalidError(BlueprintError):
    kind = ErrorKind.MANIFEST_INVALID


class BlueprintNotFoundError(BlueprintError):
    kind = ErrorKind.BLUEPRINT_NOT_FOUND
