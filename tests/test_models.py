"""Unit tests for the manifest and result models (blueprint_engine.models).

Tests cover:
- VariableType coercion and zero values
- VariableDef invariants (default vs choices / validation / type)
- Manifest immutability and YAML-ish input normalisation
- GenerationResult failure bookkeeping and raise_for_status
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from blueprint_engine.errors import ErrorKind, MissingRequiredError
from blueprint_engine.models import (
    BlueprintManifest,
    DependencyEntry,
    GenerationResult,
    GenerationStatus,
    PlannedFile,
    VariableDef,
    VariableType,
)

pytestmark = pytest.mark.unit


class TestVariableTypeCoerce:
    @pytest.mark.parametrize(
        ("var_type", "raw", "expected"),
        [
            (VariableType.STRING, "abc", "abc"),
            (VariableType.STRING, 42, "42"),
            (VariableType.INT, 7, 7),
            (VariableType.INT, " -12 ", -12),
            (VariableType.BOOL, True, True),
            (VariableType.BOOL, "Yes", True),
            (VariableType.BOOL, "off", False),
            (VariableType.LIST, ["a", "b"], ("a", "b")),
            (VariableType.LIST, "a, b,,c", ("a", "b", "c")),
        ],
    )
    def test_accepts(self, var_type, raw, expected):
        assert var_type.coerce(raw) == expected

    @pytest.mark.parametrize(
        ("var_type", "raw"),
        [
            (VariableType.STRING, True),
            (VariableType.STRING, ["a"]),
            (VariableType.INT, True),
            (VariableType.INT, "12a"),
            (VariableType.INT, 1.5),
            (VariableType.BOOL, 1),
            (VariableType.BOOL, "maybe"),
            (VariableType.LIST, 3),
        ],
    )
    def test_rejects(self, var_type, raw):
        with pytest.raises(ValueError):
            var_type.coerce(raw)

    def test_zero_values(self):
        assert VariableType.STRING.zero() == ""
        assert VariableType.INT.zero() == 0
        assert VariableType.BOOL.zero() is False
        assert VariableType.LIST.zero() == ()


class TestVariableDef:
    def test_defaults(self):
        var = VariableDef(name="Name")
        assert var.type is VariableType.STRING
        assert var.required is False
        assert var.default_value() is None

    def test_default_coerced(self):
        var = VariableDef(name="Port", type="int", default="8080")
        assert var.default_value() == 8080

    def test_default_must_be_in_choices(self):
        with pytest.raises(ValidationError, match="not one of"):
            VariableDef(name="Logger", default="glog", choices=["slog", "zap"])

    def test_default_in_choices_accepted(self):
        var = VariableDef(name="Logger", default="zap", choices=["slog", "zap"])
        assert var.choice_values() == ("slog", "zap")

    def test_default_must_match_validation(self):
        with pytest.raises(ValidationError, match="does not match"):
            VariableDef(name="Name", default="has space", validation=r"^\S+$")

    def test_default_of_wrong_type_rejected(self):
        with pytest.raises(ValidationError):
            VariableDef(name="Flag", type="bool", default="sometimes")

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError, match="invalid validation regex"):
            VariableDef(name="Name", validation="([")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            VariableDef(name="Name", type="float")

    def test_frozen(self):
        var = VariableDef(name="Name")
        with pytest.raises(ValidationError):
            var.required = True


class TestBlueprintManifest:
    def test_numeric_version_becomes_text(self):
        manifest = BlueprintManifest(id="x", version=1.0)
        assert manifest.version == "1.0"

    def test_lists_become_tuples(self):
        manifest = BlueprintManifest.model_validate(
            {"id": "x", "files": [{"destination": "a.txt"}]}
        )
        assert isinstance(manifest.files, tuple)
        assert manifest.files[0].condition == ""

    def test_variable_lookup(self):
        manifest = BlueprintManifest(id="x", variables=[{"name": "A"}, {"name": "B"}])
        assert manifest.variable("B").name == "B"
        assert manifest.variable("C") is None

    def test_frozen(self):
        manifest = BlueprintManifest(id="x")
        with pytest.raises(ValidationError):
            manifest.id = "y"


class TestGenerationResult:
    def test_success_by_default(self):
        result = GenerationResult()
        assert result.status is GenerationStatus.SUCCESS
        assert result.succeeded is True
        result.raise_for_status()

    def test_fail_records_error(self):
        error = MissingRequiredError("variable 'Name' is required", variable="Name")
        result = GenerationResult().fail(error)
        assert result.status is GenerationStatus.FAILED
        assert result.error_kind is ErrorKind.MISSING_REQUIRED
        assert "Name" in result.reason
        with pytest.raises(MissingRequiredError):
            result.raise_for_status()

    def test_error_not_serialised(self):
        result = GenerationResult(dependencies=[DependencyEntry(module="m")])
        result.fail(MissingRequiredError("x"))
        dumped = result.model_dump(mode="json")
        assert "error" not in dumped
        assert dumped["status"] == "failed"
        assert dumped["error_kind"] == "MissingRequired"
        assert dumped["succeeded"] is False

    def test_planned_file_size_counts_bytes(self):
        assert PlannedFile(destination="a", content="é").size == 2
