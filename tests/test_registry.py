"""Unit tests for manifest loading and the blueprint registry (blueprint_engine.registry).

Tests cover:
- Loading the fixture manifests (YAML) and a JSON manifest
- Id derivation from type / architecture / directory name
- Manifest validation failures
- Registry lookup, listing and duplicate detection
- Building a registry from an ``EngineConfig``
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from blueprint_engine.config import EngineConfig
from blueprint_engine.errors import BlueprintNotFoundError, ManifestInvalidError
from blueprint_engine.models import VariableType
from blueprint_engine.registry import Registry, load_manifest, validate_manifest

pytestmark = pytest.mark.unit


def _write_blueprint(root: Path, name: str, manifest: str, **files: str) -> Path:
    directory = root / name
    directory.mkdir(parents=True)
    (directory / "template.yaml").write_text(manifest)
    for rel, content in files.items():
        (directory / rel).write_text(content)
    return directory


# ---------------------------------------------------------------------------
# load_manifest
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_fixture_blueprint(self, blueprints_dir: Path):
        manifest = load_manifest(blueprints_dir / "cli-simple")
        assert manifest.id == "cli-simple"
        assert manifest.type == "cli"
        assert manifest.version == "1.0"
        assert manifest.root == blueprints_dir / "cli-simple"
        assert [v.name for v in manifest.variables] == [
            "ProjectName", "ModulePath", "GoVersion", "Logger", "UseAuth", "Port", "Commands",
        ]
        assert manifest.variable("Commands").type is VariableType.LIST
        assert manifest.files[4].executable is True
        assert manifest.files[5].content == "# {{.ProjectName}}\n"
        assert [h.name for h in manifest.post_hooks] == ["clean_dependencies", "format_code"]
        assert manifest.post_hooks[0].args == ("mod", "tidy")

    def test_accepts_manifest_file_path(self, blueprints_dir: Path):
        manifest = load_manifest(blueprints_dir / "cli-simple" / "template.yaml")
        assert manifest.id == "cli-simple"

    def test_empty_sections_are_empty(self, blueprints_dir: Path):
        manifest = load_manifest(blueprints_dir / "library")
        assert manifest.id == "library"
        assert manifest.dependencies == ()
        assert manifest.post_hooks == ()

    def test_explicit_id_wins(self, tmp_path: Path):
        directory = _write_blueprint(tmp_path, "x", "id: custom\ntype: api\narchitecture: clean\n")
        assert load_manifest(directory).id == "custom"

    def test_id_falls_back_to_directory(self, tmp_path: Path):
        directory = _write_blueprint(tmp_path, "plain", "name: plain\n")
        assert load_manifest(directory).id == "plain"

    def test_json_manifest(self, tmp_path: Path):
        directory = tmp_path / "j"
        directory.mkdir()
        (directory / "template.json").write_text(json.dumps({"type": "web", "files": [{"destination": "a"}]}))
        manifest = load_manifest(directory)
        assert manifest.id == "web"
        assert manifest.files[0].destination == "a"

    def test_missing_manifest(self, tmp_path: Path):
        with pytest.raises(ManifestInvalidError, match="no template.yaml"):
            load_manifest(tmp_path)

    def test_missing_path(self, tmp_path: Path):
        with pytest.raises(ManifestInvalidError, match="not found"):
            load_manifest(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        ("manifest", "message"),
        [
            ("name: [unclosed\n", "cannot read manifest"),
            ("- a list\n", "cannot read manifest"),
            ("variables:\n  - type: string\n", "invalid manifest"),
            ("variables:\n  - name: A\n    type: float\n", "invalid manifest"),
            (
                "variables:\n  - name: A\n    default: c\n    choices: [a, b]\n",
                "not one of",
            ),
            ("variables:\n  - name: A\n  - name: A\n", "duplicate variable 'A'"),
            ("files:\n  - destination: a\n    condition: 'eq(.A)'\n", "malformed condition"),
            ("dependencies:\n  - module: m\n    condition: '.A'\n", "malformed condition"),
            ("post_hooks:\n  - command: go\n    condition: 'bogus'\n", "malformed condition"),
            ("files:\n  - destination: '  '\n", "empty destination"),
            ("files:\n  - destination: '{{if eq(.A, 1)}}x'\n", "unclosed block"),
            ("files:\n  - source: gone.tmpl\n    destination: a\n", "not found under"),
        ],
    )
    def test_invalid_manifests(self, tmp_path: Path, manifest: str, message: str):
        directory = _write_blueprint(tmp_path, "bad", manifest)
        with pytest.raises(ManifestInvalidError, match=message):
            load_manifest(directory)

    def test_validate_manifest_directly(self, make_manifest):
        validate_manifest(make_manifest(files=[{"destination": "{{.X}}.txt"}]))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_from_directory(self, registry: Registry):
        assert len(registry) == 2
        assert registry.exists("cli-simple")
        assert "library" in registry
        assert not registry.exists("nope")

    def test_get(self, registry: Registry):
        assert registry.get("library").name == "library-standard"

    def test_get_unknown(self, registry: Registry):
        with pytest.raises(BlueprintNotFoundError) as exc_info:
            registry.get("nope")
        assert exc_info.value.detail["id"] == "nope"

    def test_list_sorted_by_type_then_id(self, make_manifest):
        registry = Registry(
            [
                make_manifest(id="web-b", type="web"),
                make_manifest(id="api-z", type="api"),
                make_manifest(id="web-a", type="web"),
                make_manifest(id="api-a", type="api"),
            ]
        )
        assert [m.id for m in registry.list()] == ["api-a", "api-z", "web-a", "web-b"]
        assert registry.types() == ["api", "web"]
        assert [m.id for m in registry.by_type("web")] == ["web-a", "web-b"]

    def test_duplicate_ids(self, make_manifest):
        with pytest.raises(ManifestInvalidError, match="duplicate blueprint id"):
            Registry([make_manifest(id="a"), make_manifest(id="a")])

    def test_missing_id(self, make_manifest):
        with pytest.raises(ManifestInvalidError, match="has no id"):
            Registry([make_manifest(id="")])

    def test_from_directory_skips_plain_directories(self, tmp_path: Path):
        _write_blueprint(tmp_path, "one", "type: api\n")
        (tmp_path / "not-a-blueprint").mkdir()
        (tmp_path / "stray.txt").write_text("x")
        registry = Registry.from_directory(tmp_path)
        assert [m.id for m in registry.list()] == ["api"]

    def test_from_config(self, blueprints_dir: Path):
        registry = Registry.from_config(EngineConfig(blueprints_dir=blueprints_dir))
        assert [m.id for m in registry.list()] == [m.id for m in Registry.from_directory(blueprints_dir).list()]
        assert registry.exists("cli-simple")

    def test_from_config_missing_directory(self, tmp_path: Path):
        with pytest.raises(ManifestInvalidError, match="blueprint directory not found"):
            Registry.from_config(EngineConfig(blueprints_dir=tmp_path / "absent"))

    def test_from_directory_missing(self, tmp_path: Path):
        with pytest.raises(ManifestInvalidError):
            Registry.from_directory(tmp_path / "absent")

    def test_from_directory_duplicate_derived_ids(self, tmp_path: Path):
        _write_blueprint(tmp_path, "one", "type: api\n")
        _write_blueprint(tmp_path, "two", "type: api\n")
        with pytest.raises(ManifestInvalidError, match="duplicate blueprint id 'api'"):
            Registry.from_directory(tmp_path)

    def test_empty_registry(self):
        registry = Registry()
        assert len(registry) == 0
        assert registry.list() == []
