"""Unit tests for EngineConfig (blueprint_engine.config).

Tests cover:
- Defaults
- Field validation
- save/load round trip through JSON
- from_env
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from blueprint_engine.config import EngineConfig


# ---------------------------------------------------------------------------
# Defaults & validation
# ---------------------------------------------------------------------------


class TestEngineConfigDefaults:
    @pytest.mark.unit
    def test_defaults(self):
        config = EngineConfig()
        assert config.blueprints_dir == Path("./blueprints")
        assert config.output_dir == Path("./output")
        assert config.overwrite is False
        assert config.file_mode == 0o644
        assert config.executable_mode == 0o755
        assert config.temp_prefix == ".bp-"
        assert config.verbose is False

    @pytest.mark.unit
    def test_custom_values(self):
        config = EngineConfig(output_dir="/tmp/gen", overwrite=True)
        assert config.output_dir == Path("/tmp/gen")
        assert config.overwrite is True

    @pytest.mark.unit
    def test_mode_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(file_mode=0o1777)

    @pytest.mark.unit
    def test_empty_temp_prefix_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(temp_prefix="")


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestEngineConfigPersistence:
    @pytest.mark.unit
    def test_save_writes_json(self, tmp_path: Path):
        config = EngineConfig(verbose=True)
        path = config.save(tmp_path / "nested" / "engine.json")
        assert path.exists()
        data = json.loads(path.read_text())
        assert data["verbose"] is True
        assert data["file_mode"] == 0o644

    @pytest.mark.unit
    def test_save_load_round_trip(self, tmp_path: Path):
        config = EngineConfig(blueprints_dir=tmp_path / "bp", overwrite=True, executable_mode=0o700)
        loaded = EngineConfig.load(config.save(tmp_path / "engine.json"))
        assert loaded == config


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class TestEngineConfigFromEnv:
    @pytest.mark.unit
    def test_empty_environment_gives_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            assert EngineConfig.from_env() == EngineConfig()

    @pytest.mark.unit
    def test_reads_directories(self):
        env = {"BLUEPRINT_DIR": "/srv/blueprints", "BLUEPRINT_OUTPUT_DIR": "/srv/out"}
        with patch.dict(os.environ, env, clear=True):
            config = EngineConfig.from_env()
        assert config.blueprints_dir == Path("/srv/blueprints")
        assert config.output_dir == Path("/srv/out")

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on "])
    def test_truthy_flags(self, raw: str):
        env = {"BLUEPRINT_OVERWRITE": raw, "BLUEPRINT_VERBOSE": raw}
        with patch.dict(os.environ, env, clear=True):
            config = EngineConfig.from_env()
        assert config.overwrite is True
        assert config.verbose is True

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["0", "false", "nope"])
    def test_falsy_flags(self, raw: str):
        with patch.dict(os.environ, {"BLUEPRINT_OVERWRITE": raw}, clear=True):
            assert EngineConfig.from_env().overwrite is False
