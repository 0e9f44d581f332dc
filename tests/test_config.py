"""Tests for EngineConfig defaults and YAML loading."""

import pytest

from actionlang.config import EngineConfig, load_config


def test_defaults():
    config = load_config()
    assert config == EngineConfig()
    assert config.max_call_depth == 400
    assert config.strict_assignment is False


def test_load_flat_mapping(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("max_call_depth: 50\nstrict_assignment: true\nrandom_seed: 3\n")
    config = load_config(path)
    assert config.max_call_depth == 50
    assert config.strict_assignment is True
    assert config.random_seed == 3
    assert config.max_iterations == EngineConfig().max_iterations


def test_load_engine_section(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("engine:\n  max_iterations: null\n")
    assert load_config(path).max_iterations is None


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("")
    assert load_config(path) == EngineConfig()


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("max_depth: 3\n")
    with pytest.raises(ValueError, match="max_depth"):
        load_config(path)


def test_non_mapping_is_rejected(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_round_trip_through_dict():
    config = EngineConfig(max_call_depth=10, random_seed=1)
    assert EngineConfig.from_dict(config.to_dict()) == config
