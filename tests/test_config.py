"""Tests for configuration loading."""

import json

import pytest
import yaml

from gesture_control.actions import ActionType
from gesture_control.config import (
    ConfigError,
    EngineConfig,
    default_config,
    load_config,
    mapping_from_record,
    parse_config,
    write_default_config,
)
from gesture_control.energy import EnergyMode
from gesture_control.gestures import GestureType
from gesture_control.pipeline import GestureEngine


def record(**overrides):
    data = {
        "gesture_id": "peaceSign",
        "name": "Open Website",
        "action_type": "open_url",
        "url": "https://www.python.org",
        "enabled": "true",
        "minimum_confidence": "0.8",
    }
    data.update(overrides)
    return data


class TestMappingRecords:
    def test_string_fields(self):
        m = mapping_from_record(record())
        assert m.gesture == GestureType.PEACE_SIGN
        assert m.action.type == ActionType.OPEN_URL
        assert m.action.params == {"url": "https://www.python.org"}
        assert m.min_confidence == pytest.approx(0.8)
        assert m.enabled is True

    def test_native_types(self):
        m = mapping_from_record(record(enabled=False, minimum_confidence=0.9))
        assert m.enabled is False
        assert m.min_confidence == pytest.approx(0.9)

    def test_defaults(self):
        data = record()
        del data["enabled"], data["minimum_confidence"]
        m = mapping_from_record(data)
        assert m.enabled is True
        assert m.min_confidence == pytest.approx(0.7)

    def test_capture_output_bool(self):
        m = mapping_from_record(record(
            action_type="shell_command", command="ls -la", capture_output=True, url=None,
        ))
        assert m.action.params == {"command": "ls -la", "capture_output": "true"}

    @pytest.mark.parametrize("overrides", [
        {"gesture_id": "jazzHands"},
        {"gesture_id": None},
        {"action_type": "launch_rocket"},
        {"name": ""},
        {"enabled": "yes"},
        {"minimum_confidence": "high"},
        {"minimum_confidence": 1.5},
        {"minimum_confidence": True},
    ])
    def test_rejects(self, overrides):
        with pytest.raises(ConfigError):
            mapping_from_record(record(**overrides))


class TestParseConfig:
    def test_bad_records_are_skipped_individually(self):
        result = parse_config({
            "gesture_mappings": [
                record(),
                record(gesture_id="jazzHands"),
                record(gesture_id="fist", name="Screenshot", action_type="shell_command", command="true"),
            ],
        })
        assert [m.gesture for m in result.mappings] == [GestureType.PEACE_SIGN, GestureType.FIST]
        assert len(result.rejected) == 1
        assert result.rejected[0][0] == 1

    def test_energy_settings(self):
        result = parse_config({
            "energy_settings": {"energy_mode": "high_performance", "enable_advanced_patterns": "false"},
        })
        assert result.engine.energy_mode == EnergyMode.HIGH_PERFORMANCE
        assert result.engine.enable_advanced_patterns is False

    def test_engine_section(self):
        result = parse_config({"engine": {"history_size": 12, "debounce_seconds": 1.0, "bogus": 1}})
        assert result.engine.history_size == 12
        assert result.engine.debounce_seconds == 1.0

    def test_empty(self):
        result = parse_config(None)
        assert result.mappings == []
        assert result.engine == EngineConfig()

    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigError):
            parse_config(["not", "a", "mapping"])

    @pytest.mark.parametrize("doc", [
        {"engine": [1, 2]},
        {"energy_settings": 5},
        {"gesture_mappings": {"gesture_id": "fist"}},
    ])
    def test_sections_must_have_the_right_shape(self, doc):
        with pytest.raises(ConfigError):
            parse_config(doc)

    @pytest.mark.parametrize("key, value", [
        ("history_size", "eight"),
        ("history_size", 0),
        ("history_size", 2.5),
        ("stability_frames", True),
        ("debounce_seconds", -1),
        ("swipe_distance", None),
        ("retention_seconds", float("nan")),
    ])
    def test_bad_engine_values_fall_back_to_defaults(self, key, value):
        result = parse_config({"engine": {key: value}})
        assert getattr(result.engine, key) == getattr(EngineConfig(), key)

    def test_engine_values_from_strings(self):
        result = parse_config({"engine": {"history_size": "12", "debounce_seconds": "0.25"}})
        assert result.engine.history_size == 12
        assert result.engine.debounce_seconds == 0.25

    def test_bad_engine_value_still_builds_an_engine(self):
        result = parse_config({"engine": {"history_size": "eight", "max_event_history": [1]}})
        with GestureEngine(config=result.engine) as engine:
            assert engine.history.capacity == 8


class TestFiles:
    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(yaml.dump({"gesture_mappings": [record()]}))
        assert len(load_config(path).mappings) == 1

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"gesture_mappings": [record()]}))
        assert load_config(path).mappings[0].gesture == GestureType.PEACE_SIGN

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("gesture_mappings: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_default_config_loads_everything_disabled(self, tmp_path):
        path = write_default_config(tmp_path / "sub" / "gesture_config.yml")
        result = load_config(path)
        assert result.rejected == []
        assert len(result.mappings) == len(default_config()["gesture_mappings"])
        assert not any(m.enabled for m in result.mappings)
        assert result.engine.energy_mode == EnergyMode.BALANCED

    def test_engine_config_roundtrip(self):
        cfg = EngineConfig(history_size=10, energy_mode=EnergyMode.ENERGY_SAVER)
        assert EngineConfig.from_dict(cfg.to_dict()) == cfg
