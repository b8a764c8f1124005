"""Configuration: engine thresholds, energy settings and gesture mappings.

The configuration file is YAML (JSON files load too, JSON being a subset):

    energy_settings:
      energy_mode: balanced
      enable_advanced_patterns: false
    engine:
      history_size: 8
      debounce_seconds: 0.5
    gesture_mappings:
      - gesture_id: peaceSign
        name: Open Website
        action_type: open_url
        url: https://www.example.com
        enabled: "true"
        minimum_confidence: "0.7"

Bad mapping records are rejected one by one; the rest still load.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from gesture_control.actions import ActionConfiguration, ActionType, GestureActionMapping
from gesture_control.energy import EnergyMode
from gesture_control.gestures import GestureType

logger = logging.getLogger("gesture_control.config")


class ConfigError(ValueError):
    """A configuration value or record is invalid."""


@dataclass
class EngineConfig:
    """Tunable thresholds of the recognition pipeline."""
    history_size: int = 8
    stability_frames: int = 3
    min_joint_confidence: float = 0.3
    min_hand_confidence: float = 0.3
    extension_margin: float = 0.02
    swipe_distance: float = 0.15
    motion_window: int = 4
    motion_min_history: int = 5
    clap_distance: float = 0.1
    pinch_distance: float = 0.04
    ok_distance: float = 0.03
    retention_seconds: float = 30.0
    active_window: float = 5.0
    max_event_history: int = 100
    debounce_seconds: float = 0.5
    energy_mode: EnergyMode = EnergyMode.BALANCED
    enable_advanced_patterns: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        """Build from a plain dict.

        Unknown keys are ignored. Values of the wrong type or range are
        logged and replaced by the default.
        """
        defaults = cls()
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            try:
                values[f.name] = _coerce_field(f.name, getattr(defaults, f.name), data[f.name])
            except ConfigError as e:
                logger.warning("Ignoring engine setting: %s", e)
        return cls(**values)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["energy_mode"] = self.energy_mode.value
        return data


@dataclass
class LoadResult:
    """Outcome of loading a configuration document."""
    engine: EngineConfig = field(default_factory=EngineConfig)
    mappings: list[GestureActionMapping] = field(default_factory=list)
    rejected: list[tuple[int, str]] = field(default_factory=list)  # (record index, reason)


# Action-type-specific record keys copied into the action parameters
_ACTION_PARAMS = {
    ActionType.OPEN_APP: ("app_name", "bundle_id"),
    ActionType.OPEN_URL: ("url",),
    ActionType.SHELL_COMMAND: ("command", "capture_output"),
    ActionType.RUN_SHORTCUT: ("shortcut_name",),
}


def parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def parse_confidence(value: Any, key: str = "minimum_confidence") -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be numeric, got {value!r}")
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be numeric, got {value!r}") from None
    if not 0.0 < confidence <= 1.0:
        raise ConfigError(f"{key} must be in (0, 1], got {confidence}")
    return confidence


def _coerce_field(name: str, default: Any, value: Any) -> Any:
    """Convert ``value`` to the type of an engine field's default."""
    if isinstance(default, EnergyMode):
        return value if isinstance(value, EnergyMode) else EnergyMode.parse(value)
    if default is None or isinstance(default, bool):
        return None if value is None else parse_bool(value, name)
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be numeric, got {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise ConfigError(f"{name} must be a non-negative number, got {value!r}")
    if isinstance(default, int):
        if not number.is_integer() or number < 1:
            raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        return int(number)
    return number


def _section(data: dict, key: str) -> dict:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"{key} must be a mapping, got {type(section).__name__}")
    return section


def mapping_from_record(record: dict) -> GestureActionMapping:
    """Turn one ``gesture_mappings`` record into a mapping.

    Raises:
        ConfigError: for unknown gestures or action types, and malformed fields.
    """
    if not isinstance(record, dict):
        raise ConfigError(f"Mapping record must be a mapping, got {type(record).__name__}")

    gesture_id = record.get("gesture_id") or record.get("gesture")
    if not gesture_id:
        raise ConfigError("Missing gesture_id")
    try:
        gesture = GestureType.parse(gesture_id)
    except ValueError as e:
        raise ConfigError(str(e)) from None

    action_tag = record.get("action_type")
    try:
        action_type = ActionType(action_tag)
    except ValueError:
        raise ConfigError(f"Unknown action type: {action_tag!r}") from None

    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("Missing name")

    enabled = parse_bool(record.get("enabled", True), "enabled")
    confidence = parse_confidence(record.get("minimum_confidence", 0.7))

    params = {}
    for key in _ACTION_PARAMS[action_type]:
        if key in record and record[key] is not None:
            value = record[key]
            if isinstance(value, bool):
                value = "true" if value else "false"
            params[key] = str(value)

    action = ActionConfiguration(name=name.strip(), type=action_type, params=params)
    return GestureActionMapping(
        gesture=gesture,
        action=action,
        min_confidence=confidence,
        enabled=enabled,
    )


def parse_config(data: Optional[dict]) -> LoadResult:
    """Parse an already-decoded configuration document."""
    result = LoadResult()
    if not data:
        return result
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    engine_data = dict(_section(data, "engine"))
    energy = _section(data, "energy_settings")
    if "energy_mode" in energy:
        engine_data["energy_mode"] = energy["energy_mode"]
    if "enable_advanced_patterns" in energy:
        try:
            engine_data["enable_advanced_patterns"] = parse_bool(
                energy["enable_advanced_patterns"], "enable_advanced_patterns"
            )
        except ConfigError as e:
            logger.warning("Ignoring energy setting: %s", e)
    result.engine = EngineConfig.from_dict(engine_data)

    records = data.get("gesture_mappings") or []
    if not isinstance(records, list):
        raise ConfigError(f"gesture_mappings must be a list, got {type(records).__name__}")
    for i, record in enumerate(records):
        try:
            result.mappings.append(mapping_from_record(record))
        except ConfigError as e:
            logger.warning("Skipping gesture mapping #%d: %s", i, e)
            result.rejected.append((i, str(e)))

    logger.info(
        "Loaded %d gesture mappings (%d rejected)", len(result.mappings), len(result.rejected)
    )
    return result


def load_config(path: str | Path) -> LoadResult:
    """Load a YAML or JSON configuration file.

    Raises:
        ConfigError: if the file is not valid YAML or its sections are malformed.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e
    return parse_config(data)


_EXAMPLE_MAPPINGS = [
    (GestureType.FIST, "Take Screenshot", "shell_command", {"command": "screencapture ~/Desktop/screenshot.png"}),
    (GestureType.OPEN_HAND, "Open Finder", "open_app", {"app_name": "Finder"}),
    (GestureType.POINTING_FINGER, "Open Terminal", "open_app", {"app_name": "Terminal", "bundle_id": "com.apple.Terminal"}),
    (GestureType.THUMBS_UP, "List Directory", "shell_command", {"command": "ls -la", "capture_output": "true"}),
    (GestureType.PEACE_SIGN, "Open Website", "open_url", {"url": "https://www.python.org"}),
    (GestureType.THREE_FINGERS, "Open Search", "open_url", {"url": "https://www.google.com"}),
    (GestureType.SWIPE_LEFT, "Previous Desktop", "run_shortcut", {"shortcut_name": "Previous Desktop"}),
    (GestureType.SWIPE_RIGHT, "Next Desktop", "run_shortcut", {"shortcut_name": "Next Desktop"}),
    (GestureType.SWIPE_UP, "Mission Control", "run_shortcut", {"shortcut_name": "Mission Control"}),
    (GestureType.SWIPE_DOWN, "Show Desktop", "run_shortcut", {"shortcut_name": "Show Desktop"}),
    (GestureType.WAVE, "Say Hello", "shell_command", {"command": "echo hello"}),
    (GestureType.OK_SIGN, "Run My Shortcut", "run_shortcut", {"shortcut_name": "My Shortcut"}),
    (GestureType.PINCH, "Open Browser", "open_url", {"url": "about:blank"}),
    (GestureType.TWO_HAND_CLAP, "Play/Pause Music", "run_shortcut", {"shortcut_name": "Play Pause"}),
    (GestureType.SEQUENCE_PEACE_FIST_PEACE, "Lock Screen", "shell_command", {"command": "pmset displaysleepnow"}),
]


def default_config() -> dict:
    """Sample configuration with every supported gesture mapped but disabled."""
    mappings = []
    for gesture, name, action_type, params in _EXAMPLE_MAPPINGS:
        mappings.append({
            "gesture_id": gesture.value,
            "gesture": gesture.display_name,
            "name": name,
            "action_type": action_type,
            **params,
            "enabled": "false",
            "minimum_confidence": "0.7",
        })

    return {
        "version": "1.0",
        "description": "gesture-control configuration",
        "instructions": [
            "Edit this file to configure gesture-to-action mappings and energy settings",
            "Available action types: " + ", ".join(t.value for t in ActionType),
            "Energy modes: high_performance (all features), balanced (default), energy_saver (minimal features)",
            "Set enabled to true to activate a mapping",
            "Minimum confidence range: 0.1 to 1.0",
        ],
        "energy_settings": {
            "energy_mode": EnergyMode.BALANCED.value,
            "enable_advanced_patterns": False,
        },
        "gesture_mappings": mappings,
    }


def write_default_config(path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(default_config(), f, default_flow_style=False, sort_keys=False)
    logger.info("Created default configuration file at: %s", path)
    return path
