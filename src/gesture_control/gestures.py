"""Gesture vocabulary: gesture types, gesture events and static pose rules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gesture_control.features import FingerStates, HandFeatures


class GestureTier(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    TWO_HAND = "two_hand"
    SEQUENTIAL = "sequential"
    ADVANCED = "advanced"


class GestureType(Enum):
    """Closed set of gestures the classifier can report."""

    # Static single-hand poses
    FIST = "fist"
    OPEN_HAND = "open_hand"
    POINTING_FINGER = "pointing_finger"
    THUMBS_UP = "thumbs_up"
    PEACE_SIGN = "peace_sign"
    THREE_FINGERS = "three_fingers"
    FOUR_FINGERS = "four_fingers"
    OK_SIGN = "ok_sign"

    # Motion
    SWIPE_LEFT = "swipe_left"
    SWIPE_RIGHT = "swipe_right"
    SWIPE_UP = "swipe_up"
    SWIPE_DOWN = "swipe_down"
    WAVE = "wave"

    # Two hands
    TWO_HAND_CLAP = "two_hand_clap"
    TWO_HAND_HEART = "two_hand_heart"

    # Sequences
    SEQUENCE_PEACE_FIST_PEACE = "sequence_peace_fist_peace"

    # Advanced (landmark geometry, high-performance mode only)
    PINCH = "pinch"
    GRAB = "grab"
    RELEASE = "release"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, self.value.replace("_", " ").title())

    @property
    def tier(self) -> GestureTier:
        return _TIERS[self]

    @classmethod
    def parse(cls, identifier: str) -> GestureType:
        """Resolve a gesture identifier.

        Accepts the value (``"peace_sign"``), the member name
        (``"PEACE_SIGN"``) and camelCase ids (``"peaceSign"``,
        ``"pinchGesture"``) as found in older configuration files.

        Raises:
            ValueError: for unknown identifiers.
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValueError(f"Invalid gesture identifier: {identifier!r}")
        key = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", identifier.strip())
        key = key.lower().replace("-", "_").replace(" ", "_")
        key = _LEGACY_IDS.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown gesture: {identifier!r}") from None


_DISPLAY_NAMES = {
    GestureType.OK_SIGN: "OK Sign",
    GestureType.SEQUENCE_PEACE_FIST_PEACE: "Peace-Fist-Peace Sequence",
}

_LEGACY_IDS = {
    "pinch_gesture": "pinch",
    "grab_gesture": "grab",
    "release_gesture": "release",
}

_TIERS = {
    GestureType.FIST: GestureTier.STATIC,
    GestureType.OPEN_HAND: GestureTier.STATIC,
    GestureType.POINTING_FINGER: GestureTier.STATIC,
    GestureType.THUMBS_UP: GestureTier.STATIC,
    GestureType.PEACE_SIGN: GestureTier.STATIC,
    GestureType.THREE_FINGERS: GestureTier.STATIC,
    GestureType.FOUR_FINGERS: GestureTier.STATIC,
    GestureType.OK_SIGN: GestureTier.ADVANCED,
    GestureType.SWIPE_LEFT: GestureTier.DYNAMIC,
    GestureType.SWIPE_RIGHT: GestureTier.DYNAMIC,
    GestureType.SWIPE_UP: GestureTier.DYNAMIC,
    GestureType.SWIPE_DOWN: GestureTier.DYNAMIC,
    GestureType.WAVE: GestureTier.DYNAMIC,
    GestureType.TWO_HAND_CLAP: GestureTier.TWO_HAND,
    GestureType.TWO_HAND_HEART: GestureTier.TWO_HAND,
    GestureType.SEQUENCE_PEACE_FIST_PEACE: GestureTier.SEQUENTIAL,
    GestureType.PINCH: GestureTier.ADVANCED,
    GestureType.GRAB: GestureTier.ADVANCED,
    GestureType.RELEASE: GestureTier.ADVANCED,
}


@dataclass(frozen=True)
class GestureEvent:
    """One detected gesture occurrence. Created by the classifier, never mutated."""
    type: GestureType
    confidence: float
    timestamp: float
    hand: HandFeatures

    def to_dict(self) -> dict:
        return {
            "gesture": self.type.value,
            "display_name": self.type.display_name,
            "confidence": round(float(self.confidence), 4),
            "timestamp": self.timestamp,
            "hand": self.hand.to_dict(),
        }


class FingerState(Enum):
    """Expected state of one finger in a pose rule."""
    EXTENDED = "extended"
    CURLED = "curled"
    ANY = "any"  # don't care


@dataclass(frozen=True)
class StaticPoseRule:
    """A static pose described by per-finger expectations."""

    gesture: GestureType
    thumb: FingerState = FingerState.ANY
    index: FingerState = FingerState.ANY
    middle: FingerState = FingerState.ANY
    ring: FingerState = FingerState.ANY
    little: FingerState = FingerState.ANY

    def matches(self, fingers: FingerStates) -> bool:
        expected = (self.thumb, self.index, self.middle, self.ring, self.little)
        for actual, state in zip(fingers.as_tuple(), expected):
            if state == FingerState.ANY:
                continue
            if actual != (state == FingerState.EXTENDED):
                return False
        return True

    def to_dict(self) -> dict:
        return {
            "gesture": self.gesture.value,
            "fingers": {
                "thumb": self.thumb.value,
                "index": self.index.value,
                "middle": self.middle.value,
                "ring": self.ring.value,
                "little": self.little.value,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> StaticPoseRule:
        fingers = data.get("fingers", {})
        return cls(
            gesture=GestureType.parse(data["gesture"]),
            thumb=FingerState(fingers.get("thumb", "any")),
            index=FingerState(fingers.get("index", "any")),
            middle=FingerState(fingers.get("middle", "any")),
            ring=FingerState(fingers.get("ring", "any")),
            little=FingerState(fingers.get("little", "any")),
        )


class PoseRuleSet:
    """Ordered static pose rules; the first matching rule wins."""

    def __init__(self, rules: Optional[list[StaticPoseRule]] = None):
        self._rules: list[StaticPoseRule] = list(rules or [])

    def register(self, rule: StaticPoseRule):
        """Append a rule. Rules registered earlier take precedence."""
        self._rules.append(rule)

    def match(self, fingers: FingerStates) -> Optional[GestureType]:
        for rule in self._rules:
            if rule.matches(fingers):
                return rule.gesture
        return None

    @classmethod
    def with_defaults(cls) -> PoseRuleSet:
        """Built-in poses in precedence order."""
        E, C = FingerState.EXTENDED, FingerState.CURLED
        rules = cls()
        rules.register(StaticPoseRule(GestureType.FIST, C, C, C, C, C))
        rules.register(StaticPoseRule(GestureType.OPEN_HAND, E, E, E, E, E))
        rules.register(StaticPoseRule(GestureType.PEACE_SIGN, index=E, middle=E, ring=C, little=C))
        rules.register(StaticPoseRule(GestureType.POINTING_FINGER, index=E, middle=C, ring=C, little=C))
        rules.register(StaticPoseRule(GestureType.THUMBS_UP, E, C, C, C, C))
        rules.register(StaticPoseRule(GestureType.THREE_FINGERS, index=E, middle=E, ring=E, little=C))
        return rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)
