"""Gesture classification over the temporal history buffer.

Runs the detector tiers on every newly appended frame:

1. static poses (requires a stable extended-finger count)
2. dynamic motion (swipes, wave)
3. two-hand gestures
4. sequential count patterns
5. advanced landmark-geometry patterns (only when enabled)

At most one primary event (static or dynamic, static first) is emitted per
frame, plus at most one two-hand and one sequential event, plus any advanced
events. Every tier is edge-triggered: a gesture that was already reported by
the same tier on the previous frame is not reported again, so holding a pose
produces one event when it becomes stable rather than one per frame.
"""

from __future__ import annotations

from typing import Optional

from gesture_control.advanced import AdvancedPatternDetector
from gesture_control.bimanual import BimanualDetector
from gesture_control.gestures import GestureEvent, GestureType, PoseRuleSet
from gesture_control.history import GestureHistory
from gesture_control.motion import MotionDetector
from gesture_control.sequences import SequenceDetector


class GestureClassifier:
    """Turns the history buffer into zero or more gesture events per frame."""

    def __init__(
        self,
        rules: Optional[PoseRuleSet] = None,
        motion: Optional[MotionDetector] = None,
        bimanual: Optional[BimanualDetector] = None,
        sequences: Optional[SequenceDetector] = None,
        advanced: Optional[AdvancedPatternDetector] = None,
        stability_frames: int = 3,
    ):
        self.rules = rules if rules is not None else PoseRuleSet.with_defaults()
        self.motion = motion or MotionDetector()
        self.bimanual = bimanual or BimanualDetector()
        self.sequences = sequences if sequences is not None else SequenceDetector.with_defaults()
        self.advanced = advanced or AdvancedPatternDetector()
        self.stability_frames = stability_frames

        self._previous: dict[str, Optional[GestureType]] = {}
        self._previous_advanced: frozenset[GestureType] = frozenset()

    def classify(
        self, history: GestureHistory, advanced_patterns: bool = False
    ) -> list[GestureEvent]:
        """Evaluate all tiers against the newest frame in ``history``."""
        events: list[GestureEvent] = []
        if history.latest is None or not history.latest.hands:
            return events

        static = self._edge("static", self.detect_static(history))
        # Motion is always evaluated so its edge state stays current, but a
        # fresh static pose takes precedence for the primary slot.
        dynamic = self._edge("dynamic", self.motion.detect(history))
        if static:
            events.append(static)
        elif dynamic:
            events.append(dynamic)

        two_hand = self._edge("two_hand", self.bimanual.detect(history))
        if two_hand:
            events.append(two_hand)

        sequential = self._edge("sequential", self.sequences.detect(history))
        if sequential:
            events.append(sequential)

        if advanced_patterns:
            events.extend(self._edge_advanced(self.advanced.detect(history)))
        else:
            self._previous_advanced = frozenset()

        return events

    def detect_static(self, history: GestureHistory) -> Optional[GestureEvent]:
        """Classify the latest frame's first hand, if the pose is stable."""
        frame = history.latest
        if frame is None or frame.primary is None or not self.is_stable(history):
            return None

        hand = frame.primary
        gesture = self.rules.match(hand.fingers)
        if gesture is None:
            return None
        return GestureEvent(
            type=gesture,
            confidence=hand.confidence,
            timestamp=frame.timestamp,
            hand=hand,
        )

    def is_stable(self, history: GestureHistory) -> bool:
        """True when the last N frames agree on the first hand's extended count."""
        if len(history) < self.stability_frames:
            return False
        frames = history.recent(self.stability_frames)
        if any(f.primary is None for f in frames):
            return False
        counts = {f.primary.extended_count for f in frames}
        return len(counts) == 1

    def reset(self):
        """Forget what was reported on previous frames."""
        self._previous.clear()
        self._previous_advanced = frozenset()

    def _edge(self, tier: str, event: Optional[GestureEvent]) -> Optional[GestureEvent]:
        current = event.type if event else None
        previous = self._previous.get(tier)
        self._previous[tier] = current
        if event is None or current == previous:
            return None
        return event

    def _edge_advanced(self, events: list[GestureEvent]) -> list[GestureEvent]:
        previous = self._previous_advanced
        self._previous_advanced = frozenset(e.type for e in events)
        return [e for e in events if e.type not in previous]
