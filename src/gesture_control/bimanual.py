"""Two-hand gesture detection.

Looks at the latest frame only and correlates the two hands in it. The clap
is two open hands with their palms nearly touching.

Usage:
    detector = BimanualDetector()
    event = detector.detect(history)
"""

from __future__ import annotations

from typing import Optional

from gesture_control.features import HandFeatures, distance
from gesture_control.gestures import GestureEvent, GestureType
from gesture_control.history import GestureHistory


class BimanualDetector:
    """Detects gestures that need exactly two hands in the frame."""

    def __init__(self, clap_distance: float = 0.1, clap_extended: int = 5):
        self.clap_distance = clap_distance
        self.clap_extended = clap_extended

    def detect(self, history: GestureHistory) -> Optional[GestureEvent]:
        frame = history.latest
        if frame is None or len(frame.hands) != 2:
            return None

        first, second = frame.hands
        if self.is_clap(first, second):
            return GestureEvent(
                type=GestureType.TWO_HAND_CLAP,
                confidence=min(first.confidence, second.confidence),
                timestamp=frame.timestamp,
                hand=first,
            )
        return None

    def is_clap(self, first: HandFeatures, second: HandFeatures) -> bool:
        gap = distance(first.palm_center, second.palm_center)
        return (
            gap < self.clap_distance
            and first.extended_count == self.clap_extended
            and second.extended_count == self.clap_extended
        )
