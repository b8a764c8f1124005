"""Dynamic gestures: swipes and waves from palm-center motion.

Works on the last few frames of the history buffer. A swipe is a large net
displacement of the palm center; a wave is a back-and-forth in x.

Usage:
    detector = MotionDetector()
    event = detector.detect(history)
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from gesture_control.gestures import GestureEvent, GestureType
from gesture_control.history import GestureFrame, GestureHistory


class MotionDetector:
    """Detects swipe-left/right/up/down and wave.

    Direction buckets follow normalized image space with larger Y as "up":
    right when |θ| < π/4, left when |θ - π| < π/4, up when π/4 < θ < 3π/4,
    down otherwise (which includes leftward motion drifting below -3π/4).
    """

    def __init__(
        self,
        window: int = 4,
        min_history: int = 5,
        swipe_distance: float = 0.15,
        min_oscillations: int = 1,
    ):
        self.window = window
        self.min_history = min_history
        self.swipe_distance = swipe_distance
        self.min_oscillations = min_oscillations

    def detect(self, history: GestureHistory) -> Optional[GestureEvent]:
        if len(history) < self.min_history:
            return None

        frames = history.recent(self.window)
        if len(frames) < self.window:
            return None

        return self.detect_swipe(frames) or self.detect_wave(frames)

    def detect_swipe(self, frames: list[GestureFrame]) -> Optional[GestureEvent]:
        first, last = frames[0].primary, frames[-1].primary
        if first is None or last is None:
            return None

        delta = last.palm_center - first.palm_center
        if float(np.linalg.norm(delta)) <= self.swipe_distance:
            return None

        gesture = self.swipe_direction(float(delta[0]), float(delta[1]))
        return GestureEvent(
            type=gesture,
            confidence=last.confidence,
            timestamp=frames[-1].timestamp,
            hand=last,
        )

    @staticmethod
    def swipe_direction(dx: float, dy: float) -> GestureType:
        direction = math.atan2(dy, dx)
        if abs(direction) < math.pi / 4:
            return GestureType.SWIPE_RIGHT
        if abs(direction - math.pi) < math.pi / 4:
            return GestureType.SWIPE_LEFT
        if math.pi / 4 < direction < 3 * math.pi / 4:
            return GestureType.SWIPE_UP
        return GestureType.SWIPE_DOWN

    def detect_wave(self, frames: list[GestureFrame]) -> Optional[GestureEvent]:
        xs = [float(f.primary.palm_center[0]) for f in frames if f.primary is not None]
        if len(xs) < self.window:
            return None

        if self.count_extrema(xs) < self.min_oscillations:
            return None

        last = frames[-1].primary
        if last is None:
            return None
        return GestureEvent(
            type=GestureType.WAVE,
            confidence=last.confidence,
            timestamp=frames[-1].timestamp,
            hand=last,
        )

    @staticmethod
    def count_extrema(values: list[float]) -> int:
        """Number of strict local maxima and minima (slope sign changes)."""
        count = 0
        for prev, curr, nxt in zip(values, values[1:], values[2:]):
            if (curr > prev and curr > nxt) or (curr < prev and curr < nxt):
                count += 1
        return count
