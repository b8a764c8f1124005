"""Advanced pattern detectors that need the raw landmark geometry.

These only run in high-performance mode, because the feature extractor keeps
raw landmarks only then. Frames recorded before the mode switch carry no
landmarks and are simply ignored.
"""

from __future__ import annotations

from typing import Optional

from gesture_control.features import HandFeatures, distance
from gesture_control.gestures import GestureEvent, GestureType
from gesture_control.history import GestureFrame, GestureHistory
from gesture_control.landmarks import Joint


class AdvancedPatternDetector:
    """Pinch, OK sign, grab and release.

    - pinch: thumb tip and index tip closer than ``pinch_distance``
    - ok_sign: the same, tighter (``ok_distance``) with the middle finger up
    - grab: first hand goes from open (5 extended) to fist (0) across the window
    - release: fist to open across the window
    """

    def __init__(
        self,
        pinch_distance: float = 0.04,
        ok_distance: float = 0.03,
        extension_margin: float = 0.02,
        grab_window: int = 4,
    ):
        self.pinch_distance = pinch_distance
        self.ok_distance = ok_distance
        self.extension_margin = extension_margin
        self.grab_window = grab_window

    def detect(self, history: GestureHistory) -> list[GestureEvent]:
        frame = history.latest
        if frame is None or frame.primary is None:
            return []

        events = []
        for check in (self.detect_pinch, self.detect_ok_sign):
            event = check(frame)
            if event:
                events.append(event)

        grab = self.detect_grab_release(history)
        if grab:
            events.append(grab)
        return events

    def detect_pinch(self, frame: GestureFrame) -> Optional[GestureEvent]:
        hand = frame.primary
        if hand is None or hand.landmarks is None:
            return None
        if self._thumb_index_gap(hand) < self.pinch_distance:
            return self._event(GestureType.PINCH, frame, hand)
        return None

    def detect_ok_sign(self, frame: GestureFrame) -> Optional[GestureEvent]:
        hand = frame.primary
        if hand is None or hand.landmarks is None:
            return None
        lm = hand.landmarks
        middle_up = lm[Joint.MIDDLE_TIP][1] > lm[Joint.MIDDLE_PIP][1] + self.extension_margin
        if self._thumb_index_gap(hand) < self.ok_distance and middle_up:
            return self._event(GestureType.OK_SIGN, frame, hand)
        return None

    def detect_grab_release(self, history: GestureHistory) -> Optional[GestureEvent]:
        frames = history.recent(self.grab_window)
        if len(frames) < self.grab_window:
            return None
        # Only frames captured with landmarks count, so mode switches don't
        # turn old frames into false transitions.
        if any(f.primary is None or f.primary.landmarks is None for f in frames):
            return None

        start = frames[0].primary.extended_count
        end = frames[-1].primary.extended_count
        if start == 5 and end == 0:
            gesture = GestureType.GRAB
        elif start == 0 and end == 5:
            gesture = GestureType.RELEASE
        else:
            return None
        return self._event(gesture, frames[-1], frames[-1].primary)

    @staticmethod
    def _thumb_index_gap(hand: HandFeatures) -> float:
        return distance(hand.landmarks[Joint.THUMB_TIP], hand.landmarks[Joint.INDEX_TIP])

    @staticmethod
    def _event(gesture: GestureType, frame: GestureFrame, hand: HandFeatures) -> GestureEvent:
        return GestureEvent(
            type=gesture,
            confidence=hand.confidence,
            timestamp=frame.timestamp,
            hand=hand,
        )
