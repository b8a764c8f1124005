"""Sequential gesture detection.

Matches a fixed pattern of extended-finger counts of the first hand over
the most recent frames, e.g. peace (2) → fist (0) → peace (2) held for two
frames each.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gesture_control.gestures import GestureEvent, GestureType
from gesture_control.history import GestureHistory


@dataclass(frozen=True)
class CountSequence:
    """A gesture triggered by an exact run of per-frame extended counts."""
    gesture: GestureType
    counts: tuple[int, ...]
    description: str = ""


PEACE_FIST_PEACE = CountSequence(
    gesture=GestureType.SEQUENCE_PEACE_FIST_PEACE,
    counts=(2, 2, 0, 0, 2, 2),
    description="Peace, close to a fist, peace again",
)


class SequenceDetector:
    """Detects registered count sequences at the tail of the history."""

    def __init__(self, sequences: Optional[list[CountSequence]] = None):
        self._sequences: list[CountSequence] = list(sequences or [])

    def register(self, sequence: CountSequence):
        self._sequences.append(sequence)

    def detect(self, history: GestureHistory) -> Optional[GestureEvent]:
        """Return the first registered sequence matching the last frames."""
        for seq in self._sequences:
            length = len(seq.counts)
            if len(history) < length:
                continue

            counts = history.primary_counts(length)
            if tuple(counts) != seq.counts:
                continue

            frame = history.latest
            if frame is None or frame.primary is None:
                continue
            return GestureEvent(
                type=seq.gesture,
                confidence=frame.primary.confidence,
                timestamp=frame.timestamp,
                hand=frame.primary,
            )
        return None

    @property
    def sequences(self) -> list[CountSequence]:
        return list(self._sequences)

    @classmethod
    def with_defaults(cls) -> SequenceDetector:
        return cls([PEACE_FIST_PEACE])
