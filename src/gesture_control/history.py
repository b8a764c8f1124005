"""Temporal history buffer shared by the temporal detectors."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Optional

from gesture_control.features import HandFeatures


@dataclass(frozen=True)
class GestureFrame:
    """Features of every usable hand in one processed camera frame."""
    timestamp: float
    hands: tuple[HandFeatures, ...] = ()

    @property
    def primary(self) -> Optional[HandFeatures]:
        """The first hand, which single-hand detectors look at."""
        return self.hands[0] if self.hands else None


class GestureHistory:
    """Fixed-capacity, time-ordered window of recent frames.

    Appending beyond capacity evicts the oldest frame. There is one writer
    (the ingestion path); detectors only read.
    """

    def __init__(self, capacity: int = 8):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._frames: deque[GestureFrame] = deque(maxlen=capacity)

    def append(self, frame: GestureFrame):
        self._frames.append(frame)

    @property
    def latest(self) -> Optional[GestureFrame]:
        return self._frames[-1] if self._frames else None

    def recent(self, count: int) -> list[GestureFrame]:
        """The last ``count`` frames, oldest first (fewer if not available)."""
        if count <= 0:
            return []
        return list(self._frames)[-count:]

    def primary_counts(self, count: int) -> list[int]:
        """Extended-finger counts of the first hand over the last ``count`` frames.

        Frames without a hand are skipped.
        """
        return [
            frame.primary.extended_count
            for frame in self.recent(count)
            if frame.primary is not None
        ]

    def clear(self):
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[GestureFrame]:
        return iter(list(self._frames))
