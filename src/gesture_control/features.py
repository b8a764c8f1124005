"""Hand feature extraction: landmarks to a compact per-hand feature record."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from gesture_control.landmarks import REQUIRED_JOINTS, HandObservation, Joint


@dataclass(frozen=True)
class FingerStates:
    """Extension flags for the five fingers."""
    thumb: bool = False
    index: bool = False
    middle: bool = False
    ring: bool = False
    little: bool = False

    @property
    def extended_count(self) -> int:
        return sum(self.as_tuple())

    def as_tuple(self) -> tuple[bool, bool, bool, bool, bool]:
        return (self.thumb, self.index, self.middle, self.ring, self.little)

    def to_dict(self) -> dict:
        return {
            "thumb": self.thumb,
            "index": self.index,
            "middle": self.middle,
            "ring": self.ring,
            "little": self.little,
        }


@dataclass(frozen=True)
class GestureMetrics:
    """Optional shape metrics, all zero unless advanced patterns are enabled."""
    span: float = 0.0       # thumb tip to little tip
    spread: float = 0.0     # mean gap between adjacent fingertips
    curvature: float = 0.0  # index finger bend away from straight, radians


@dataclass(frozen=True, eq=False)
class HandFeatures:
    """Derived summary of one hand observation."""
    palm_center: np.ndarray  # (x, y)
    fingers: FingerStates
    orientation: float  # radians, wrist → middle MCP
    confidence: float
    landmarks: Optional[np.ndarray] = None  # (21, 2), kept only for advanced patterns
    metrics: GestureMetrics = field(default_factory=GestureMetrics)

    @property
    def extended_count(self) -> int:
        return self.fingers.extended_count

    def to_dict(self) -> dict:
        return {
            "palm_center": [float(v) for v in self.palm_center],
            "fingers": self.fingers.to_dict(),
            "extended_count": self.extended_count,
            "orientation": float(self.orientation),
            "confidence": float(self.confidence),
            "metrics": {
                "span": self.metrics.span,
                "spread": self.metrics.spread,
                "curvature": self.metrics.curvature,
            },
        }


_PALM_JOINTS = [
    Joint.WRIST, Joint.INDEX_MCP, Joint.MIDDLE_MCP, Joint.RING_MCP, Joint.LITTLE_MCP,
]

# (tip, proximal joint) pairs; the thumb uses its IP joint
_FINGER_JOINTS = [
    (Joint.THUMB_TIP, Joint.THUMB_IP),
    (Joint.INDEX_TIP, Joint.INDEX_PIP),
    (Joint.MIDDLE_TIP, Joint.MIDDLE_PIP),
    (Joint.RING_TIP, Joint.RING_PIP),
    (Joint.LITTLE_TIP, Joint.LITTLE_PIP),
]


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def joint_angle(a: np.ndarray, vertex: np.ndarray, c: np.ndarray) -> float:
    """Angle ABC at ``vertex`` in radians; 0 for degenerate segments."""
    ba = a - vertex
    bc = c - vertex
    norm = np.linalg.norm(ba) * np.linalg.norm(bc)
    if norm <= 0:
        return 0.0
    cos_angle = float(np.dot(ba, bc) / norm)
    return math.acos(max(-1.0, min(1.0, cos_angle)))


class HandFeatureExtractor:
    """Converts a hand observation into ``HandFeatures``.

    Finger extension uses normalized image space where larger Y is "up":
    the thumb counts as extended when its tip is displaced sideways from the
    IP joint (it abducts rather than curls), the other fingers when the tip
    sits above the PIP joint. Both use the same margin.

    Shape metrics and the raw landmark copy cost extra work and memory, so
    they are only produced when ``keep_landmarks`` is requested.
    """

    def __init__(
        self,
        min_joint_confidence: float = 0.3,
        min_hand_confidence: float = 0.3,
        extension_margin: float = 0.02,
    ):
        self.min_joint_confidence = min_joint_confidence
        self.min_hand_confidence = min_hand_confidence
        self.extension_margin = extension_margin
        self._required = np.array([int(j) for j in REQUIRED_JOINTS])

    def extract(
        self, observation: HandObservation, keep_landmarks: bool = False
    ) -> Optional[HandFeatures]:
        """Return features, or None when the observation is unusable."""
        if observation.confidence < self.min_hand_confidence:
            return None

        points = observation.points
        required = points[self._required]
        if np.isnan(required).any():
            return None
        if (observation.joint_confidence[self._required] < self.min_joint_confidence).any():
            return None

        palm_center = points[_PALM_JOINTS].mean(axis=0)
        fingers = self.finger_states(points)

        direction = points[Joint.MIDDLE_MCP] - points[Joint.WRIST]
        orientation = math.atan2(float(direction[1]), float(direction[0]))

        landmarks = None
        metrics = GestureMetrics()
        if keep_landmarks:
            landmarks = np.array(points)
            landmarks.setflags(write=False)
            metrics = self.metrics(points)

        palm_center.setflags(write=False)
        return HandFeatures(
            palm_center=palm_center,
            fingers=fingers,
            orientation=orientation,
            confidence=float(observation.confidence),
            landmarks=landmarks,
            metrics=metrics,
        )

    def finger_states(self, points: np.ndarray) -> FingerStates:
        margin = self.extension_margin
        flags = []
        for finger, (tip_idx, pip_idx) in enumerate(_FINGER_JOINTS):
            tip, pip = points[tip_idx], points[pip_idx]
            if finger == 0:
                flags.append(bool(abs(tip[0] - pip[0]) > margin))
            else:
                flags.append(bool(tip[1] > pip[1] + margin))
        return FingerStates(*flags)

    @staticmethod
    def metrics(points: np.ndarray) -> GestureMetrics:
        span = distance(points[Joint.THUMB_TIP], points[Joint.LITTLE_TIP])
        spread = (
            distance(points[Joint.INDEX_TIP], points[Joint.MIDDLE_TIP])
            + distance(points[Joint.MIDDLE_TIP], points[Joint.RING_TIP])
        ) / 2.0
        bend = joint_angle(
            points[Joint.INDEX_MCP], points[Joint.INDEX_PIP], points[Joint.INDEX_TIP]
        )
        return GestureMetrics(span=span, spread=spread, curvature=abs(bend - math.pi))
