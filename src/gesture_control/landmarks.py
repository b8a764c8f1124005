"""Landmark input model: the boundary with the pose-estimation collaborator.

A pose estimator (MediaPipe Hands, Apple Vision, a recording on disk, ...)
hands us up to two hand observations per camera frame. Each observation is
21 named joints in normalized image space plus a confidence score. Nothing in
this module estimates poses; it only validates and shapes the input.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping, Optional, Sequence

import numpy as np


class Joint(IntEnum):
    """Hand joint indices (MediaPipe / Vision ordering)."""
    WRIST = 0
    THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
    INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
    MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
    RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
    LITTLE_MCP, LITTLE_PIP, LITTLE_DIP, LITTLE_TIP = 17, 18, 19, 20


NUM_JOINTS = 21
MAX_HANDS = 2

# Joints the feature extractor cannot do without
REQUIRED_JOINTS = (
    Joint.WRIST,
    Joint.THUMB_IP, Joint.THUMB_TIP,
    Joint.INDEX_MCP, Joint.INDEX_PIP, Joint.INDEX_TIP,
    Joint.MIDDLE_MCP, Joint.MIDDLE_PIP, Joint.MIDDLE_TIP,
    Joint.RING_MCP, Joint.RING_PIP, Joint.RING_TIP,
    Joint.LITTLE_MCP, Joint.LITTLE_PIP, Joint.LITTLE_TIP,
)

# Aliases used by other pose estimators for the little finger
_JOINT_ALIASES = {"pinky": "little", "thumb_mp": "thumb_mcp"}


def joint_from_name(name: str) -> Joint:
    """Resolve a joint name like ``"index_tip"``, ``"indexTip"`` or ``"PINKY_TIP"``."""
    key = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", name.strip())
    key = key.lower().replace("-", "_").replace(" ", "_")
    for alias, canonical in _JOINT_ALIASES.items():
        if key.startswith(alias):
            key = canonical + key[len(alias):]
    try:
        return Joint[key.upper()]
    except KeyError:
        raise ValueError(f"Unknown joint name: {name!r}") from None


@dataclass(frozen=True, eq=False)
class HandObservation:
    """One detected hand: 21 joint coordinates plus confidence.

    ``points`` has shape (21, 2); rows of missing joints are NaN. A third
    (depth) column in the input is accepted and dropped. ``joint_confidence``
    has shape (21,) and defaults to the observation confidence for every joint.
    """

    points: np.ndarray
    confidence: float = 1.0
    joint_confidence: Optional[np.ndarray] = None

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[0] != NUM_JOINTS or pts.shape[1] < 2:
            raise ValueError(
                f"Expected landmarks of shape (21, 2) or (21, 3), got {pts.shape}"
            )
        pts = np.array(pts[:, :2])
        pts.setflags(write=False)
        object.__setattr__(self, "points", pts)

        if self.joint_confidence is None:
            jc = np.full(NUM_JOINTS, float(self.confidence))
        else:
            jc = np.array(self.joint_confidence, dtype=np.float64)
            if jc.shape != (NUM_JOINTS,):
                raise ValueError(f"Expected 21 joint confidences, got {jc.shape}")
        jc.setflags(write=False)
        object.__setattr__(self, "joint_confidence", jc)

    @classmethod
    def from_points(
        cls,
        joints: Mapping[str | Joint, Sequence[float]],
        confidence: float = 1.0,
        joint_confidence: Optional[Mapping[str | Joint, float]] = None,
    ) -> HandObservation:
        """Build an observation from named joints; joints not given are missing."""
        points = np.full((NUM_JOINTS, 2), np.nan)
        for name, xy in joints.items():
            joint = name if isinstance(name, Joint) else joint_from_name(name)
            points[joint] = [float(xy[0]), float(xy[1])]

        jc = None
        if joint_confidence is not None:
            jc = np.full(NUM_JOINTS, float(confidence))
            for name, value in joint_confidence.items():
                joint = name if isinstance(name, Joint) else joint_from_name(name)
                jc[joint] = float(value)

        return cls(points=points, confidence=confidence, joint_confidence=jc)

    def point(self, joint: Joint) -> np.ndarray:
        return self.points[joint]

    def has_joint(self, joint: Joint) -> bool:
        return not bool(np.isnan(self.points[joint]).any())

    def to_dict(self) -> dict:
        return {
            "points": [
                None if np.isnan(p).any() else [float(p[0]), float(p[1])]
                for p in self.points
            ],
            "confidence": float(self.confidence),
            "joint_confidence": [float(c) for c in self.joint_confidence],
        }

    @classmethod
    def from_dict(cls, data: dict) -> HandObservation:
        points = np.array(
            [[np.nan, np.nan] if p is None else p[:2] for p in data["points"]],
            dtype=np.float64,
        )
        return cls(
            points=points,
            confidence=data.get("confidence", 1.0),
            joint_confidence=data.get("joint_confidence"),
        )


@dataclass(frozen=True)
class LandmarkFrame:
    """A timestamped set of 0–2 hand observations from one camera frame.

    Timestamps must come from the same clock the engine uses (monotonic
    seconds by default).
    """

    hands: tuple[HandObservation, ...] = ()
    timestamp: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        hands = tuple(self.hands)
        if len(hands) > MAX_HANDS:
            raise ValueError(f"At most {MAX_HANDS} hands per frame, got {len(hands)}")
        object.__setattr__(self, "hands", hands)

    @classmethod
    def from_arrays(
        cls,
        arrays: Sequence[np.ndarray],
        timestamp: Optional[float] = None,
        confidences: Optional[Sequence[float]] = None,
    ) -> LandmarkFrame:
        """Wrap raw (21, 2|3) arrays as produced by a hand detector."""
        confidences = confidences or [1.0] * len(arrays)
        hands = tuple(
            HandObservation(points=arr, confidence=conf)
            for arr, conf in zip(arrays, confidences)
        )
        if timestamp is None:
            return cls(hands=hands)
        return cls(hands=hands, timestamp=timestamp)

    @property
    def is_empty(self) -> bool:
        return not self.hands
