"""Landmark recording and replay: capture landmark streams to disk.

Record real sessions from any pose estimator for:
- Reproducible testing without a camera
- Tuning thresholds offline
- Demo runs that play back deterministically
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from gesture_control.landmarks import MAX_HANDS, NUM_JOINTS, HandObservation, LandmarkFrame


class LandmarkRecorder:
    """Records landmark frames, with timestamps relative to the first frame.

    Usage:
        recorder = LandmarkRecorder()
        recorder.start()
        # In your frame loop:
        recorder.add_frame(frame)
        # When done:
        recorder.save("session.json")
    """

    def __init__(self):
        self._frames: list[LandmarkFrame] = []
        self._origin: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording session."""
        self._frames = []
        self._origin = None
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(self, frame: LandmarkFrame):
        if not self._recording:
            return
        if self._origin is None:
            self._origin = frame.timestamp
        self._frames.append(LandmarkFrame(hands=frame.hands, timestamp=frame.timestamp - self._origin))

    def save(self, path: str | Path):
        """Save recording to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [
                {"timestamp": f.timestamp, "hands": [h.to_dict() for h in f.hands]}
                for f in self._frames
            ],
        }
        with open(path, "w") as f:
            json.dump(data, f)

    def save_compact(self, path: str | Path) -> Path:
        """Save in compact numpy npz format. Missing joints stay NaN."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        n = len(self._frames)
        points = np.full((n, MAX_HANDS, NUM_JOINTS, 2), np.nan, dtype=np.float32)
        joint_conf = np.zeros((n, MAX_HANDS, NUM_JOINTS), dtype=np.float32)
        conf = np.zeros((n, MAX_HANDS), dtype=np.float32)
        hand_counts = np.zeros(n, dtype=np.int32)

        for i, frame in enumerate(self._frames):
            hand_counts[i] = len(frame.hands)
            for j, hand in enumerate(frame.hands):
                points[i, j] = hand.points
                joint_conf[i, j] = hand.joint_confidence
                conf[i, j] = hand.confidence

        np.savez_compressed(
            path,
            timestamps=np.array([f.timestamp for f in self._frames], dtype=np.float64),
            points=points,
            joint_confidence=joint_conf,
            confidence=conf,
            hand_counts=hand_counts,
        )
        return path


class LandmarkPlayer:
    """Replays a recorded landmark session.

    Usage:
        player = LandmarkPlayer.load("session.json")
        for frame in player.play():
            engine.process_frame(frame)
    """

    def __init__(self, frames: list[LandmarkFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> LandmarkPlayer:
        """Load a JSON or npz recording."""
        path = Path(path)
        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        frames = [
            LandmarkFrame(
                hands=tuple(HandObservation.from_dict(h) for h in f.get("hands", [])),
                timestamp=float(f["timestamp"]),
            )
            for f in data["frames"]
        ]
        return cls(frames)

    @classmethod
    def _load_compact(cls, path: Path) -> LandmarkPlayer:
        with np.load(path, allow_pickle=False) as data:
            timestamps = data["timestamps"]
            points = data["points"]
            joint_conf = data["joint_confidence"]
            conf = data["confidence"]
            hand_counts = data["hand_counts"]

        frames = []
        for i, ts in enumerate(timestamps):
            hands = tuple(
                HandObservation(
                    points=points[i, j],
                    confidence=float(conf[i, j]),
                    joint_confidence=joint_conf[i, j],
                )
                for j in range(int(hand_counts[i]))
            )
            frames.append(LandmarkFrame(hands=hands, timestamp=float(ts)))
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def play(self, origin: float = 0.0) -> Iterator[LandmarkFrame]:
        """Iterate through all frames instantly, timestamps shifted by ``origin``."""
        for frame in self._frames:
            yield LandmarkFrame(hands=frame.hands, timestamp=origin + frame.timestamp)

    def play_realtime(self, speed: float = 1.0) -> Iterator[LandmarkFrame]:
        """Replay at original timing (or scaled by ``speed``), stamped on the monotonic clock."""
        if speed <= 0:
            raise ValueError(f"Playback speed must be positive, got {speed}")
        if not self._frames:
            return

        start = time.monotonic()
        for frame in self._frames:
            target = frame.timestamp / speed
            elapsed = time.monotonic() - start
            if target > elapsed:
                time.sleep(target - elapsed)
            yield LandmarkFrame(hands=frame.hands, timestamp=start + target)
