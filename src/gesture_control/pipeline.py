"""End-to-end engine: landmark frames → features → history → events → actions.

One ``GestureEngine`` per process owns the history buffer, the classifier
state, the event bus and the dispatcher. Frame ingestion, classification and
bus updates are serialized (one frame at a time); action execution runs on
the dispatcher's own worker pool.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

from gesture_control.actions import ActionDispatcher, ActionExecutor, GestureActionMapping
from gesture_control.advanced import AdvancedPatternDetector
from gesture_control.bimanual import BimanualDetector
from gesture_control.bus import CallbackObserver, GestureEventBus, GestureObserver
from gesture_control.classifier import GestureClassifier
from gesture_control.config import EngineConfig
from gesture_control.energy import EnergyMode, EnergyModeController
from gesture_control.features import HandFeatureExtractor
from gesture_control.gestures import GestureEvent
from gesture_control.history import GestureFrame, GestureHistory
from gesture_control.landmarks import LandmarkFrame
from gesture_control.motion import MotionDetector

logger = logging.getLogger("gesture_control.pipeline")


@dataclass
class EngineStats:
    """Frame-level counters."""
    frames_received: int = 0
    frames_processed: int = 0
    frames_dropped: int = 0
    events_emitted: int = 0


class GestureEngine:
    """Wires the recognition pipeline and the action layer together.

    Usage:
        engine = GestureEngine.from_config(load_config("config.yml"))
        engine.add_observer(my_observer)

        # From the capture thread:
        engine.submit_frame(LandmarkFrame.from_arrays(hands, timestamp=now))

        # On shutdown:
        engine.close()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        executor: Optional[ActionExecutor] = None,
        clock: Callable[[], float] = time.monotonic,
        dispatcher: Optional[ActionDispatcher] = None,
        bus: Optional[GestureEventBus] = None,
    ):
        self.config = config or EngineConfig()
        cfg = self.config
        self._clock = clock

        self.extractor = HandFeatureExtractor(
            min_joint_confidence=cfg.min_joint_confidence,
            min_hand_confidence=cfg.min_hand_confidence,
            extension_margin=cfg.extension_margin,
        )
        self.history = GestureHistory(capacity=cfg.history_size)
        self.classifier = GestureClassifier(
            motion=MotionDetector(
                window=cfg.motion_window,
                min_history=cfg.motion_min_history,
                swipe_distance=cfg.swipe_distance,
            ),
            bimanual=BimanualDetector(clap_distance=cfg.clap_distance),
            advanced=AdvancedPatternDetector(
                pinch_distance=cfg.pinch_distance,
                ok_distance=cfg.ok_distance,
                extension_margin=cfg.extension_margin,
            ),
            stability_frames=cfg.stability_frames,
        )
        self.energy = EnergyModeController(cfg.energy_mode)
        if cfg.enable_advanced_patterns is not None:
            self.energy.advanced_patterns = cfg.enable_advanced_patterns

        self.bus = bus or GestureEventBus(
            retention_seconds=cfg.retention_seconds,
            active_window=cfg.active_window,
            max_history=cfg.max_event_history,
            clock=clock,
        )
        self.dispatcher = dispatcher or ActionDispatcher(
            executor=executor,
            debounce_seconds=cfg.debounce_seconds,
            clock=clock,
        )
        self.bus.add_observer(self.dispatcher)

        self.stats = EngineStats()
        self._lock = threading.Lock()
        self._ingest: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @classmethod
    def from_config(cls, loaded, executor: Optional[ActionExecutor] = None, **kwargs) -> GestureEngine:
        """Build from a ``LoadResult`` and register its mappings."""
        engine = cls(config=loaded.engine, executor=executor, **kwargs)
        for mapping in loaded.mappings:
            engine.add_mapping(mapping)
        return engine

    # --- Ingestion ---

    def submit_frame(self, frame: LandmarkFrame) -> Future:
        """Queue a frame for processing on the ingestion worker.

        Returns a future resolving to the emitted events.
        """
        if self._closed:
            raise RuntimeError("Engine is closed")
        if self._ingest is None:
            self._ingest = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gesture-ingest")
        return self._ingest.submit(self.process_frame, frame)

    def process_frame(self, frame: LandmarkFrame) -> list[GestureEvent]:
        """Process one frame synchronously and return the emitted events."""
        with self._lock:
            self.stats.frames_received += 1
            keep_landmarks = self.energy.advanced_patterns

            hands = []
            for observation in frame.hands:
                features = self.extractor.extract(observation, keep_landmarks=keep_landmarks)
                if features is not None:
                    hands.append(features)

            if not hands:
                self.stats.frames_dropped += 1
                logger.debug("Dropped frame at %.3f: no usable hands", frame.timestamp)
                self.bus.prune()
                return []

            self.history.append(GestureFrame(timestamp=frame.timestamp, hands=tuple(hands)))
            events = self.classifier.classify(self.history, advanced_patterns=keep_landmarks)
            self.stats.frames_processed += 1

            for event in events:
                self.stats.events_emitted += 1
                self.bus.publish(event)
            if not events:
                self.bus.prune()
            return events

    # --- Energy ---

    def set_energy_mode(self, mode: EnergyMode):
        self.energy.set_mode(mode)

    # --- Observers & mappings ---

    def add_observer(self, observer: GestureObserver | Callable[[GestureEvent], None]) -> GestureObserver:
        if not isinstance(observer, GestureObserver):
            observer = CallbackObserver(observer)
        self.bus.add_observer(observer)
        return observer

    def remove_observer(self, observer: GestureObserver | str):
        self.bus.remove_observer(observer)

    def add_mapping(self, mapping: GestureActionMapping):
        self.dispatcher.add_mapping(mapping)

    def remove_mapping(self, mapping_id: str) -> bool:
        return self.dispatcher.remove_mapping(mapping_id)

    # --- Lifecycle ---

    def reset(self):
        """Clear the history, classifier state and bus data. Mappings stay."""
        with self._lock:
            self.history.clear()
            self.classifier.reset()
            self.bus.clear()
            self.stats = EngineStats()

    def close(self):
        """Stop the ingestion worker and wait for queued actions."""
        self._closed = True
        if self._ingest is not None:
            self._ingest.shutdown(wait=True)
            self._ingest = None
        self.dispatcher.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
