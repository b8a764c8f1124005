"""End-to-end tests: landmark frames in, events and actions out."""

import numpy as np
import pytest

from gesture_control.actions import (
    ActionDispatcher,
    GestureActionMapping,
    LoggingActionExecutor,
    open_url_action,
)
from gesture_control.config import EngineConfig, parse_config
from gesture_control.energy import EnergyMode
from gesture_control.gestures import GestureType
from gesture_control.landmarks import HandObservation, Joint
from gesture_control.pipeline import GestureEngine

from hands import FIST, OPEN, PEACE, FakeClock, hand_points, landmark_frame, observation, pinch_points


class Harness:
    """Engine on a fake clock with inline action execution."""

    def __init__(self, config=None):
        self.clock = FakeClock(0.0)
        self.executor = LoggingActionExecutor()
        dispatcher = ActionDispatcher(
            executor=self.executor, clock=self.clock, synchronous=True,
        )
        self.engine = GestureEngine(config=config, clock=self.clock, dispatcher=dispatcher)

    def feed(self, *hands, dt=1 / 30):
        self.clock.advance(dt)
        return self.engine.process_frame(landmark_frame(*hands, timestamp=self.clock.now))

    def hold(self, fingers, frames, dt=1 / 30, **kwargs):
        events = []
        for _ in range(frames):
            events += self.feed(observation(fingers, **kwargs), dt=dt)
        return events


@pytest.fixture
def harness():
    h = Harness()
    yield h
    h.engine.close()


class TestRecognition:
    def test_held_fist(self, harness):
        events = harness.hold(FIST, 10, confidence=0.8)
        assert [e.type for e in events] == [GestureType.FIST]
        assert events[0].confidence == pytest.approx(0.8)
        assert harness.engine.bus.statistics().total == 1

    def test_swipe_right(self, harness):
        events = []
        for x in (0.30, 0.30, 0.3667, 0.4333, 0.50):
            events += harness.feed(observation(OPEN, center=(x, 0.5)))
        assert [e.type for e in events] == [GestureType.OPEN_HAND, GestureType.SWIPE_RIGHT]

    def test_clap(self, harness):
        events = harness.feed(
            observation(OPEN, center=(0.45, 0.5)), observation(OPEN, center=(0.50, 0.5))
        )
        assert [e.type for e in events] == [GestureType.TWO_HAND_CLAP]

    def test_peace_fist_peace(self, harness):
        events = []
        for pose in (PEACE, PEACE, FIST, FIST, PEACE, PEACE):
            events += harness.feed(observation(pose))
        assert [e.type for e in events] == [GestureType.SEQUENCE_PEACE_FIST_PEACE]

    def test_unusable_frames_are_dropped(self, harness):
        pts = hand_points()
        pts[Joint.INDEX_TIP] = np.nan
        assert harness.feed(HandObservation(points=pts)) == []
        assert harness.feed() == []
        assert harness.feed(observation(confidence=0.1)) == []
        stats = harness.engine.stats
        assert stats.frames_received == 3
        assert stats.frames_dropped == 3
        assert len(harness.engine.history) == 0

    def test_invalid_second_hand_is_ignored(self, harness):
        pts = hand_points(center=(0.2, 0.5))
        pts[Joint.WRIST] = np.nan
        for _ in range(3):
            harness.feed(observation(FIST), HandObservation(points=pts))
        assert len(harness.engine.history.latest.hands) == 1


class TestEnergyGate:
    def test_advanced_follows_energy_mode(self, harness):
        hand = HandObservation(points=pinch_points(0.02), confidence=0.9)
        first = harness.feed(hand)
        assert GestureType.PINCH not in [e.type for e in first]

        harness.engine.set_energy_mode(EnergyMode.HIGH_PERFORMANCE)
        second = harness.feed(hand)
        assert GestureType.PINCH in [e.type for e in second]

    def test_config_override(self):
        h = Harness(EngineConfig(enable_advanced_patterns=True))
        events = h.feed(HandObservation(points=pinch_points(0.02), confidence=0.9))
        assert GestureType.PINCH in [e.type for e in events]
        h.engine.close()


class TestActions:
    def add(self, harness, gesture, min_confidence=0.7):
        harness.engine.add_mapping(GestureActionMapping(
            gesture=gesture,
            action=open_url_action(gesture.value, "https://example.com"),
            min_confidence=min_confidence,
        ))

    def test_gesture_triggers_action(self, harness):
        self.add(harness, GestureType.FIST)
        harness.hold(FIST, 5)
        assert [a.name for a in harness.executor.executed] == ["fist"]

    def test_low_confidence_does_not_trigger(self, harness):
        self.add(harness, GestureType.FIST, min_confidence=0.8)
        harness.hold(FIST, 5, confidence=0.7)
        assert harness.executor.executed == []

    def test_debounce_across_frames(self, harness):
        self.add(harness, GestureType.FIST)
        harness.hold(FIST, 3)
        # Break the pose briefly and come back within 0.5 s
        harness.hold(OPEN, 1)
        harness.hold(FIST, 3)
        assert len(harness.executor.executed) == 1

        harness.hold(OPEN, 1, dt=0.6)
        harness.hold(FIST, 3)
        assert len(harness.executor.executed) == 2

    def test_from_config(self):
        loaded = parse_config({"gesture_mappings": [{
            "gesture_id": "fist", "name": "Screenshot", "action_type": "open_url",
            "url": "https://example.com", "enabled": "true", "minimum_confidence": "0.5",
        }]})
        executor = LoggingActionExecutor()
        with GestureEngine.from_config(loaded, executor=executor) as engine:
            for i in range(3):
                engine.process_frame(landmark_frame(observation(FIST), timestamp=float(i)))
            engine.dispatcher.wait(timeout=5)
        assert [a.name for a in executor.executed] == ["Screenshot"]


class TestObservers:
    def test_callable_observer(self, harness):
        seen = []
        observer = harness.engine.add_observer(seen.append)
        harness.hold(FIST, 3)
        harness.engine.remove_observer(observer)
        harness.hold(OPEN, 3)
        assert [e.type for e in seen] == [GestureType.FIST]

    def test_retention_on_ingestion(self, harness):
        harness.hold(FIST, 3)
        harness.clock.advance(31)
        harness.feed()
        assert harness.engine.bus.collected() == []
        assert harness.engine.bus.active_gestures() == set()

    def test_reset(self, harness):
        harness.hold(FIST, 3)
        harness.engine.reset()
        assert len(harness.engine.history) == 0
        assert harness.engine.bus.statistics().total == 0
        assert harness.hold(FIST, 3)[0].type == GestureType.FIST


class TestSubmit:
    def test_submit_frame(self):
        engine = GestureEngine(dispatcher=ActionDispatcher(executor=LoggingActionExecutor()))
        futures = [
            engine.submit_frame(landmark_frame(observation(FIST), timestamp=float(i)))
            for i in range(3)
        ]
        results = [f.result(timeout=5) for f in futures]
        engine.close()
        assert [e.type for e in results[2]] == [GestureType.FIST]
        with pytest.raises(RuntimeError):
            engine.submit_frame(landmark_frame(observation(FIST)))
