"""Tests for tiered, edge-triggered gesture classification."""

import pytest

from gesture_control.classifier import GestureClassifier
from gesture_control.gestures import GestureType, PoseRuleSet
from gesture_control.history import GestureFrame, GestureHistory

from hands import FIST, OPEN, PEACE, features, gesture_frame, pinch_points


def run(classifier, frames, advanced=False, history=None):
    """Feed frames one by one; return the events of every frame."""
    history = history if history is not None else GestureHistory()
    per_frame = []
    for frame in frames:
        history.append(frame)
        per_frame.append(classifier.classify(history, advanced_patterns=advanced))
    return per_frame


def poses(*items, start=0.0, confidence=0.9):
    """Frames from (fingers, x) pairs, 30 fps."""
    return [
        gesture_frame(features(f, center=(x, 0.5), confidence=confidence), timestamp=start + i / 30)
        for i, (f, x) in enumerate(items)
    ]


def types(per_frame):
    return [[e.type for e in events] for events in per_frame]


@pytest.fixture
def classifier():
    return GestureClassifier()


class TestStatic:
    def test_held_fist_emits_once(self, classifier):
        per_frame = run(classifier, poses(*[(FIST, 0.5)] * 8, confidence=0.85))
        events = [e for frame in per_frame for e in frame]
        assert len(events) == 1
        assert events[0].type == GestureType.FIST
        assert events[0].confidence == pytest.approx(0.85)
        # Accepted on the third identical frame
        assert per_frame[2] == events

    def test_each_stable_transition_emits(self, classifier):
        frames = poses(*[(FIST, 0.5)] * 3, *[(OPEN, 0.5)] * 3, *[(FIST, 0.5)] * 3)
        emitted = [t for frame in types(run(classifier, frames)) for t in frame]
        assert emitted == [GestureType.FIST, GestureType.OPEN_HAND, GestureType.FIST]

    def test_unstable_pose_is_ignored(self, classifier):
        frames = poses((FIST, 0.5), (OPEN, 0.5), (FIST, 0.5), (OPEN, 0.5))
        assert all(not events for events in run(classifier, frames))

    def test_empty_rule_set_disables_static_poses(self):
        classifier = GestureClassifier(rules=PoseRuleSet())
        frames = poses(*[(FIST, 0.5)] * 5)
        assert all(not events for events in run(classifier, frames))

    def test_is_stable(self, classifier):
        history = GestureHistory()
        for frame in poses((PEACE, 0.5), (PEACE, 0.5)):
            history.append(frame)
        assert not classifier.is_stable(history)
        history.append(poses((PEACE, 0.5))[0])
        assert classifier.is_stable(history)

    def test_reset_forgets_reported_pose(self, classifier):
        history = GestureHistory()
        run(classifier, poses(*[(FIST, 0.5)] * 3), history=history)
        classifier.reset()
        again = run(classifier, poses((FIST, 0.5), start=1.0), history=history)
        assert types(again) == [[GestureType.FIST]]


class TestTierPrecedence:
    def test_swipe_after_held_pose(self, classifier):
        frames = poses((OPEN, 0.30), (OPEN, 0.30), (OPEN, 0.3667), (OPEN, 0.4333), (OPEN, 0.50))
        assert types(run(classifier, frames)) == [
            [], [], [GestureType.OPEN_HAND], [], [GestureType.SWIPE_RIGHT],
        ]

    def test_static_wins_over_dynamic(self, classifier):
        # Frame 5 is both a newly stable open hand and a swipe to the right
        frames = poses((PEACE, 0.30), (PEACE, 0.30), (OPEN, 0.35), (OPEN, 0.45), (OPEN, 0.55))
        per_frame = types(run(classifier, frames))
        assert per_frame[4] == [GestureType.OPEN_HAND]
        assert classifier.motion.detect_swipe(frames[1:]) is not None

    def test_clap_alongside_static(self, classifier):
        frames = [
            gesture_frame(
                features(OPEN, center=(0.45, 0.5)),
                features(OPEN, center=(0.50, 0.5), confidence=0.7),
                timestamp=i / 30,
            )
            for i in range(4)
        ]
        per_frame = types(run(classifier, frames))
        assert per_frame[0] == [GestureType.TWO_HAND_CLAP]
        assert per_frame[2] == [GestureType.OPEN_HAND]
        assert sum(frame.count(GestureType.TWO_HAND_CLAP) for frame in per_frame) == 1

    def test_sequence(self, classifier):
        frames = poses(*[(p, 0.5) for p in (PEACE, PEACE, FIST, FIST, PEACE, PEACE)])
        per_frame = types(run(classifier, frames))
        assert per_frame[5] == [GestureType.SEQUENCE_PEACE_FIST_PEACE]
        assert all(not events for events in per_frame[:5])


class TestAdvancedGate:
    def pinch_frames(self, n=3):
        return [
            gesture_frame(features(points=pinch_points(0.02), keep_landmarks=True), timestamp=i / 30)
            for i in range(n)
        ]

    def test_disabled(self, classifier):
        emitted = [t for frame in types(run(classifier, self.pinch_frames())) for t in frame]
        assert GestureType.PINCH not in emitted

    def test_enabled_edge_triggered(self, classifier):
        per_frame = types(run(classifier, self.pinch_frames(), advanced=True))
        assert per_frame[0] == [GestureType.PINCH, GestureType.OK_SIGN]
        assert per_frame[1] == []
        emitted = [t for frame in per_frame for t in frame]
        assert emitted.count(GestureType.PINCH) == 1


class TestEmptyFrames:
    def test_latest_without_hands(self, classifier):
        history = GestureHistory()
        history.append(GestureFrame(timestamp=0.0))
        assert classifier.classify(history) == []

    def test_empty_history(self, classifier):
        assert classifier.classify(GestureHistory()) == []
