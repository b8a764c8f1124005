"""Tests for gesture-to-action mapping and dispatch."""

import sys
import threading

import pytest

from gesture_control.actions import (
    ActionConfiguration,
    ActionDispatcher,
    ActionType,
    ExecutionFailed,
    GestureActionMapping,
    LoggingActionExecutor,
    MissingParameter,
    SystemActionExecutor,
    TargetNotFound,
    open_app_action,
    open_url_action,
    run_shortcut_action,
    shell_command_action,
)
from gesture_control.gestures import GestureEvent, GestureType

from hands import FakeClock, features

HAND = features()


def event(gesture=GestureType.PEACE_SIGN, confidence=0.9, timestamp=0.0):
    return GestureEvent(type=gesture, confidence=confidence, timestamp=timestamp, hand=HAND)


def mapping(gesture=GestureType.PEACE_SIGN, min_confidence=0.7, action=None, **kwargs):
    return GestureActionMapping(
        gesture=gesture,
        action=action or open_url_action("Docs", "https://example.com"),
        min_confidence=min_confidence,
        **kwargs,
    )


class FailingExecutor:
    def __init__(self, error):
        self.error = error

    def execute(self, action):
        raise self.error


@pytest.fixture
def clock():
    return FakeClock(10.0)


@pytest.fixture
def executor():
    return LoggingActionExecutor()


@pytest.fixture
def dispatcher(executor, clock):
    return ActionDispatcher(executor=executor, clock=clock, synchronous=True)


class TestActionConfiguration:
    def test_helpers(self):
        assert open_app_action("T", app_name="Terminal").params == {"app_name": "Terminal"}
        assert shell_command_action("L", "ls", capture_output=True).params == {
            "command": "ls", "capture_output": "true",
        }
        assert run_shortcut_action("S", "Focus").type == ActionType.RUN_SHORTCUT

    @pytest.mark.parametrize("action_type", list(ActionType))
    def test_missing_parameters(self, action_type):
        with pytest.raises(MissingParameter):
            ActionConfiguration(name="empty", type=action_type).validate()

    def test_ids_are_unique(self):
        assert open_url_action("a", "x").id != open_url_action("a", "x").id


class TestRegistry:
    def test_mappings_for_returns_enabled_only(self, dispatcher):
        on = mapping()
        off = mapping(enabled=False)
        dispatcher.add_mapping(on)
        dispatcher.add_mapping(off)
        assert dispatcher.mappings_for(GestureType.PEACE_SIGN) == [on]
        assert len(dispatcher.mappings()) == 2

    def test_remove(self, dispatcher):
        m = mapping()
        dispatcher.add_mapping(m)
        assert dispatcher.remove_mapping(m.id) is True
        assert dispatcher.remove_mapping(m.id) is False
        assert dispatcher.mappings() == []

    def test_update_and_set_enabled(self, dispatcher):
        m = mapping()
        dispatcher.add_mapping(m)
        assert dispatcher.set_enabled(m.id, False) is True
        assert dispatcher.mappings_for(GestureType.PEACE_SIGN) == []
        assert dispatcher.update_mapping(mapping()) is False


class TestDispatch:
    def test_confidence_threshold(self, dispatcher, executor, clock):
        dispatcher.add_mapping(mapping(min_confidence=0.8))
        assert dispatcher.dispatch(event(confidence=0.7)) == 0
        assert dispatcher.dispatch(event(confidence=0.85)) == 1
        assert len(executor.executed) == 1

    def test_threshold_is_inclusive(self, dispatcher):
        dispatcher.add_mapping(mapping(min_confidence=0.8))
        assert dispatcher.dispatch(event(confidence=0.8)) == 1

    def test_debounce(self, dispatcher, executor, clock):
        dispatcher.add_mapping(mapping())
        assert dispatcher.dispatch(event()) == 1
        clock.advance(0.3)
        assert dispatcher.dispatch(event()) == 0
        clock.advance(0.3)
        assert dispatcher.dispatch(event()) == 1
        assert len(executor.executed) == 2

    def test_debounce_is_per_gesture_type(self, dispatcher, clock):
        dispatcher.add_mapping(mapping(GestureType.PEACE_SIGN))
        dispatcher.add_mapping(mapping(GestureType.FIST))
        assert dispatcher.dispatch(event(GestureType.PEACE_SIGN)) == 1
        assert dispatcher.dispatch(event(GestureType.FIST)) == 1

    def test_all_mappings_fire_as_one_batch(self, dispatcher, executor, clock):
        dispatcher.add_mapping(mapping())
        dispatcher.add_mapping(mapping(action=shell_command_action("Echo", "echo hi")))
        assert dispatcher.dispatch(event()) == 2
        clock.advance(0.1)
        assert dispatcher.dispatch(event()) == 0

    def test_below_threshold_does_not_arm_debounce(self, dispatcher, clock):
        dispatcher.add_mapping(mapping(min_confidence=0.8))
        dispatcher.dispatch(event(confidence=0.5))
        clock.advance(0.1)
        assert dispatcher.dispatch(event(confidence=0.9)) == 1

    def test_disabled_action_is_skipped(self, dispatcher, executor):
        action = ActionConfiguration(
            name="off", type=ActionType.OPEN_URL, params={"url": "x"}, enabled=False
        )
        dispatcher.add_mapping(mapping(action=action))
        assert dispatcher.dispatch(event()) == 0
        assert executor.executed == []

    def test_missing_parameter_is_reported(self, dispatcher, executor):
        dispatcher.add_mapping(mapping(action=ActionConfiguration(name="bad", type=ActionType.OPEN_URL)))
        dispatcher.add_mapping(mapping())
        assert dispatcher.dispatch(event()) == 1
        outcomes = dispatcher.outcomes()
        assert [o.ok for o in outcomes] == [False, True]
        assert "url" in outcomes[0].error

    @pytest.mark.parametrize("error", [
        TargetNotFound("no such app"),
        ExecutionFailed("rc=1"),
        RuntimeError("unexpected"),
    ])
    def test_executor_errors_are_recorded(self, clock, error):
        dispatcher = ActionDispatcher(executor=FailingExecutor(error), clock=clock, synchronous=True)
        dispatcher.add_mapping(mapping())
        assert dispatcher.dispatch(event()) == 1
        (outcome,) = dispatcher.outcomes()
        assert outcome.ok is False
        assert outcome.gesture == GestureType.PEACE_SIGN

    def test_observer_interface(self, dispatcher, executor):
        dispatcher.add_mapping(mapping())
        dispatcher.on_gesture_detected(event())
        assert len(executor.executed) == 1

    def test_clear_resets_debounce(self, dispatcher):
        dispatcher.add_mapping(mapping())
        dispatcher.dispatch(event())
        dispatcher.clear()
        dispatcher.add_mapping(mapping())
        assert dispatcher.dispatch(event()) == 1


class TestWorkerPool:
    def test_runs_off_the_calling_thread(self, clock):
        threads = []

        class Recorder:
            def execute(self, action):
                threads.append(threading.current_thread().name)

        dispatcher = ActionDispatcher(executor=Recorder(), clock=clock)
        dispatcher.add_mapping(mapping())
        assert dispatcher.dispatch(event()) == 1
        assert dispatcher.wait(timeout=5)
        dispatcher.close()
        assert threads and threads[0] != threading.current_thread().name
        assert dispatcher.outcomes()[0].ok


@pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")
class TestSystemActionExecutor:
    def test_shell_capture(self):
        SystemActionExecutor().execute(shell_command_action("Echo", "echo hi", capture_output=True))

    def test_shell_nonzero_exit(self):
        with pytest.raises(ExecutionFailed):
            SystemActionExecutor().execute(shell_command_action("Fail", "exit 3", capture_output=True))

    def test_validates_first(self):
        with pytest.raises(MissingParameter):
            SystemActionExecutor().execute(ActionConfiguration(name="x", type=ActionType.SHELL_COMMAND))
