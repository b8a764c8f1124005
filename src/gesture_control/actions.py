"""Gesture-to-action mapping and dispatch.

Maps gesture types to action configurations:
- Open an application
- Open a URL
- Run a shell command
- Run a named shortcut

The dispatcher decides *which* configured actions fire for a gesture event
(confidence threshold, per-gesture debounce) and hands them to an action
executor on a separate worker pool, so slow actions never hold up frame
processing. Execution errors are logged and recorded, never raised back.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import threading
import time
import uuid
import webbrowser
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Protocol

from gesture_control.bus import GestureObserver
from gesture_control.gestures import GestureEvent, GestureType

logger = logging.getLogger("gesture_control.actions")


class ActionType(Enum):
    OPEN_APP = "open_app"
    OPEN_URL = "open_url"
    SHELL_COMMAND = "shell_command"
    RUN_SHORTCUT = "run_shortcut"

    @property
    def display_name(self) -> str:
        return {
            ActionType.OPEN_APP: "Open Application",
            ActionType.OPEN_URL: "Open URL",
            ActionType.SHELL_COMMAND: "Shell Command",
            ActionType.RUN_SHORTCUT: "Run Shortcut",
        }[self]


# --- Errors ---

class ActionError(Exception):
    """Base class for action execution failures."""


class MissingParameter(ActionError):
    """A parameter the action type needs is absent or empty."""


class TargetNotFound(ActionError):
    """The application, URL handler or shortcut runner could not be found."""


class ExecutionFailed(ActionError):
    """The action was started but failed."""


# --- Configuration ---

def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ActionConfiguration:
    """What to do. Parameter keys depend on the action type:

    - open_app: ``bundle_id`` and/or ``app_name``
    - open_url: ``url``
    - shell_command: ``command``, optional ``capture_output`` ("true"/"false")
    - run_shortcut: ``shortcut_name``
    """
    name: str
    type: ActionType
    params: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    id: str = field(default_factory=_new_id)

    def validate(self):
        """Raise MissingParameter when a required parameter is absent."""
        if self.type == ActionType.OPEN_APP:
            if not (self.params.get("bundle_id") or self.params.get("app_name")):
                raise MissingParameter(f"'{self.name}': open_app needs bundle_id or app_name")
        elif self.type == ActionType.OPEN_URL:
            if not self.params.get("url"):
                raise MissingParameter(f"'{self.name}': open_url needs url")
        elif self.type == ActionType.SHELL_COMMAND:
            if not self.params.get("command"):
                raise MissingParameter(f"'{self.name}': shell_command needs command")
        elif self.type == ActionType.RUN_SHORTCUT:
            if not self.params.get("shortcut_name"):
                raise MissingParameter(f"'{self.name}': run_shortcut needs shortcut_name")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "params": dict(self.params),
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class GestureActionMapping:
    """Fires ``action`` when ``gesture`` is detected with enough confidence.

    Several mappings may target the same gesture; each fires independently.
    """
    gesture: GestureType
    action: ActionConfiguration
    min_confidence: float = 0.7
    enabled: bool = True
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "gesture": self.gesture.value,
            "min_confidence": self.min_confidence,
            "enabled": self.enabled,
            "action": self.action.to_dict(),
        }


def open_app_action(name: str, bundle_id: str = "", app_name: str = "") -> ActionConfiguration:
    params = {}
    if bundle_id:
        params["bundle_id"] = bundle_id
    if app_name:
        params["app_name"] = app_name
    return ActionConfiguration(name=name, type=ActionType.OPEN_APP, params=params)


def open_url_action(name: str, url: str) -> ActionConfiguration:
    return ActionConfiguration(name=name, type=ActionType.OPEN_URL, params={"url": url})


def shell_command_action(name: str, command: str, capture_output: bool = False) -> ActionConfiguration:
    params = {"command": command}
    if capture_output:
        params["capture_output"] = "true"
    return ActionConfiguration(name=name, type=ActionType.SHELL_COMMAND, params=params)


def run_shortcut_action(name: str, shortcut_name: str) -> ActionConfiguration:
    return ActionConfiguration(
        name=name, type=ActionType.RUN_SHORTCUT, params={"shortcut_name": shortcut_name}
    )


# --- Executors ---

class ActionExecutor(Protocol):
    """Performs the side effect of an action. Raises ActionError on failure."""

    def execute(self, action: ActionConfiguration) -> None:
        ...


class SystemActionExecutor:
    """Best-effort OS integration via subprocess and webbrowser."""

    def __init__(self, shell: str = "/bin/sh", timeout: float = 10.0):
        self.shell = shell
        self.timeout = timeout

    def execute(self, action: ActionConfiguration) -> None:
        action.validate()
        if action.type == ActionType.OPEN_APP:
            self._open_app(action.params)
        elif action.type == ActionType.OPEN_URL:
            self._open_url(action.params)
        elif action.type == ActionType.SHELL_COMMAND:
            self._shell(action.params)
        elif action.type == ActionType.RUN_SHORTCUT:
            self._shortcut(action.params)

    def _open_app(self, params: dict[str, str]):
        bundle_id = params.get("bundle_id", "")
        app_name = params.get("app_name", "")

        if sys.platform == "darwin":
            cmd = ["open", "-b", bundle_id] if bundle_id else ["open", "-a", app_name]
        elif shutil.which("gtk-launch") and app_name:
            cmd = ["gtk-launch", app_name]
        else:
            target = shutil.which(app_name or bundle_id)
            if target is None:
                raise TargetNotFound(f"Could not find application: {app_name or bundle_id}")
            cmd = [target]

        self._spawn(cmd, f"open application {app_name or bundle_id}")

    def _open_url(self, params: dict[str, str]):
        url = params["url"]
        if not webbrowser.open(url):
            raise TargetNotFound(f"No browser available to open {url}")

    def _shell(self, params: dict[str, str]):
        command = params["command"]
        if params.get("capture_output", "").lower() != "true":
            self._spawn([self.shell, "-c", command], command)
            return

        try:
            proc = subprocess.run(
                [self.shell, "-c", command],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionFailed(f"Shell command timed out: {command}") from None
        except OSError as e:
            raise ExecutionFailed(f"Could not run shell command: {e}") from e

        output = (proc.stdout + proc.stderr).strip()
        if output:
            logger.info("Shell [%s] output: %s", command, output)
        if proc.returncode != 0:
            raise ExecutionFailed(f"Shell [{command}] exited with rc={proc.returncode}")

    def _shortcut(self, params: dict[str, str]):
        runner = shutil.which("shortcuts")
        if runner is None:
            raise TargetNotFound("The 'shortcuts' command is not available")
        self._spawn([runner, "run", params["shortcut_name"]], params["shortcut_name"])

    @staticmethod
    def _spawn(cmd: list[str], label: str):
        try:
            subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=os.name == "posix",
            )
        except FileNotFoundError:
            raise TargetNotFound(f"Executable not found for {label}") from None
        except OSError as e:
            raise ExecutionFailed(f"Failed to start {label}: {e}") from e


class LoggingActionExecutor:
    """Dry-run executor: logs what would happen and remembers it."""

    def __init__(self):
        self.executed: list[ActionConfiguration] = []

    def execute(self, action: ActionConfiguration) -> None:
        action.validate()
        self.executed.append(action)
        logger.info("Would run %s: %s %s", action.type.value, action.name, action.params)


# --- Dispatcher ---

@dataclass(frozen=True)
class ActionOutcome:
    """Result of one attempted action."""
    mapping_id: str
    action_name: str
    gesture: GestureType
    ok: bool
    error: Optional[str] = None
    timestamp: float = 0.0


class ActionDispatcher(GestureObserver):
    """Registry of gesture→action mappings plus debounced dispatch.

    All mappings for one gesture type share one debounce timer: once a batch
    fires, further events of that type are ignored for ``debounce_seconds``.

    Execution happens on ``workers`` (a thread pool by default). Pass
    ``synchronous=True`` to run actions inline, e.g. in tests or dry runs.

    Usage:
        dispatcher = ActionDispatcher(executor=SystemActionExecutor())
        dispatcher.add_mapping(GestureActionMapping(
            gesture=GestureType.PEACE_SIGN,
            action=open_url_action("Docs", "https://example.com"),
        ))
        bus.add_observer(dispatcher)
    """

    name = "action_dispatcher"

    def __init__(
        self,
        executor: Optional[ActionExecutor] = None,
        debounce_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        workers: Optional[ThreadPoolExecutor] = None,
        synchronous: bool = False,
        max_outcomes: int = 200,
    ):
        super().__init__()
        self.executor: ActionExecutor = executor or SystemActionExecutor()
        self.debounce_seconds = debounce_seconds
        self.synchronous = synchronous
        self._clock = clock
        self._workers = workers
        self._owns_workers = workers is None
        self._mappings: list[GestureActionMapping] = []
        self._last_fired: dict[GestureType, float] = {}
        self._outcomes: deque[ActionOutcome] = deque(maxlen=max_outcomes)
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    # --- Registry ---

    def add_mapping(self, mapping: GestureActionMapping):
        with self._lock:
            self._mappings.append(mapping)
        logger.info(
            "Added action mapping: %s -> %s", mapping.gesture.display_name, mapping.action.name
        )

    def remove_mapping(self, mapping_id: str) -> bool:
        with self._lock:
            before = len(self._mappings)
            self._mappings = [m for m in self._mappings if m.id != mapping_id]
            removed = len(self._mappings) != before
        if removed:
            logger.info("Removed action mapping %s", mapping_id)
        return removed

    def update_mapping(self, mapping: GestureActionMapping) -> bool:
        """Replace the mapping with the same id. Returns False if unknown."""
        with self._lock:
            for i, existing in enumerate(self._mappings):
                if existing.id == mapping.id:
                    self._mappings[i] = mapping
                    break
            else:
                return False
        logger.info(
            "Updated action mapping: %s -> %s", mapping.gesture.display_name, mapping.action.name
        )
        return True

    def set_enabled(self, mapping_id: str, enabled: bool) -> bool:
        with self._lock:
            current = next((m for m in self._mappings if m.id == mapping_id), None)
        if current is None:
            return False
        return self.update_mapping(replace(current, enabled=enabled))

    def mappings_for(self, gesture: GestureType) -> list[GestureActionMapping]:
        """Enabled mappings targeting ``gesture``."""
        with self._lock:
            return [m for m in self._mappings if m.gesture == gesture and m.enabled]

    def mappings(self) -> list[GestureActionMapping]:
        with self._lock:
            return list(self._mappings)

    def clear(self):
        with self._lock:
            self._mappings.clear()
            self._last_fired.clear()
        logger.info("Cleared all action mappings")

    # --- Dispatch ---

    def on_gesture_detected(self, event: GestureEvent):
        self.dispatch(event)

    def dispatch(self, event: GestureEvent) -> int:
        """Fire the matching actions for ``event``. Returns how many were queued."""
        now = self._clock()
        with self._lock:
            last = self._last_fired.get(event.type)
            if last is not None and now - last < self.debounce_seconds:
                logger.debug("Debounced %s", event.type.value)
                return 0

            selected = [
                m for m in self._mappings
                if m.gesture == event.type
                and m.enabled
                and m.min_confidence <= event.confidence
            ]

        queued = 0
        for mapping in selected:
            action = mapping.action
            if not action.enabled:
                logger.debug("Action '%s' is disabled", action.name)
                continue
            try:
                action.validate()
            except MissingParameter as e:
                logger.warning("Skipping action: %s", e)
                self._record(mapping, event, ok=False, error=str(e))
                continue
            self._submit(mapping, event)
            queued += 1

        if queued:
            with self._lock:
                self._last_fired[event.type] = now
            logger.info("Executed %d action(s) for %s", queued, event.type.display_name)
        return queued

    def _submit(self, mapping: GestureActionMapping, event: GestureEvent):
        if self.synchronous:
            self._run(mapping, event)
            return

        if self._workers is None:
            self._workers = ThreadPoolExecutor(max_workers=2, thread_name_prefix="gesture-actions")
        future = self._workers.submit(self._run, mapping, event)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future):
        with self._lock:
            self._pending.discard(future)

    def _run(self, mapping: GestureActionMapping, event: GestureEvent):
        action = mapping.action
        try:
            self.executor.execute(action)
        except ActionError as e:
            logger.warning("Action '%s' failed: %s", action.name, e)
            self._record(mapping, event, ok=False, error=str(e))
            return
        except Exception as e:
            logger.error("Action '%s' crashed: %s", action.name, e)
            self._record(mapping, event, ok=False, error=f"ExecutionFailed: {e}")
            return

        logger.info("Executed action: %s (%s)", action.name, action.type.display_name)
        self._record(mapping, event, ok=True)

    def _record(self, mapping: GestureActionMapping, event: GestureEvent, ok: bool, error: Optional[str] = None):
        outcome = ActionOutcome(
            mapping_id=mapping.id,
            action_name=mapping.action.name,
            gesture=event.type,
            ok=ok,
            error=error,
            timestamp=self._clock(),
        )
        with self._lock:
            self._outcomes.append(outcome)

    def outcomes(self) -> list[ActionOutcome]:
        with self._lock:
            return list(self._outcomes)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until queued actions finish. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._pending)
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait_futures(pending, timeout=remaining)

    def close(self):
        if self._workers is not None and self._owns_workers:
            self._workers.shutdown(wait=True)
            self._workers = None
