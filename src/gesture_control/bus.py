"""Gesture event bus: collection, statistics and observer fan-out.

Every event the classifier emits is published here. The bus keeps a short
in-memory record of what happened (collected events, a capped event log,
running statistics and the set of currently active gestures) and then
notifies registered observers, synchronously and in registration order.

Observer interface:
    class Logger(GestureObserver):
        def on_gesture_detected(self, event):
            print(event.type.display_name)

Or use the decorator API:
    observer = GestureObserver(name="simple")

    @observer.handler(GestureType.THUMBS_UP)
    def on_thumbs_up(event):
        print("Thumbs up!")

    bus.add_observer(observer)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import Counter, OrderedDict, deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from gesture_control.gestures import GestureEvent, GestureType

logger = logging.getLogger("gesture_control.bus")


@dataclass(frozen=True)
class GestureRecord:
    """Lightweight log entry for one published event."""
    id: str
    type: GestureType
    timestamp: float
    confidence: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "gesture": self.type.value,
            "timestamp": self.timestamp,
            "confidence": round(float(self.confidence), 4),
        }


@dataclass
class GestureStatistics:
    """Running aggregate over published events."""
    total: int = 0
    type_counts: dict[GestureType, int] = field(default_factory=dict)
    confidence_sum: float = 0.0
    first_timestamp: Optional[float] = None
    last_timestamp: Optional[float] = None

    @property
    def average_confidence(self) -> float:
        return self.confidence_sum / self.total if self.total else 0.0

    @property
    def detection_rate(self) -> float:
        """Events per second between the first and the last event."""
        if self.first_timestamp is None or self.last_timestamp is None:
            return 0.0
        span = self.last_timestamp - self.first_timestamp
        return self.total / span if span > 0 else 0.0

    @property
    def most_frequent(self) -> Optional[GestureType]:
        if not self.type_counts:
            return None
        return max(self.type_counts, key=self.type_counts.get)  # type: ignore

    @property
    def unique_types(self) -> int:
        return len(self.type_counts)

    def record(self, event: GestureEvent):
        self.total += 1
        self.type_counts[event.type] = self.type_counts.get(event.type, 0) + 1
        self.confidence_sum += event.confidence
        if self.first_timestamp is None:
            self.first_timestamp = event.timestamp
        self.last_timestamp = event.timestamp

    def copy(self) -> GestureStatistics:
        return GestureStatistics(
            total=self.total,
            type_counts=dict(self.type_counts),
            confidence_sum=self.confidence_sum,
            first_timestamp=self.first_timestamp,
            last_timestamp=self.last_timestamp,
        )

    def to_dict(self) -> dict:
        most = self.most_frequent
        return {
            "total": self.total,
            "type_counts": {g.value: n for g, n in self.type_counts.items()},
            "average_confidence": round(self.average_confidence, 4),
            "detection_rate": round(self.detection_rate, 4),
            "most_frequent": most.value if most else None,
            "unique_types": self.unique_types,
        }


class GestureObserver:
    """Base class for anything that wants gesture callbacks.

    Subclass and override ``on_gesture_detected``, or register per-gesture
    handlers with the ``handler`` decorator. Each observer has a stable
    ``id`` used for removal.
    """

    name: str = "observer"

    def __init__(self, name: Optional[str] = None):
        if name:
            self.name = name
        self.id = uuid.uuid4().hex
        self._handlers: dict[Optional[GestureType], list[Callable[[GestureEvent], None]]] = {}

    def on_gesture_detected(self, event: GestureEvent):
        """Called for every published event."""
        handlers = self._handlers.get(event.type, []) + self._handlers.get(None, [])
        for handler in handlers:
            handler(event)

    def handler(self, gesture: Optional[GestureType] = None):
        """Decorator registering a handler for one gesture type (None = all)."""
        def decorator(fn: Callable[[GestureEvent], None]):
            self._handlers.setdefault(gesture, []).append(fn)
            return fn
        return decorator


class CallbackObserver(GestureObserver):
    """Adapts a plain callable to the observer interface."""

    def __init__(self, callback: Callable[[GestureEvent], None], name: Optional[str] = None):
        super().__init__(name=name or getattr(callback, "__name__", "callback"))
        self._callback = callback

    def on_gesture_detected(self, event: GestureEvent):
        self._callback(event)


class GestureEventBus:
    """Collects gesture events and fans them out to observers.

    State is guarded by one lock. Accessors return copies, so they may be
    called from other threads while frames are being ingested.
    """

    def __init__(
        self,
        retention_seconds: float = 30.0,
        active_window: float = 5.0,
        max_history: int = 100,
        max_collected: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retention_seconds = retention_seconds
        self.active_window = active_window
        self.max_history = max_history
        self._clock = clock

        self._collected: deque[GestureEvent] = deque(maxlen=max_collected)
        self._history: deque[GestureRecord] = deque(maxlen=max_history)
        self._stats = GestureStatistics()
        self._active: set[GestureType] = set()
        self._last_gesture: Optional[GestureType] = None
        self._observers: OrderedDict[str, GestureObserver] = OrderedDict()
        self._lock = threading.RLock()

    # --- Observers ---

    def add_observer(self, observer: GestureObserver):
        with self._lock:
            self._observers[observer.id] = observer
        logger.debug("Added observer %s (%s)", observer.name, observer.id)

    def remove_observer(self, observer: GestureObserver | str):
        """Remove by observer or id. Unknown observers are ignored."""
        key = observer if isinstance(observer, str) else observer.id
        with self._lock:
            removed = self._observers.pop(key, None)
        if removed:
            logger.debug("Removed observer %s (%s)", removed.name, key)

    @property
    def observers(self) -> list[GestureObserver]:
        with self._lock:
            return list(self._observers.values())

    # --- Publishing ---

    def publish(self, event: GestureEvent):
        """Record an event, prune old data, then notify observers."""
        with self._lock:
            self._collected.append(event)
            self._active.add(event.type)
            self._last_gesture = event.type
            self._history.append(GestureRecord(
                id=uuid.uuid4().hex,
                type=event.type,
                timestamp=event.timestamp,
                confidence=event.confidence,
            ))
            self._stats.record(event)
            self._prune(self._clock())
            observers = list(self._observers.values())

        logger.info(
            "Gesture: %s (confidence: %.2f)", event.type.display_name, event.confidence
        )

        for observer in observers:
            try:
                observer.on_gesture_detected(event)
            except Exception as e:
                logger.error("Observer %s failed on %s: %s", observer.name, event.type.value, e)

    def prune(self):
        """Drop expired events and refresh the active set without a new event."""
        with self._lock:
            self._prune(self._clock())

    def _prune(self, now: float):
        cutoff = now - self.retention_seconds
        while self._collected and self._collected[0].timestamp < cutoff:
            self._collected.popleft()
        # Timestamps can arrive slightly out of order across hands
        if any(e.timestamp < cutoff for e in self._collected):
            self._collected = deque(
                (e for e in self._collected if e.timestamp >= cutoff),
                maxlen=self._collected.maxlen,
            )

        active_cutoff = now - self.active_window
        self._active = {e.type for e in self._collected if e.timestamp >= active_cutoff}

    # --- Queries ---

    def statistics(self) -> GestureStatistics:
        with self._lock:
            return self._stats.copy()

    def active_gestures(self) -> set[GestureType]:
        with self._lock:
            return set(self._active)

    def is_active(self, gesture: GestureType) -> bool:
        with self._lock:
            return gesture in self._active

    @property
    def last_gesture(self) -> Optional[GestureType]:
        return self._last_gesture

    def collected(self) -> list[GestureEvent]:
        with self._lock:
            return list(self._collected)

    def gestures_by_type(self, gesture: GestureType) -> list[GestureEvent]:
        with self._lock:
            return [e for e in self._collected if e.type == gesture]

    def recent_gestures(self, window: float = 5.0) -> list[GestureEvent]:
        cutoff = self._clock() - window
        with self._lock:
            return [e for e in self._collected if e.timestamp >= cutoff]

    def history(self, limit: int = 50) -> list[GestureRecord]:
        with self._lock:
            records = list(self._history)
        return records[-limit:] if limit > 0 else []

    def latest_confidence(self, gesture: GestureType) -> Optional[float]:
        events = self.gestures_by_type(gesture)
        return events[-1].confidence if events else None

    def has_detected(self, gesture: GestureType, within: float = 1.0) -> bool:
        return self.frequency(gesture, within) > 0

    def frequency(self, gesture: GestureType, within: float = 60.0) -> int:
        cutoff = self._clock() - within
        with self._lock:
            return sum(1 for e in self._collected if e.type == gesture and e.timestamp >= cutoff)

    def most_frequent(self) -> Optional[GestureType]:
        with self._lock:
            return self._stats.most_frequent

    def average_confidence_for(self, gesture: GestureType) -> float:
        events = self.gestures_by_type(gesture)
        if not events:
            return 0.0
        return sum(e.confidence for e in events) / len(events)

    def type_counts(self) -> Counter:
        with self._lock:
            return Counter(self._stats.type_counts)

    def export(self) -> dict:
        """Plain-data snapshot of everything the bus holds."""
        with self._lock:
            return {
                "gestures": [e.to_dict() for e in self._collected],
                "events": [r.to_dict() for r in self._history],
                "statistics": self._stats.to_dict(),
                "active": sorted(g.value for g in self._active),
                "exported_at": time.time(),
            }

    def clear(self):
        """Reset collected events, the log, statistics and the active set."""
        with self._lock:
            self._collected.clear()
            self._history.clear()
            self._stats = GestureStatistics()
            self._active.clear()
            self._last_gesture = None
        logger.info("Gesture history cleared")
