"""Prometheus text-format telemetry for a GestureEngine.

Generates the exposition format directly; nothing is served here. Attach the
collector to an engine as an observer and call ``render()`` whenever a
snapshot is wanted (the CLI ``stats`` command prints one).

Tracked metrics:
- gesture_control_gestures_total (counter, by gesture)
- gesture_control_gesture_confidence (histogram)
- gesture_control_frame_latency_seconds (histogram)
- gesture_control_frames_total / frames_dropped_total (counters, from the engine)
- gesture_control_detection_rate (gauge, events per second)
- gesture_control_active_gestures (gauge)
- gesture_control_actions_total (counter, by outcome)
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import TYPE_CHECKING, Optional

from gesture_control.bus import GestureObserver
from gesture_control.gestures import GestureEvent

if TYPE_CHECKING:
    from gesture_control.pipeline import GestureEngine


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


def _block(name: str, kind: str, help_text: str, samples: list[str]) -> list[str]:
    return [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}", *samples, ""]


class MetricsCollector(GestureObserver):
    """Counts gestures as a bus observer and renders engine telemetry.

    Usage:
        metrics = MetricsCollector(engine)
        engine.add_observer(metrics)
        ...
        print(metrics.render())
    """

    name = "metrics"

    def __init__(self, engine: Optional[GestureEngine] = None):
        super().__init__()
        self.engine = engine
        self._gesture_counts: Counter = Counter()
        self._lock = threading.Lock()

        self._confidence = _Histogram([0.5, 0.6, 0.7, 0.8, 0.9, 0.95, 1.0])
        # Latency buckets from 1ms to 100ms
        self._latency = _Histogram(
            [0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050, 0.100]
        )
        self._start_time = time.time()

    def on_gesture_detected(self, event: GestureEvent):
        self.record_gesture(event.type.value)
        self._confidence.observe(event.confidence)

    def record_gesture(self, name: str):
        with self._lock:
            self._gesture_counts[name] += 1

    def record_latency(self, seconds: float):
        self._latency.observe(seconds)

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines += _block(
            "gesture_control_uptime_seconds", "gauge", "Time since the collector started",
            [f"gesture_control_uptime_seconds {uptime:.1f}"],
        )

        with self._lock:
            counts = sorted(self._gesture_counts.items())
        lines += _block(
            "gesture_control_gestures_total", "counter", "Gesture events by type",
            [f'gesture_control_gestures_total{{gesture="{name}"}} {count}' for name, count in counts],
        )

        lines.append(self._confidence.render(
            "gesture_control_gesture_confidence", "Confidence of emitted gesture events"
        ))
        lines.append("")
        lines.append(self._latency.render(
            "gesture_control_frame_latency_seconds", "Frame processing latency in seconds"
        ))
        lines.append("")

        if self.engine is not None:
            lines += self._render_engine(self.engine)

        return "\n".join(lines) + "\n"

    @staticmethod
    def _render_engine(engine: GestureEngine) -> list[str]:
        lines: list[str] = []
        stats = engine.stats
        lines += _block(
            "gesture_control_frames_total", "counter", "Frames received by the engine",
            [f"gesture_control_frames_total {stats.frames_received}"],
        )
        lines += _block(
            "gesture_control_frames_dropped_total", "counter", "Frames without a usable hand",
            [f"gesture_control_frames_dropped_total {stats.frames_dropped}"],
        )

        bus_stats = engine.bus.statistics()
        lines += _block(
            "gesture_control_detection_rate", "gauge", "Gesture events per second",
            [f"gesture_control_detection_rate {bus_stats.detection_rate:.4f}"],
        )
        lines += _block(
            "gesture_control_average_confidence", "gauge", "Mean confidence of all events",
            [f"gesture_control_average_confidence {bus_stats.average_confidence:.4f}"],
        )
        lines += _block(
            "gesture_control_active_gestures", "gauge", "Gesture types seen in the active window",
            [f"gesture_control_active_gestures {len(engine.bus.active_gestures())}"],
        )

        outcomes = engine.dispatcher.outcomes()
        ok = sum(1 for o in outcomes if o.ok)
        lines += _block(
            "gesture_control_actions_total", "counter", "Attempted actions by result",
            [
                f'gesture_control_actions_total{{result="ok"}} {ok}',
                f'gesture_control_actions_total{{result="error"}} {len(outcomes) - ok}',
            ],
        )
        return lines
