"""Prometheus-compatible metrics for the glove pipeline.

Exposes /metrics in Prometheus text exposition format.
No external dependencies — generates the text format directly.

Tracked metrics:
- glove_engine_frames_total (counter)
- glove_engine_frames_rejected_total (counter)
- glove_engine_gestures_total (counter, by gesture name)
- glove_engine_transform_modes_total (counter, by mode)
- glove_engine_control_messages_total (counter, by message type)
- glove_engine_dropped_messages_total (counter)
- glove_engine_frame_latency_seconds (histogram)
- glove_engine_active_subscribers (gauge)
"""

from __future__ import annotations

import time
import threading
from collections import Counter


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


def _counter_block(name: str, help_text: str, label: str, counts: Counter) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    lines.append("")
    return lines


class MetricsCollector:
    """Collects and exposes Prometheus metrics for the glove pipeline."""

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._mode_counts: Counter = Counter()
        self._control_counts: Counter = Counter()
        self._frames_total = 0
        self._frames_rejected = 0
        self._dropped_messages = 0
        self._active_connections = 0
        self._lock = threading.Lock()

        # Classification is sub-millisecond; buckets from 0.1ms to 50ms
        self._latency = _Histogram(
            [0.0001, 0.0005, 0.001, 0.002, 0.005, 0.010, 0.050]
        )

        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, gesture: str, transform_mode: str):
        with self._lock:
            self._frames_total += 1
            self._gesture_counts[gesture] += 1
            self._mode_counts[transform_mode] += 1
        self._latency.observe(latency_seconds)

    def record_rejected(self):
        with self._lock:
            self._frames_rejected += 1

    def record_control(self, message_type: str):
        with self._lock:
            self._control_counts[message_type] += 1

    def record_dropped(self):
        with self._lock:
            self._dropped_messages += 1

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP glove_engine_uptime_seconds Time since server start")
        lines.append("# TYPE glove_engine_uptime_seconds gauge")
        lines.append(f"glove_engine_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            lines.append("# HELP glove_engine_frames_total Total sensor frames classified")
            lines.append("# TYPE glove_engine_frames_total counter")
            lines.append(f"glove_engine_frames_total {self._frames_total}")
            lines.append("")

            lines.append("# HELP glove_engine_frames_rejected_total Sensor frames rejected by validation")
            lines.append("# TYPE glove_engine_frames_rejected_total counter")
            lines.append(f"glove_engine_frames_rejected_total {self._frames_rejected}")
            lines.append("")

            lines.extend(_counter_block(
                "glove_engine_gestures_total", "Classified gestures by name",
                "gesture", self._gesture_counts,
            ))
            lines.extend(_counter_block(
                "glove_engine_transform_modes_total", "Mapped transform modes",
                "mode", self._mode_counts,
            ))
            lines.extend(_counter_block(
                "glove_engine_control_messages_total", "Control messages by type",
                "type", self._control_counts,
            ))

            lines.append("# HELP glove_engine_dropped_messages_total Messages dropped from full subscriber queues")
            lines.append("# TYPE glove_engine_dropped_messages_total counter")
            lines.append(f"glove_engine_dropped_messages_total {self._dropped_messages}")
            lines.append("")

        lines.append(self._latency.render(
            "glove_engine_frame_latency_seconds",
            "Frame processing latency in seconds"
        ))
        lines.append("")

        lines.append("# HELP glove_engine_active_subscribers Current event subscribers")
        lines.append("# TYPE glove_engine_active_subscribers gauge")
        lines.append(f"glove_engine_active_subscribers {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def frames_total(self) -> int:
        with self._lock:
            return self._frames_total

    @property
    def frames_rejected(self) -> int:
        with self._lock:
            return self._frames_rejected
