"""In-memory operational counters for the theme store and preview cache.

Each recorded event bumps a counter keyed by ``(event, outcome)`` and is also
written to the ``themeengine.metrics`` logger at DEBUG. Recorded fields are
limited to outcome, latency, row counts and TTLs; theme contents never leave
the process through this path.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

logger = logging.getLogger("themeengine.metrics")


@dataclass(frozen=True, slots=True)
class MetricEvent:
    name: str
    outcome: str
    fields: dict[str, Any]


@dataclass
class MetricsRecorder:
    """Counts events and keeps a bounded tail of the most recent ones."""

    history_size: int = 200
    counts: Counter = field(default_factory=Counter)
    recent: list[MetricEvent] = field(default_factory=list)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def record(self, name: str, outcome: str, **fields: Any) -> None:
        event = MetricEvent(name=name, outcome=outcome, fields=dict(fields))
        with self._lock:
            self.counts[(name, outcome)] += 1
            self.recent.append(event)
            if len(self.recent) > self.history_size:
                del self.recent[: len(self.recent) - self.history_size]
        logger.debug(
            "%s outcome=%s %s",
            name,
            outcome,
            " ".join(f"{key}={value}" for key, value in sorted(fields.items())),
        )

    def count(self, name: str, outcome: str) -> int:
        with self._lock:
            return self.counts[(name, outcome)]

    def last(self, name: str) -> MetricEvent | None:
        with self._lock:
            for event in reversed(self.recent):
                if event.name == name:
                    return event
        return None

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {f"{name}.{outcome}": value for (name, outcome), value in sorted(self.counts.items())}

    def reset(self) -> None:
        with self._lock:
            self.counts.clear()
            self.recent.clear()
