"""Process-local TTL cache for unsaved editor drafts.

Entries are evicted lazily: an expired entry is removed the next time its
key is read. Nothing sweeps in the background, so an expired entry that is
never read again stays in memory until it is cleared or the process exits.
Sessions are few and short-lived, which keeps that bounded in practice.

The cache is not shared between processes. Behind a load balancer, a
preview is only visible to requests that land on the instance that stored it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from themeengine.core.metrics import MetricsRecorder
from themeengine.themes.constants import DEFAULT_PREVIEW_TTL_SECONDS
from themeengine.themes.models import ThemeConfig, clone_theme_config


@dataclass(slots=True)
class PreviewEntry:
    theme: ThemeConfig
    expires_at: float


class PreviewCache:
    """Maps an editor/session key to a private snapshot of its draft theme."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._clock = clock
        self._metrics = metrics or MetricsRecorder()
        self._entries: dict[str, PreviewEntry] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def set_theme_preview(
        self,
        key: str,
        theme: ThemeConfig,
        ttl_seconds: float = DEFAULT_PREVIEW_TTL_SECONDS,
    ) -> float:
        """Store a copy of theme under key and return its expiry instant.

        The instant is in the clock's units, seconds since the epoch with the
        default ``time.time`` clock. It is not milliseconds: multiply by 1000
        before handing it to a JavaScript ``Date``.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        snapshot = clone_theme_config(theme)
        expires_at = self._clock() + ttl_seconds
        with self._lock:
            self._entries[key] = PreviewEntry(theme=snapshot, expires_at=expires_at)
        self._metrics.record("preview.set", "stored", ttl_seconds=ttl_seconds)
        return expires_at

    def get_theme_preview(self, key: str) -> ThemeConfig | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                outcome = "miss"
            elif now >= entry.expires_at:
                del self._entries[key]
                outcome = "expired"
            else:
                outcome = "hit"
                snapshot = clone_theme_config(entry.theme)
                remaining = entry.expires_at - now

        if outcome == "hit":
            self._metrics.record("preview.get", outcome, remaining_ttl_seconds=round(remaining, 3))
            return snapshot
        self._metrics.record("preview.get", outcome)
        return None

    def clear_theme_preview(self, key: str) -> None:
        with self._lock:
            existed = self._entries.pop(key, None) is not None
        self._metrics.record("preview.clear", "removed" if existed else "absent")
