"""Batched, write-skipping application of CSS custom properties to a style root."""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Protocol

from PySide6.QtCore import QCoreApplication, QTimer

logger = logging.getLogger("themeengine.client")

FRAME_INTERVAL_MS = 16


class StyleRoot(Protocol):
    """The element whose inline style carries the theme variables."""

    def set_property(self, name: str, value: str) -> None: ...


class FrameScheduler(Protocol):
    def request_frame(self, callback: Callable[[], None]) -> object: ...

    def cancel_frame(self, handle: object) -> None: ...


class InlineStyleDeclaration:
    """In-memory style root, e.g. for server-rendered ``<html style="...">``."""

    def __init__(self) -> None:
        self._properties: dict[str, str] = {}

    def set_property(self, name: str, value: str) -> None:
        self._properties[name] = value

    def get_property_value(self, name: str) -> str:
        return self._properties.get(name, "")

    @property
    def css_text(self) -> str:
        return " ".join(f"{name}: {value};" for name, value in self._properties.items())


class QtFrameScheduler:
    """Runs callbacks one frame later on the running Qt event loop."""

    def __init__(self, interval_ms: int = FRAME_INTERVAL_MS) -> None:
        self._interval_ms = interval_ms

    @staticmethod
    def is_available() -> bool:
        return QCoreApplication.instance() is not None

    def request_frame(self, callback: Callable[[], None]) -> QTimer:
        timer = QTimer()
        timer.setSingleShot(True)
        timer.setInterval(self._interval_ms)

        def _fire() -> None:
            timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        timer.start()
        return timer

    def cancel_frame(self, handle: object) -> None:
        if isinstance(handle, QTimer):
            handle.stop()
            handle.deleteLater()


def normalize_css_var_name(name: str) -> str:
    """``sm-accent`` and ``--sm-accent`` both become ``--sm-accent``."""
    return "--" + name.strip().lstrip("-")


class ThemeDomUpdater:
    """Coalesces variable updates into at most one write pass per frame.

    One instance per page. A value is only written when it differs from the
    value this updater last applied for the same property.
    """

    def __init__(self, root: StyleRoot, scheduler: FrameScheduler | None = None) -> None:
        self._root = root
        self._scheduler = scheduler
        self._pending: dict[str, str] = {}
        self._last_applied: dict[str, str] = {}
        self._handle: object | None = None
        self._handle_scheduler: FrameScheduler | None = None

    @property
    def has_pending_flush(self) -> bool:
        return self._handle is not None

    @property
    def applied(self) -> dict[str, str]:
        return dict(self._last_applied)

    def queue_theme_dom_updates(self, patch: Mapping[str, str]) -> None:
        for name, value in patch.items():
            self._pending[normalize_css_var_name(name)] = str(value)
        if not self._pending or self._handle is not None:
            return
        scheduler = self._resolve_scheduler()
        if scheduler is None:
            self.flush()
            return
        self._handle_scheduler = scheduler
        self._handle = scheduler.request_frame(self.flush)

    def flush(self) -> int:
        """Apply pending values now; returns the number of properties written."""
        self._handle = None
        self._handle_scheduler = None
        pending, self._pending = self._pending, {}
        writes = 0
        for name, value in pending.items():
            if self._last_applied.get(name) == value:
                continue
            self._root.set_property(name, value)
            self._last_applied[name] = value
            writes += 1
        if writes:
            logger.debug("applied %d theme variables", writes)
        return writes

    def reset_theme_dom_update_queue(self) -> None:
        """Forget pending and applied state, e.g. when a new session takes over the page."""
        if self._handle is not None and self._handle_scheduler is not None:
            self._handle_scheduler.cancel_frame(self._handle)
        self._handle = None
        self._handle_scheduler = None
        self._pending.clear()
        self._last_applied.clear()

    def _resolve_scheduler(self) -> FrameScheduler | None:
        if self._scheduler is not None:
            return self._scheduler
        if QtFrameScheduler.is_available():
            self._scheduler = QtFrameScheduler()
            return self._scheduler
        return None
