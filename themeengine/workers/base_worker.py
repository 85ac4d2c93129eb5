"""Request-scoped worker whose outcome always travels back as a message."""

from __future__ import annotations

import logging
from threading import Event
from typing import Any, Callable, Mapping

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger("themeengine.workers")

CANCELLED = "cancelled"


def run_request(request_id: int, job: Callable[[], Mapping[str, Any]]) -> dict[str, Any]:
    """Run job and tag its result with request_id.

    Any exception becomes ``{"id": request_id, "error": "<Type>: <message>"}``
    so nothing raised inside a job crosses the thread boundary.
    """
    try:
        result = job()
    except Exception as exc:
        logger.warning("request %s failed: %s", request_id, exc)
        return {"id": request_id, "error": f"{type(exc).__name__}: {exc}"}
    return {"id": request_id, **result}


class BaseWorker(QObject):
    """Runs one request on whatever thread it is moved to.

    Subclasses implement ``execute``; ``run`` wraps it so ``finished`` always
    carries a dict with the request id and either the result fields or
    ``error``. A worker cancelled before it starts reports ``error="cancelled"``.
    """

    started = Signal()
    finished = Signal(object)  # {"id": ..., **result} or {"id": ..., "error": ...}
    cancelled = Signal()

    def __init__(self, request_id: int, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._request_id = request_id
        self._cancel_event = Event()

    @property
    def request_id(self) -> int:
        return self._request_id

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def _is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self) -> None:
        self.started.emit()
        if self._is_cancelled:
            self.cancelled.emit()
            self.finished.emit({"id": self._request_id, "error": CANCELLED})
            return
        self.finished.emit(run_request(self._request_id, self.execute))

    def execute(self) -> Mapping[str, Any]:
        raise NotImplementedError
