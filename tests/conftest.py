"""Shared pytest fixtures."""

import pytest
from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer

_app = None


@pytest.fixture
def qt_app():
    """The process-wide QCoreApplication, created on first use and kept for the session."""
    global _app
    if QCoreApplication.instance() is None:
        _app = QCoreApplication([])
    return QCoreApplication.instance()


@pytest.fixture
def spin_event_loop(qt_app):
    """Run the Qt event loop until ``stop`` is called or ``timeout_ms`` passes."""

    def spin(timeout_ms: int, stop=None) -> QEventLoop:
        loop = QEventLoop()
        if stop is not None:
            stop.connect(lambda *_: loop.quit())
        QTimer.singleShot(timeout_ms, loop.quit)
        loop.exec()
        return loop

    return spin
