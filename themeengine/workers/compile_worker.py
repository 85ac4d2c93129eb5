"""Off-main-thread theme compilation for live previews."""

from __future__ import annotations

import logging
from typing import TypedDict

from PySide6.QtCore import QCoreApplication, QObject, QThread, Signal, Slot

from themeengine.themes.compiler import compile_theme_artifact, count_changed_tokens
from themeengine.themes.constants import THEME_COMPILE_THRESHOLD
from themeengine.themes.models import CompiledCSSArtifact, ThemeConfig, clone_theme_config
from themeengine.workers.base_worker import CANCELLED, BaseWorker, run_request

logger = logging.getLogger("themeengine.workers")


class CompileResponse(TypedDict, total=False):
    id: int
    css: str
    hash: str
    error: str


def compile_request(request_id: int, theme: ThemeConfig) -> CompileResponse:
    """Compile theme and report the outcome as a message; compiler errors never propagate."""
    return run_request(request_id, lambda: _compile_fields(theme))


def _compile_fields(theme: ThemeConfig) -> dict[str, str]:
    artifact = compile_theme_artifact(theme)
    return {"css": artifact.css, "hash": artifact.hash}


class ThemeCompileWorker(BaseWorker):
    """Compiles one draft snapshot; emits a CompileResponse through ``finished``."""

    def __init__(self, request_id: int, theme: ThemeConfig) -> None:
        super().__init__(request_id)
        self._theme = clone_theme_config(theme)

    def execute(self) -> dict[str, str]:
        return _compile_fields(self._theme)


class PreviewCompiler(QObject):
    """Keeps a draft's compiled CSS current without blocking the caller on large edits.

    Small drafts compile inline. Drafts that change more than ``threshold``
    tokens relative to the committed theme compile on a worker thread when a
    Qt event loop is available. Only the response to the most recent request
    is applied; older responses are dropped.
    """

    compiled = Signal(object)  # CompiledCSSArtifact

    def __init__(
        self,
        base: ThemeConfig,
        *,
        threshold: int = THEME_COMPILE_THRESHOLD,
        use_threads: bool = True,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._base = clone_theme_config(base)
        self._threshold = threshold
        self._use_threads = use_threads
        self._latest_id = 0
        self._latest_draft: ThemeConfig | None = None
        self._artifact: CompiledCSSArtifact | None = None
        self._compiling = False
        self._active: dict[int, tuple[QThread, ThemeCompileWorker]] = {}

    @property
    def is_compiling(self) -> bool:
        return self._compiling

    @property
    def latest_request_id(self) -> int:
        return self._latest_id

    @property
    def artifact(self) -> CompiledCSSArtifact | None:
        return self._artifact

    def set_base(self, base: ThemeConfig) -> None:
        self._base = clone_theme_config(base)

    def request(self, draft: ThemeConfig) -> int:
        """Schedule compilation of draft and return its request id."""
        self._latest_id += 1
        request_id = self._latest_id
        self._latest_draft = clone_theme_config(draft)
        for _, worker in self._active.values():
            worker.cancel()

        changed = count_changed_tokens(self._base, draft)
        if changed > self._threshold and self._threads_available():
            self._compiling = True
            self._start_worker(request_id, self._latest_draft)
        else:
            self.handle_response(compile_request(request_id, self._latest_draft))
        return request_id

    @Slot(object)
    def handle_response(self, response: CompileResponse) -> None:
        self._release(response.get("id"))
        if response.get("id") != self._latest_id:
            return
        if "error" in response:
            if response["error"] == CANCELLED:
                return
            logger.warning("falling back to inline compile: %s", response["error"])
            if self._latest_draft is None:
                return
            artifact = compile_theme_artifact(self._latest_draft)
        else:
            artifact = CompiledCSSArtifact(css=response["css"], hash=response["hash"])
        self._artifact = artifact
        self._compiling = False
        self.compiled.emit(artifact)

    def shutdown(self) -> None:
        for thread, worker in list(self._active.values()):
            worker.cancel()
            thread.quit()
            thread.wait()
        self._active.clear()

    def _threads_available(self) -> bool:
        return self._use_threads and QCoreApplication.instance() is not None

    def _start_worker(self, request_id: int, draft: ThemeConfig) -> None:
        worker = ThemeCompileWorker(request_id, draft)
        thread = QThread()
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self.handle_response)
        worker.finished.connect(thread.quit)
        self._active[request_id] = (thread, worker)
        thread.start()

    def _release(self, request_id: int | None) -> None:
        entry = self._active.pop(request_id, None)
        if entry is None:
            return
        thread, _ = entry
        thread.quit()
        thread.wait()
