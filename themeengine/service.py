"""Theme persistence, preview and stylesheet service used by the routing layer."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Mapping

from PySide6.QtCore import QObject, Signal

from themeengine.client.stylesheet_sync import normalize_etag
from themeengine.core.metrics import MetricsRecorder
from themeengine.core.preview_cache import PreviewCache
from themeengine.core.theme_repository import ThemeRepository
from themeengine.themes.compiler import compile_theme_artifact
from themeengine.themes.constants import DEFAULT_PREVIEW_TTL_SECONDS, THEME_COMPILE_THRESHOLD
from themeengine.themes.models import CompiledCSSArtifact, LimitIssue, ThemeConfig
from themeengine.themes.schema import check_theme_limits, validate_theme
from themeengine.workers.compile_worker import PreviewCompiler

logger = logging.getLogger("themeengine.service")

CSS_CONTENT_TYPE = "text/css; charset=utf-8"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
REVALIDATE_CACHE_CONTROL = "no-cache"
CSS_CACHE_SIZE = 8


@dataclass(frozen=True, slots=True)
class CssResponse:
    status: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)


def css_fingerprint(theme: ThemeConfig) -> str:
    """Digest of the parts of a theme that reach the stylesheet (fonts and cssVars)."""
    data = theme.to_dict()
    source = json.dumps({"fonts": data["fonts"], "cssVars": data["cssVars"]}, sort_keys=True)
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


class ThemeService(QObject):
    """Commit, preview and serve the single application theme."""

    theme_changed = Signal(int)  # committed metadata.version

    def __init__(
        self,
        repository: ThemeRepository,
        *,
        preview_cache: PreviewCache | None = None,
        preview_ttl_seconds: float = DEFAULT_PREVIEW_TTL_SECONDS,
        compile_threshold: int = THEME_COMPILE_THRESHOLD,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._repository = repository
        if preview_cache is None:
            preview_cache = PreviewCache(metrics=repository.metrics)
        self._previews = preview_cache
        self._preview_ttl_seconds = preview_ttl_seconds
        self._compile_threshold = compile_threshold
        self._css_cache: OrderedDict[str, CompiledCSSArtifact] = OrderedDict()
        self._css_cache_lock = threading.Lock()

    @property
    def metrics(self) -> MetricsRecorder:
        return self._repository.metrics

    # -- committed theme --

    def get_theme(self) -> ThemeConfig:
        return self._repository.get_theme()

    def get_compiled_artifact(self) -> CompiledCSSArtifact:
        return self._compile_cached(self._repository.get_theme())

    def get_compiled_css(
        self,
        theme_hash: str | None = None,
        *,
        if_none_match: str | None = None,
    ) -> CssResponse:
        """Serve the committed theme's CSS with its hash as the ETag.

        A request that names the current hash may be cached forever; any other
        request must revalidate. A matching ``If-None-Match`` yields 304.
        """
        artifact = self.get_compiled_artifact()
        headers = {
            "Content-Type": CSS_CONTENT_TYPE,
            "ETag": artifact.hash,
            "Cache-Control": (
                IMMUTABLE_CACHE_CONTROL if theme_hash == artifact.hash else REVALIDATE_CACHE_CONTROL
            ),
        }
        if theme_hash is not None and theme_hash != artifact.hash:
            logger.debug("stale stylesheet hash requested: %s (current %s)", theme_hash, artifact.hash)
        if normalize_etag(if_none_match) == artifact.hash:
            return CssResponse(status=304, body="", headers=headers)
        return CssResponse(status=200, body=artifact.css, headers=headers)

    def merge_theme(self, partial: Mapping[str, Any]) -> ThemeConfig:
        """Merge partial into the committed theme without writing anything."""
        current = self._repository.get_theme()
        return self._repository.merge_theme(current, partial)

    def update_theme(self, theme: ThemeConfig, updated_by: str) -> ThemeConfig:
        committed = self._repository.update_theme(theme, updated_by)
        self.theme_changed.emit(committed.metadata.version)
        return committed

    def patch_theme(self, partial: Mapping[str, Any], updated_by: str) -> ThemeConfig:
        committed = self._repository.patch_theme(partial, updated_by)
        self.theme_changed.emit(committed.metadata.version)
        return committed

    def reset_theme(self) -> ThemeConfig:
        self._repository.reset_theme()
        current = self._repository.get_theme()
        self.theme_changed.emit(current.metadata.version)
        return current

    def check_limits(self, theme: ThemeConfig | None = None) -> list[LimitIssue]:
        target = theme if theme is not None else self._repository.get_theme()
        return check_theme_limits(target)

    # -- previews --

    def set_preview(self, key: str, theme: ThemeConfig, ttl_seconds: float | None = None) -> float:
        draft = validate_theme(theme)
        ttl = self._preview_ttl_seconds if ttl_seconds is None else ttl_seconds
        return self._previews.set_theme_preview(key, draft, ttl)

    def get_preview(self, key: str) -> ThemeConfig | None:
        return self._previews.get_theme_preview(key)

    def clear_preview(self, key: str) -> None:
        self._previews.clear_theme_preview(key)

    def get_preview_css(self, key: str) -> CompiledCSSArtifact | None:
        draft = self._previews.get_theme_preview(key)
        if draft is None:
            return None
        return self._compile_cached(draft)

    def preview_compiler(self, *, use_threads: bool = True) -> PreviewCompiler:
        """A PreviewCompiler based on the committed theme, using the configured compile threshold."""
        return PreviewCompiler(
            self._repository.get_theme(),
            threshold=self._compile_threshold,
            use_threads=use_threads,
            parent=self,
        )

    def _compile_cached(self, theme: ThemeConfig) -> CompiledCSSArtifact:
        key = css_fingerprint(theme)
        with self._css_cache_lock:
            artifact = self._css_cache.get(key)
            if artifact is not None:
                self._css_cache.move_to_end(key)
        if artifact is not None:
            self.metrics.record("theme.css", "cache-hit", hash=artifact.hash)
            return artifact

        artifact = compile_theme_artifact(theme)
        with self._css_cache_lock:
            self._css_cache[key] = artifact
            while len(self._css_cache) > CSS_CACHE_SIZE:
                self._css_cache.popitem(last=False)
        self.metrics.record("theme.css", "compiled", hash=artifact.hash)
        return artifact
