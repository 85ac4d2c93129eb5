"""Application settings via QSettings."""

from __future__ import annotations

import os
from pathlib import Path

from PySide6.QtCore import QSettings

from themeengine.themes.constants import DEFAULT_PREVIEW_TTL_SECONDS, THEME_COMPILE_THRESHOLD

DEFAULT_THEME_BASE_URL = "http://localhost:3000"


class AppSettings:
    """Wraps QSettings for persistent engine configuration.

    With ``ini_path`` the values live in that INI file instead of the
    platform's native settings store.
    """

    def __init__(self, ini_path: str | Path | None = None) -> None:
        if ini_path is None:
            self._qs = QSettings("ThemeEngine", "ThemeEngine")
        else:
            self._qs = QSettings(str(ini_path), QSettings.Format.IniFormat)

    def sync(self) -> None:
        self._qs.sync()

    # -- store --

    @property
    def db_path(self) -> str:
        raw = self._qs.value("store/db_path", "", type=str)
        value = (raw or "").strip()
        return value or str(self.app_data_dir / "theme.db")

    @db_path.setter
    def db_path(self, value: str) -> None:
        self._qs.setValue("store/db_path", (value or "").strip())

    # -- preview --

    @property
    def preview_ttl_seconds(self) -> int:
        value = self._qs.value("preview/ttl_seconds", DEFAULT_PREVIEW_TTL_SECONDS, type=int)
        return value if value > 0 else DEFAULT_PREVIEW_TTL_SECONDS

    @preview_ttl_seconds.setter
    def preview_ttl_seconds(self, value: int) -> None:
        if value <= 0:
            value = DEFAULT_PREVIEW_TTL_SECONDS
        self._qs.setValue("preview/ttl_seconds", int(value))

    @property
    def compile_threshold(self) -> int:
        value = self._qs.value("preview/compile_threshold", THEME_COMPILE_THRESHOLD, type=int)
        return value if value >= 0 else THEME_COMPILE_THRESHOLD

    @compile_threshold.setter
    def compile_threshold(self, value: int) -> None:
        self._qs.setValue("preview/compile_threshold", max(0, int(value)))

    # -- client --

    @property
    def theme_base_url(self) -> str:
        raw = self._qs.value("client/theme_base_url", DEFAULT_THEME_BASE_URL, type=str)
        value = (raw or "").strip().rstrip("/")
        return value or DEFAULT_THEME_BASE_URL

    @theme_base_url.setter
    def theme_base_url(self, value: str) -> None:
        cleaned = (value or "").strip().rstrip("/") or DEFAULT_THEME_BASE_URL
        self._qs.setValue("client/theme_base_url", cleaned)

    # -- helpers --

    @property
    def app_data_dir(self) -> Path:
        path = self._app_data_dir()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def _app_data_dir() -> Path:
        base = Path(os.environ.get("APPDATA", Path.home() / ".config"))
        return base / "themeengine"
