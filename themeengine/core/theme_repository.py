"""SQLite-backed single-row theme store with optimistic concurrency."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

from themeengine.core.metrics import MetricsRecorder
from themeengine.errors import ErrorCode, ThemeEngineError, ThemeValidationError, ThemeVersionConflictError
from themeengine.themes.constants import THEME_SETTINGS_KEY
from themeengine.themes.defaults import default_theme
from themeengine.themes.models import ThemeConfig, clone_theme_config
from themeengine.themes.schema import ThemeConfigPartial, parse_theme_config, parse_theme_partial

logger = logging.getLogger("themeengine.repository")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS settings (
    key          TEXT    PRIMARY KEY,
    value        TEXT    NOT NULL,
    last_updated TEXT    NOT NULL
);
"""

_MERGE_SECTIONS: tuple[tuple[str, ...], ...] = (
    ("logo",),
    ("fonts", "sans"),
    ("fonts", "mono"),
    ("cssVars", "light"),
    ("cssVars", "dark"),
    ("metadata",),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def merge_theme_documents(base: ThemeConfig, partial: Mapping[str, Any]) -> ThemeConfig:
    """Shallow-merge a patch into each section of base, then validate the result as a full theme.

    Neither argument is mutated. Raises ThemeValidationError when either the
    patch or the merged document is invalid.
    """
    cleaned = parse_theme_partial(partial)
    merged = base.to_dict()
    for section_path in _MERGE_SECTIONS:
        patch = _dig(cleaned, section_path)
        if not patch:
            continue
        parent = merged
        for key in section_path[:-1]:
            parent = parent.setdefault(key, {})
        parent[section_path[-1]] = {**parent.get(section_path[-1], {}), **patch}
    return parse_theme_config(merged)


def _dig(data: Mapping[str, Any], path: tuple[str, ...]) -> Mapping[str, Any] | None:
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current if isinstance(current, Mapping) else None


class ThemeRepository:
    """Stores the committed theme as one row of the ``settings`` table.

    ``metadata.version`` inside the stored JSON is the only concurrency token:
    every write is a compare-and-swap against the version the caller read.
    Conflicts are raised, never retried here. The connection may be shared by
    several threads; a lock serializes its transactions so each concurrent
    writer either commits or gets a version conflict.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        metrics: MetricsRecorder | None = None,
        clock: Callable[[], datetime] = utc_now,
        busy_timeout: float = 5.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._metrics = metrics or MetricsRecorder()
        self._clock = clock
        self._busy_timeout = busy_timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def metrics(self) -> MetricsRecorder:
        return self._metrics

    def open(self) -> None:
        """Open the store and initialize schema."""
        if self._conn is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._db_path,
            timeout=self._busy_timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute(SCHEMA_SQL)
        self._conn = conn

    def close(self) -> None:
        """Close the active DB connection."""
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None

    def __enter__(self) -> ThemeRepository:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- reads --

    def get_theme(self) -> ThemeConfig:
        """Return the committed theme, or the default when the row is absent or unusable.

        Never raises: a store that is closed or failing is served the default
        theme and recorded as ``fallback-error``.
        """
        started = time.perf_counter()
        try:
            with self._lock:
                rows = self._conn_or_raise().execute(
                    "SELECT value FROM settings WHERE key = ?",
                    (THEME_SETTINGS_KEY,),
                ).fetchall()
        except (sqlite3.Error, ThemeEngineError) as exc:
            logger.warning("theme read failed, serving default: %s", type(exc).__name__)
            self._record_read("fallback-error", started, row_count=0)
            return default_theme()

        if not rows:
            self._record_read("fallback-empty", started, row_count=0)
            return default_theme()

        try:
            theme = parse_theme_config(json.loads(rows[0][0]))
        except (json.JSONDecodeError, TypeError, ThemeValidationError) as exc:
            logger.warning("stored theme is unusable, serving default: %s", type(exc).__name__)
            self._record_read("fallback-invalid", started, row_count=len(rows))
            return default_theme()

        self._record_read("db-hit", started, row_count=len(rows))
        return theme

    def get_last_updated(self) -> str | None:
        with self._lock:
            row = self._conn_or_raise().execute(
                "SELECT last_updated FROM settings WHERE key = ?",
                (THEME_SETTINGS_KEY,),
            ).fetchone()
        return None if row is None else str(row[0])

    # -- writes --

    def update_theme(self, theme: ThemeConfig, updated_by: str) -> ThemeConfig:
        """Commit theme as version ``theme.metadata.version + 1``.

        Raises ThemeVersionConflictError when the stored row holds any version
        other than ``theme.metadata.version``.
        """
        previous_version = theme.metadata.version
        now = iso_timestamp(self._clock())
        candidate = clone_theme_config(theme)
        candidate.metadata.version = previous_version + 1
        candidate.metadata.updated_at = now
        candidate.metadata.updated_by = updated_by
        committed = parse_theme_config(candidate.to_dict())
        payload = json.dumps(committed.to_dict(), separators=(",", ":"), ensure_ascii=False)

        started = time.perf_counter()
        with self._lock:
            matched = self._compare_and_swap(payload, now, previous_version)
        if not matched:
            self._metrics.record(
                "theme.write",
                "conflict",
                latency_ms=_elapsed_ms(started),
                expected_version=previous_version,
            )
            raise ThemeVersionConflictError(previous_version)

        self._metrics.record(
            "theme.write",
            "committed",
            latency_ms=_elapsed_ms(started),
            version=committed.metadata.version,
        )
        logger.info("theme committed version=%s by=%s", committed.metadata.version, updated_by)
        return committed

    def merge_theme(self, base: ThemeConfig, partial: Mapping[str, Any]) -> ThemeConfig:
        return merge_theme_documents(base, partial)

    def patch_theme(self, partial: Mapping[str, Any], updated_by: str) -> ThemeConfig:
        """Validate, merge into the current theme and commit.

        The read and the write are not atomic; a concurrent commit in between
        surfaces as ThemeVersionConflictError and the caller decides whether
        to re-read and retry.
        """
        cleaned: ThemeConfigPartial = parse_theme_partial(partial)
        current = self.get_theme()
        merged = merge_theme_documents(current, cleaned)
        return self.update_theme(merged, updated_by)

    def reset_theme(self) -> None:
        """Delete the stored row; reads fall back to the default theme."""
        with self._lock:
            conn = self._conn_or_raise()
            conn.execute("BEGIN IMMEDIATE")
            try:
                cursor = conn.execute("DELETE FROM settings WHERE key = ?", (THEME_SETTINGS_KEY,))
                conn.commit()
            except sqlite3.Error:
                if conn.in_transaction:
                    conn.rollback()
                raise
            deleted = cursor.rowcount
        self._metrics.record("theme.reset", "deleted" if deleted else "absent")
        logger.info("theme reset rows=%s", deleted)

    def _compare_and_swap(self, payload: str, now: str, expected_version: int) -> bool:
        """Write payload if the stored version is expected_version or no row exists. Caller holds the lock."""
        conn = self._conn_or_raise()
        conn.execute("BEGIN IMMEDIATE")
        try:
            cursor = conn.execute(
                """
                UPDATE settings
                SET value = ?, last_updated = ?
                WHERE key = ?
                  AND json_extract(value, '$.metadata.version') = ?
                """,
                (payload, now, THEME_SETTINGS_KEY, expected_version),
            )
            matched = cursor.rowcount
            if matched == 0:
                cursor = conn.execute(
                    """
                    INSERT INTO settings (key, value, last_updated)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO NOTHING
                    """,
                    (THEME_SETTINGS_KEY, payload, now),
                )
                matched = cursor.rowcount
            if matched == 0:
                conn.rollback()
                return False
            conn.commit()
        except sqlite3.Error:
            if conn.in_transaction:
                conn.rollback()
            raise
        return True

    def _record_read(self, outcome: str, started: float, *, row_count: int) -> None:
        self._metrics.record(
            "theme.read",
            outcome,
            latency_ms=_elapsed_ms(started),
            row_count=row_count,
        )

    def _conn_or_raise(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ThemeEngineError(ErrorCode.STORE_UNAVAILABLE, message="ThemeRepository is not open")
        return self._conn


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)
