"""Tests for themeengine.core.theme_repository."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone

import pytest

from themeengine.core.metrics import MetricsRecorder
from themeengine.core.theme_repository import ThemeRepository, iso_timestamp, merge_theme_documents
from themeengine.errors import ErrorCode, ThemeEngineError, ThemeValidationError, ThemeVersionConflictError
from themeengine.themes.constants import THEME_SETTINGS_KEY
from themeengine.themes.defaults import DEFAULT_THEME, default_theme


def _fixed_clock() -> datetime:
    return datetime(2026, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "settings.db"


@pytest.fixture
def repo(db_path):
    repository = ThemeRepository(db_path, clock=_fixed_clock)
    repository.open()
    yield repository
    repository.close()


def _write_raw(db_path, value: str) -> None:
    conn = sqlite3.connect(db_path)
    conn.execute(
        "INSERT OR REPLACE INTO settings (key, value, last_updated) VALUES (?, ?, ?)",
        (THEME_SETTINGS_KEY, value, "2026-01-01T00:00:00Z"),
    )
    conn.commit()
    conn.close()


class TestReads:
    """Fallback behavior of get_theme."""

    def test_empty_store_serves_default(self, repo):
        theme = repo.get_theme()

        assert theme == DEFAULT_THEME
        assert repo.metrics.count("theme.read", "fallback-empty") == 1

    def test_default_is_a_private_copy(self, repo):
        theme = repo.get_theme()
        theme.css_vars.light["sm-accent"] = "#000000"

        assert repo.get_theme().css_vars.light["sm-accent"] != "#000000"
        assert DEFAULT_THEME.css_vars.light["sm-accent"] != "#000000"

    def test_corrupt_json_serves_default(self, repo, db_path):
        _write_raw(db_path, "{definitely not json")

        assert repo.get_theme() == DEFAULT_THEME
        assert repo.metrics.count("theme.read", "fallback-invalid") == 1

    def test_schema_invalid_row_serves_default(self, repo, db_path):
        _write_raw(db_path, '{"logo": {}}')

        assert repo.get_theme() == DEFAULT_THEME
        event = repo.metrics.last("theme.read")
        assert event is not None
        assert event.outcome == "fallback-invalid"
        assert event.fields["row_count"] == 1

    def test_unusable_row_is_logged_without_payload(self, repo, db_path, caplog):
        _write_raw(db_path, '{"secret": "do-not-log"}')

        with caplog.at_level("WARNING", logger="themeengine.repository"):
            repo.get_theme()

        assert "serving default" in caplog.text
        assert "do-not-log" not in caplog.text

    def test_committed_row_is_a_db_hit(self, repo):
        repo.update_theme(default_theme(), "alice")

        theme = repo.get_theme()

        assert theme.metadata.version == 2
        assert repo.metrics.count("theme.read", "db-hit") == 1
        assert repo.metrics.last("theme.read").fields["latency_ms"] >= 0

    def test_unopened_store_serves_default(self, db_path):
        repository = ThemeRepository(db_path)

        theme = repository.get_theme()

        assert theme == DEFAULT_THEME
        assert repository.metrics.count("theme.read", "fallback-error") == 1

    def test_unopened_store_rejects_writes(self, db_path):
        repository = ThemeRepository(db_path)
        with pytest.raises(ThemeEngineError) as excinfo:
            repository.update_theme(default_theme(), "alice")
        assert excinfo.value.code is ErrorCode.STORE_UNAVAILABLE


class TestWrites:
    """Versioned compare-and-swap writes."""

    def test_first_write_stores_version_two(self, repo):
        committed = repo.update_theme(default_theme(), "alice")

        assert committed.metadata.version == 2
        assert committed.metadata.updated_by == "alice"
        assert committed.metadata.updated_at == iso_timestamp(_fixed_clock())
        assert repo.get_last_updated() == "2026-03-01T12:30:00.000Z"

    def test_versions_are_monotonic(self, repo):
        theme = repo.get_theme()
        versions = []
        for _ in range(3):
            theme = repo.update_theme(theme, "alice")
            versions.append(theme.metadata.version)

        assert versions == [2, 3, 4]
        assert repo.get_theme().metadata.version == 4

    def test_stale_version_conflicts(self, repo):
        repo.update_theme(default_theme(), "alice")

        with pytest.raises(ThemeVersionConflictError) as excinfo:
            repo.update_theme(default_theme(), "bob")

        assert excinfo.value.expected_version == 1
        assert excinfo.value.code is ErrorCode.THEME_VERSION_CONFLICT
        assert repo.get_theme().metadata.updated_by == "alice"
        assert repo.metrics.count("theme.write", "conflict") == 1

    def test_update_does_not_mutate_argument(self, repo):
        theme = default_theme()
        repo.update_theme(theme, "alice")
        assert theme.metadata.version == 1
        assert theme.metadata.updated_by == "system"

    def test_invalid_theme_is_not_written(self, repo):
        theme = default_theme()
        theme.css_vars.light["sm-accent"] = "red; }"

        with pytest.raises(ThemeValidationError):
            repo.update_theme(theme, "alice")

        assert repo.get_last_updated() is None

    def test_two_writers_holding_same_version(self, db_path):
        with ThemeRepository(db_path) as first, ThemeRepository(db_path) as second:
            theme = first.update_theme(first.get_theme(), "setup")
            theme = first.update_theme(theme, "setup")
            assert theme.metadata.version == 3

            held_by_first = first.get_theme()
            held_by_second = second.get_theme()
            held_by_first.css_vars.light["sm-accent"] = "#111111"
            held_by_second.css_vars.light["sm-accent"] = "#222222"

            committed = first.update_theme(held_by_first, "first")
            with pytest.raises(ThemeVersionConflictError):
                second.update_theme(held_by_second, "second")

            stored = second.get_theme()
            assert committed.metadata.version == 4
            assert stored.metadata.version == 4
            assert stored.css_vars.light["sm-accent"] == "#111111"

    def test_concurrent_writers_exactly_one_wins(self, db_path):
        with ThemeRepository(db_path) as setup:
            base = setup.update_theme(setup.get_theme(), "setup")
            base = setup.update_theme(base, "setup")

        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def writer(name: str) -> None:
            with ThemeRepository(db_path) as repository:
                draft = base.clone()
                draft.css_vars.dark["sm-accent"] = "#abcdef"
                barrier.wait()
                try:
                    repository.update_theme(draft, name)
                    result = "committed"
                except ThemeVersionConflictError:
                    result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=writer, args=(f"writer-{i}",)) for i in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["committed", "conflict"]
        with ThemeRepository(db_path) as check:
            assert check.get_theme().metadata.version == 4

    def test_writers_sharing_one_repository(self, repo):
        """Threads on one connection each either commit or conflict, never a raw sqlite error."""
        for round_number in range(20):
            base = repo.get_theme()
            barrier = threading.Barrier(2)
            outcomes: list[str] = []
            lock = threading.Lock()

            def writer(name: str) -> None:
                barrier.wait()
                try:
                    repo.update_theme(base.clone(), name)
                    result = "committed"
                except ThemeVersionConflictError:
                    result = "conflict"
                except Exception as exc:
                    result = f"{type(exc).__name__}: {exc}"
                with lock:
                    outcomes.append(result)

            threads = [threading.Thread(target=writer, args=(f"writer-{i}",)) for i in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

            assert sorted(outcomes) == ["committed", "conflict"], f"round {round_number}: {outcomes}"
            assert repo.get_theme().metadata.version == base.metadata.version + 1

    def test_reset_restores_default(self, repo):
        repo.update_theme(default_theme(), "alice")

        repo.reset_theme()
        repo.reset_theme()

        assert repo.get_theme() == DEFAULT_THEME
        assert repo.metrics.count("theme.reset", "deleted") == 1
        assert repo.metrics.count("theme.reset", "absent") == 1

    def test_write_after_reset_starts_over(self, repo):
        theme = repo.update_theme(default_theme(), "alice")
        repo.update_theme(theme, "alice")
        repo.reset_theme()

        committed = repo.update_theme(repo.get_theme(), "bob")
        assert committed.metadata.version == 2


class TestMergeAndPatch:
    """Partial updates."""

    def test_merge_replaces_only_named_tokens(self):
        base = default_theme()
        merged = merge_theme_documents(base, {"cssVars": {"light": {"sm-accent": "#ff0000"}}})

        assert merged.css_vars.light["sm-accent"] == "#ff0000"
        assert merged.css_vars.dark == base.css_vars.dark
        assert {k: v for k, v in merged.css_vars.light.items() if k != "sm-accent"} == {
            k: v for k, v in base.css_vars.light.items() if k != "sm-accent"
        }
        assert base.css_vars.light["sm-accent"] != "#ff0000"

    def test_merge_font_slot_fields(self):
        merged = merge_theme_documents(
            default_theme(),
            {"fonts": {"sans": {"family": "Inter", "source": "google", "weights": [400, 600]}}},
        )

        assert merged.fonts.sans.family == "Inter"
        assert merged.fonts.sans.preload is True
        assert merged.fonts.mono.family == "Roboto Mono Variable"

    def test_merge_that_breaks_document_is_rejected(self):
        with pytest.raises(ThemeValidationError):
            merge_theme_documents(default_theme(), {"fonts": {"mono": {"source": "custom"}}})

    def test_end_to_end_patch_example(self, repo):
        """Default v1, patch sm-accent, merged validates, update yields v2."""
        current = repo.get_theme()
        assert current.metadata.version == 1

        merged = repo.merge_theme(current, {"cssVars": {"light": {"sm-accent": "oklch(0.6 0.2 30)"}}})
        committed = repo.update_theme(merged, "editor@example.com")

        assert committed.metadata.version == 2
        stored = repo.get_theme()
        assert stored.css_vars.light["sm-accent"] == "oklch(0.6 0.2 30)"
        assert stored.metadata.updated_by == "editor@example.com"

    def test_patch_theme(self, repo):
        committed = repo.patch_theme({"cssVars": {"dark": {"radius": "1rem"}}}, "alice")
        committed = repo.patch_theme({"logo": {"alt": "Acme"}}, "alice")

        assert committed.metadata.version == 3
        assert committed.css_vars.dark["radius"] == "1rem"
        assert committed.logo.alt == "Acme"

    def test_invalid_patch_writes_nothing(self, repo):
        with pytest.raises(ThemeValidationError):
            repo.patch_theme({"cssVars": {"light": {"sm-nope": "#fff"}}}, "alice")
        assert repo.get_last_updated() is None


def test_shared_metrics_recorder(db_path):
    metrics = MetricsRecorder()
    with ThemeRepository(db_path, metrics=metrics) as repository:
        repository.get_theme()
        repository.update_theme(default_theme(), "alice")

    assert metrics.snapshot() == {"theme.read.fallback-empty": 1, "theme.write.committed": 1}
