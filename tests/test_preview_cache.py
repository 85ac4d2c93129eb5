"""Tests for themeengine.core.preview_cache."""

from __future__ import annotations

import time

import pytest

from themeengine.core.metrics import MetricsRecorder
from themeengine.core.preview_cache import PreviewCache
from themeengine.themes.defaults import default_theme


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return PreviewCache(clock=clock, metrics=MetricsRecorder())


def test_hit_before_expiry_and_gone_after(cache, clock):
    cache.set_theme_preview("editor-1", default_theme(), ttl_seconds=2)

    clock.advance(1.999)
    assert cache.get_theme_preview("editor-1") is not None

    clock.advance(0.002)
    assert cache.get_theme_preview("editor-1") is None
    assert len(cache) == 0


def test_expiry_is_reported_in_clock_seconds(cache, clock):
    expires_at = cache.set_theme_preview("k", default_theme(), ttl_seconds=60)

    assert expires_at == clock.now + 60


def test_default_clock_reports_epoch_seconds():
    before = time.time()
    expires_at = PreviewCache().set_theme_preview("k", default_theme(), ttl_seconds=60)

    assert before + 60 <= expires_at <= time.time() + 60


def test_expiry_is_exclusive_at_boundary(cache, clock):
    expires_at = cache.set_theme_preview("k", default_theme(), ttl_seconds=5)
    clock.now = expires_at
    assert cache.get_theme_preview("k") is None


def test_miss_for_unknown_key(cache):
    assert cache.get_theme_preview("nobody") is None


def test_stored_snapshot_is_isolated_from_caller(cache):
    draft = default_theme()
    cache.set_theme_preview("k", draft)

    draft.css_vars.light["sm-accent"] = "#000000"

    assert cache.get_theme_preview("k").css_vars.light["sm-accent"] != "#000000"


def test_returned_copy_is_isolated_from_cache(cache):
    cache.set_theme_preview("k", default_theme())

    first = cache.get_theme_preview("k")
    first.css_vars.dark["radius"] = "99px"
    first.logo.alt = "Changed"

    second = cache.get_theme_preview("k")
    assert second.css_vars.dark["radius"] == "0.625rem"
    assert second.logo.alt == "SettleMint"


def test_set_replaces_entry_and_ttl(cache, clock):
    cache.set_theme_preview("k", default_theme(), ttl_seconds=1)
    replacement = default_theme()
    replacement.logo.alt = "Second"
    cache.set_theme_preview("k", replacement, ttl_seconds=10)

    clock.advance(5)
    assert cache.get_theme_preview("k").logo.alt == "Second"


def test_keys_are_independent(cache):
    cache.set_theme_preview("a", default_theme())
    cache.set_theme_preview("b", default_theme())

    cache.clear_theme_preview("a")

    assert cache.get_theme_preview("a") is None
    assert cache.get_theme_preview("b") is not None


def test_clear_is_idempotent(cache):
    cache.clear_theme_preview("missing")
    cache.clear_theme_preview("missing")
    assert len(cache) == 0


def test_non_positive_ttl_rejected(cache):
    with pytest.raises(ValueError):
        cache.set_theme_preview("k", default_theme(), ttl_seconds=0)


def test_outcomes_are_counted(clock):
    metrics = MetricsRecorder()
    cache = PreviewCache(clock=clock, metrics=metrics)
    cache.get_theme_preview("k")
    cache.set_theme_preview("k", default_theme(), ttl_seconds=2)
    cache.get_theme_preview("k")
    clock.advance(3)
    cache.get_theme_preview("k")
    cache.clear_theme_preview("k")

    assert metrics.snapshot() == {
        "preview.clear.absent": 1,
        "preview.get.expired": 1,
        "preview.get.hit": 1,
        "preview.get.miss": 1,
        "preview.set.stored": 1,
    }
    assert metrics.last("preview.get").outcome == "expired"
