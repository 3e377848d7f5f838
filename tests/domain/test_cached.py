"""Tests for the Cached wrapper and its staleness predicates."""

from datetime import datetime, timezone

from cpq_kernel.domain.cached import Cached, is_stale, is_version_behind

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


def _cached(key=("600000", "habitat"), version="cl-2026-02"):
    return Cached(value=123, computed_at_version=version, input_key=key, computed_at=NOW)


class TestIsStale:
    def test_missing_cache_is_stale(self):
        assert is_stale(None, ("600000",))

    def test_same_key_is_fresh(self):
        assert not is_stale(_cached(), ("600000", "habitat"))

    def test_changed_key_is_stale(self):
        assert is_stale(_cached(), ("650000", "habitat"))

    def test_force_always_stale(self):
        assert is_stale(_cached(), ("600000", "habitat"), force=True)


class TestIsVersionBehind:
    def test_same_version(self):
        assert not is_version_behind(_cached(), "cl-2026-02")

    def test_older_version(self):
        assert is_version_behind(_cached(version="cl-2025-12"), "cl-2026-02")

    def test_missing_cache_is_not_behind(self):
        assert not is_version_behind(None, "cl-2026-02")

    def test_version_change_alone_does_not_make_stale(self):
        cached = _cached(version="cl-2025-12")
        assert not is_stale(cached, ("600000", "habitat"))
