"""Unit tests for the cache-backed advisory lock."""

from __future__ import annotations

import pytest
from django.core.cache import cache

from modules.core.locks import LOCK_PREFIX, advisory_lock

pytestmark = pytest.mark.unit


class TestAdvisoryLock:
    def test_acquires_free_lock(self):
        with advisory_lock("job", 30) as acquired:
            assert acquired is True
            assert cache.get(f"{LOCK_PREFIX}job") is not None

    def test_released_on_exit(self):
        with advisory_lock("job", 30):
            pass
        assert cache.get(f"{LOCK_PREFIX}job") is None

    def test_released_when_body_raises(self):
        with pytest.raises(RuntimeError):
            with advisory_lock("job", 30):
                raise RuntimeError("boom")
        assert cache.get(f"{LOCK_PREFIX}job") is None

    def test_second_holder_refused(self):
        with advisory_lock("job", 30) as first:
            with advisory_lock("job", 30) as second:
                assert first is True
                assert second is False
            assert cache.get(f"{LOCK_PREFIX}job") is not None

    def test_does_not_release_foreign_lock(self):
        with advisory_lock("job", 30):
            cache.set(f"{LOCK_PREFIX}job", "taken-over", 30)
        assert cache.get(f"{LOCK_PREFIX}job") == "taken-over"

    def test_names_are_independent(self):
        with advisory_lock("a", 30) as a, advisory_lock("b", 30) as b:
            assert a and b
