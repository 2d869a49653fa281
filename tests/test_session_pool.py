"""Tests for the session pool and its round-robin cursor."""

import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pplx_proxy.core.exceptions import ConfigurationError, SessionIndexError
from pplx_proxy.core.session_pool import Session, SessionPool


class TestSelectNext:
    """Tests for SessionPool.select_next."""

    def test_cycles_through_every_index(self):
        """Consecutive selections visit indices in order and wrap around."""
        pool = SessionPool(["a", "b", "c"])
        assert [pool.select_next() for _ in range(7)] == [0, 1, 2, 0, 1, 2, 0]

    def test_index_always_in_range(self):
        pool = SessionPool(["a", "b"])
        for _ in range(50):
            assert 0 <= pool.select_next() < len(pool)

    def test_empty_pool_raises_configuration_error(self):
        """Selecting from an empty pool fails fast instead of dividing by zero."""
        pool = SessionPool([])
        with pytest.raises(ConfigurationError) as exc_info:
            pool.select_next()
        assert "No sessions available" in str(exc_info.value)

    def test_concurrent_selection_is_balanced(self):
        """Every increment is observed exactly once under thread contention."""
        pool = SessionPool(["a", "b", "c", "d"])
        results: list[int] = []
        lock = threading.Lock()

        def worker() -> None:
            picked = [pool.select_next() for _ in range(100)]
            with lock:
                results.extend(picked)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 800
        for index in range(4):
            assert results.count(index) == 200
        assert pool.cursor == 0


class TestGetAndSnapshot:
    """Tests for get() and snapshot()."""

    def test_get_returns_session_value(self):
        pool = SessionPool(["tok-1", "tok-2"])
        assert pool.get(1) == Session("tok-2")

    def test_get_out_of_range_raises_index_error(self):
        pool = SessionPool(["tok-1"])
        with pytest.raises(SessionIndexError) as exc_info:
            pool.get(3)
        assert exc_info.value.index == 3
        assert exc_info.value.pool_size == 1

    def test_snapshot_is_a_copy(self):
        """Mutating a snapshot does not affect the pool."""
        pool = SessionPool(["a", "b"])
        snapshot = pool.snapshot()
        snapshot.append(Session("c"))
        assert len(pool) == 2
        assert pool.snapshot() == [Session("a"), Session("b")]

    def test_snapshot_unaffected_by_replace(self):
        pool = SessionPool(["a", "b"])
        snapshot = pool.snapshot()
        pool.replace(["x"])
        assert snapshot == [Session("a"), Session("b")]


class TestReplace:
    """Tests for SessionPool.replace."""

    def test_replace_swaps_all_sessions(self):
        pool = SessionPool(["a", "b"])
        pool.replace([Session("c"), "d", "e"])
        assert [s.token for s in pool.snapshot()] == ["c", "d", "e"]

    def test_replace_clamps_cursor(self):
        """A shrinking pool keeps the cursor inside the new range."""
        pool = SessionPool(["a", "b", "c"])
        pool.select_next()
        pool.select_next()
        assert pool.cursor == 2
        pool.replace(["x", "y"])
        assert pool.cursor == 0
        assert pool.select_next() == 0

    def test_replace_with_empty_pool(self):
        pool = SessionPool(["a"])
        pool.replace([])
        assert len(pool) == 0
        with pytest.raises(ConfigurationError):
            pool.select_next()

    def test_readers_never_see_partial_replacement(self):
        """Snapshots taken during replacement are either all old or all new."""
        old = [f"old-{i}" for i in range(20)]
        new = [f"new-{i}" for i in range(20)]
        pool = SessionPool(old)
        mixed: list[list[str]] = []
        stop = threading.Event()

        def reader() -> None:
            while not stop.is_set():
                tokens = [s.token for s in pool.snapshot()]
                prefixes = {token.split("-")[0] for token in tokens}
                if len(prefixes) != 1:
                    mixed.append(tokens)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for i in range(200):
            pool.replace(new if i % 2 == 0 else old)
        stop.set()
        for thread in threads:
            thread.join()

        assert mixed == []


class TestSession:
    """Tests for the Session value object."""

    def test_identity_is_token_value(self):
        assert Session("abc") == Session("abc")
        assert Session("abc") != Session("abd")

    def test_to_dict(self):
        assert Session("abc").to_dict() == {"session_key": "abc"}
