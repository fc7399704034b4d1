"""
Tests for async_utils module.

Covers create_semaphore, run_sync, run_sync_limited and gather_limited.
"""

import threading
import time

import pytest

from vault_sync.core.async_utils import (
    create_semaphore,
    gather_limited,
    run_sync,
    run_sync_limited,
)


def _sync_add(a: int, b: int) -> int:
    return a + b


def _sync_identity(x):
    return x


async def test_run_sync_calls_function():
    assert await run_sync(_sync_add, 3, 4) == 7


async def test_run_sync_passes_kwargs():
    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert await run_sync(_kw_func, name="world") == "hello world"


async def test_run_sync_propagates_errors():
    def _boom():
        raise OSError("unreachable")

    with pytest.raises(OSError, match="unreachable"):
        await run_sync(_boom)


@pytest.mark.parametrize("value", [0, -1])
def test_create_semaphore_rejects_non_positive(value):
    with pytest.raises(ValueError, match="at least 1"):
        create_semaphore(value)


async def test_run_sync_limited_with_semaphore():
    semaphore = create_semaphore(2)
    assert await run_sync_limited(semaphore, _sync_add, 10, 20) == 30


async def test_run_sync_limited_without_semaphore():
    assert await run_sync_limited(None, _sync_add, 5, 6) == 11


async def test_gather_limited_keeps_order():
    semaphore = create_semaphore(3)
    coros = [run_sync_limited(semaphore, _sync_identity, i) for i in range(5)]
    assert await gather_limited(coros) == [0, 1, 2, 3, 4]


async def test_gather_limited_empty_list():
    assert await gather_limited([]) == []


async def test_run_sync_limited_concurrency_bound():
    """run_sync_limited actually limits concurrency via the semaphore."""
    semaphore = create_semaphore(2)
    max_concurrent = 0
    current_concurrent = 0
    lock = threading.Lock()

    def _track_concurrency(val):
        nonlocal max_concurrent, current_concurrent
        with lock:
            current_concurrent += 1
            max_concurrent = max(max_concurrent, current_concurrent)
        time.sleep(0.05)  # Hold for a bit so others overlap
        with lock:
            current_concurrent -= 1
        return val

    coros = [
        run_sync_limited(semaphore, _track_concurrency, i) for i in range(6)
    ]
    results = await gather_limited(coros)

    assert results == [0, 1, 2, 3, 4, 5]
    assert max_concurrent <= 2
