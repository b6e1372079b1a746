import asyncio

import pytest

from app.services.request_dedup import RequestDeduplicator


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


async def test_concurrent_identical_requests_run_once():
    dedup = RequestDeduplicator(ttl_seconds=15)
    runs = 0

    async def produce():
        nonlocal runs
        runs += 1
        await asyncio.sleep(0.01)
        return {"package": runs}

    results = await asyncio.gather(*(dedup.run("same", produce) for _ in range(5)))
    assert runs == 1
    assert all(r is results[0] for r in results)


async def test_distinct_keys_run_separately():
    dedup = RequestDeduplicator(ttl_seconds=15)
    calls = []

    async def produce(key):
        calls.append(key)
        return key

    assert await dedup.run("a", lambda: produce("a")) == "a"
    assert await dedup.run("b", lambda: produce("b")) == "b"
    assert calls == ["a", "b"]


async def test_completed_result_is_reused_until_ttl():
    clock = FakeClock()
    dedup = RequestDeduplicator(ttl_seconds=15, clock=clock)
    runs = 0

    async def produce():
        nonlocal runs
        runs += 1
        return runs

    assert await dedup.run("k", produce) == 1
    clock.now = 14.9
    assert await dedup.run("k", produce) == 1
    clock.now = 15.0
    assert await dedup.run("k", produce) == 2


async def test_failed_generation_is_evicted():
    dedup = RequestDeduplicator(ttl_seconds=15)
    attempts = 0

    async def produce():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("boom")
        return "ok"

    with pytest.raises(RuntimeError):
        await dedup.run("k", produce)
    await asyncio.sleep(0)
    assert len(dedup) == 0
    assert await dedup.run("k", produce) == "ok"
    assert attempts == 2


async def test_one_waiter_cancelling_does_not_cancel_the_others():
    dedup = RequestDeduplicator(ttl_seconds=15)
    release = asyncio.Event()

    async def produce():
        await release.wait()
        return "done"

    first = asyncio.create_task(dedup.run("k", produce))
    second = asyncio.create_task(dedup.run("k", produce))
    await asyncio.sleep(0)

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    release.set()
    assert await second == "done"


async def test_last_waiter_cancelling_cancels_the_task():
    dedup = RequestDeduplicator(ttl_seconds=15)
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def produce():
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    waiter = asyncio.create_task(dedup.run("k", produce))
    await started.wait()
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    await asyncio.wait_for(cancelled.wait(), timeout=1)
    assert len(dedup) == 0
