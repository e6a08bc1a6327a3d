"""Tests for keyed asyncio locks."""
import asyncio

import pytest

from finbot.assistant.locks import KeyedLocks


class TestKeyedLocks:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        order = []

        async def worker(name):
            async with locks.hold("thread_1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLocks()
        started = asyncio.Event()

        async def holder():
            async with locks.hold("thread_1"):
                started.set()
                await asyncio.sleep(0.05)

        task = asyncio.create_task(holder())
        await started.wait()

        assert locks.is_locked("thread_1")
        async with locks.hold("thread_2"):
            assert locks.is_locked("thread_1")
        await task

    @pytest.mark.asyncio
    async def test_released_locks_are_dropped(self):
        locks = KeyedLocks()
        async with locks.hold(("user_1", "USD")):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.is_locked(("user_1", "USD"))
