"""
Unit tests for src/services/session_queue.py

Tests per-identity serialization and background job priority.
"""

import asyncio

import pytest

from src.services.session_queue import SessionTaskQueue


# ===== TESTS: Ordering =====

class TestSessionTaskQueue:
    """Tests for SessionTaskQueue ordering guarantees."""

    @pytest.mark.asyncio
    async def test_turns_of_one_identity_are_sequential(self):
        queue = SessionTaskQueue()
        order = []

        async def turn(name, delay):
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")
            return name

        results = await asyncio.gather(
            queue.run("a", lambda: turn("t1", 0.02)),
            queue.run("a", lambda: turn("t2", 0)),
        )

        assert results == ["t1", "t2"]
        assert order == ["t1-start", "t1-end", "t2-start", "t2-end"]

    @pytest.mark.asyncio
    async def test_background_runs_before_waiting_turn(self):
        """A job scheduled during turn 1 runs before turn 2, even if turn 2 was already queued."""
        queue = SessionTaskQueue()
        order = []
        release = asyncio.Event()

        async def background():
            order.append("background")

        async def first_turn():
            order.append("turn1")
            queue.schedule_background("a", background)
            await release.wait()

        async def second_turn():
            order.append("turn2")

        first = asyncio.create_task(queue.run("a", first_turn))
        await asyncio.sleep(0)
        second = asyncio.create_task(queue.run("a", second_turn))
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)

        assert order == ["turn1", "background", "turn2"]

    @pytest.mark.asyncio
    async def test_identities_do_not_block_each_other(self):
        queue = SessionTaskQueue()
        release = asyncio.Event()
        order = []

        async def slow():
            await release.wait()
            order.append("a")

        async def fast():
            order.append("b")

        slow_task = asyncio.create_task(queue.run("a", slow))
        await queue.run("b", fast)
        assert order == ["b"]

        release.set()
        await slow_task
        assert order == ["b", "a"]

    @pytest.mark.asyncio
    async def test_turn_exception_propagates_and_queue_continues(self):
        queue = SessionTaskQueue()

        async def failing():
            raise ValueError("bad turn")

        async def ok():
            return "ok"

        with pytest.raises(ValueError):
            await queue.run("a", failing)
        assert await queue.run("a", ok) == "ok"

    @pytest.mark.asyncio
    async def test_background_failure_is_logged_not_raised(self):
        queue = SessionTaskQueue()

        async def failing():
            raise RuntimeError("extraction down")

        future = queue.schedule_background("a", failing)
        await future

        assert future.result() is None
        await queue.drain()
        assert queue.is_idle("a")

    @pytest.mark.asyncio
    async def test_drain_waits_for_everything(self):
        queue = SessionTaskQueue()
        done = []

        async def job(name):
            await asyncio.sleep(0.01)
            done.append(name)

        queue.schedule_background("a", lambda: job("a"))
        queue.schedule_background("b", lambda: job("b"))
        assert queue.active_identities == 2

        await queue.drain()

        assert sorted(done) == ["a", "b"]
        assert queue.active_identities == 0
