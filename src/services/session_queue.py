"""
Per-identity sequential task queue.

Each identity gets one worker task that runs its jobs one at a time.
Background jobs take priority over queued turns: a background job
scheduled during a turn runs right after that turn and before the next turn
of the same identity, even when that turn arrived while the first one was
still running. Different identities never wait on each other.

Usage:
    queue = SessionTaskQueue()
    reply = await queue.run(identity, lambda: handle_turn(event))
    queue.schedule_background(identity, lambda: extract_and_merge(identity, text))
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Dict, Tuple, TypeVar

from src.common.logger import mask_identity

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable]


@dataclass
class _IdentityQueue:
    turns: Deque[Tuple[Job, asyncio.Future]] = field(default_factory=deque)
    background: Deque[Tuple[Job, asyncio.Future]] = field(default_factory=deque)
    worker: asyncio.Task = None

    def is_empty(self) -> bool:
        return not self.turns and not self.background


class SessionTaskQueue:
    """Serializes coroutines per identity."""

    def __init__(self):
        self._queues: Dict[str, _IdentityQueue] = {}

    def _queue_for(self, identity: str) -> _IdentityQueue:
        queue = self._queues.get(identity)
        if queue is None:
            queue = _IdentityQueue()
            self._queues[identity] = queue
        return queue

    def _ensure_worker(self, identity: str, queue: _IdentityQueue) -> None:
        if queue.worker is None or queue.worker.done():
            queue.worker = asyncio.create_task(self._work(identity, queue))

    async def _work(self, identity: str, queue: _IdentityQueue) -> None:
        while not queue.is_empty():
            if queue.background:
                job, future = queue.background.popleft()
                try:
                    await job()
                except Exception:
                    logger.exception(f"Background job failed for {mask_identity(identity)}")
                if not future.done():
                    future.set_result(None)
                continue

            job, future = queue.turns.popleft()
            try:
                result = await job()
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)

        # No await between the emptiness check and removal
        if self._queues.get(identity) is queue:
            del self._queues[identity]

    async def run(self, identity: str, job: Callable[[], Awaitable[T]]) -> T:
        """
        Run a turn once every earlier job of this identity has finished.

        Exceptions raised by the job propagate to the caller.
        """
        future = asyncio.get_running_loop().create_future()
        queue = self._queue_for(identity)
        queue.turns.append((job, future))
        self._ensure_worker(identity, queue)
        return await future

    def schedule_background(self, identity: str, job: Job) -> asyncio.Future:
        """
        Queue a background job without waiting for it.

        Failures are logged, never raised. The returned future resolves when
        the job has run.
        """
        future = asyncio.get_running_loop().create_future()
        queue = self._queue_for(identity)
        queue.background.append((job, future))
        self._ensure_worker(identity, queue)
        return future

    def is_idle(self, identity: str) -> bool:
        return identity not in self._queues

    @property
    def active_identities(self) -> int:
        return len(self._queues)

    async def drain(self) -> None:
        """Wait until every queued job has finished."""
        while self._queues:
            workers = [queue.worker for queue in self._queues.values() if queue.worker is not None]
            if not workers:
                break
            await asyncio.gather(*workers, return_exceptions=True)
