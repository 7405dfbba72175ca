"""Bounded pool of reusable recognition workers with a priority queue."""

from __future__ import annotations

import asyncio
import gc
import inspect
import logging
import os
from collections import deque
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .errors import PoolClosedError

logger = logging.getLogger(__name__)

W = TypeVar("W")
T = TypeVar("T")

PRIORITIES = ("high", "normal", "low")

_MB = 1024 * 1024

# Handed to a waiter instead of a worker when it may create one itself
_SLOT = object()


def current_memory_usage() -> int:
    """Return the resident memory of this process in bytes (0 if unknown).

    Only ``/proc`` reports current usage. Peak figures such as
    ``ru_maxrss`` never fall, so they are not used.
    """
    try:
        with open("/proc/self/statm") as f:
            resident_pages = int(f.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError, AttributeError):
        return 0


class WorkerPool(Generic[W]):
    """Runs tasks on at most ``max_workers`` workers at a time.

    Workers are created lazily by ``worker_factory`` and reused. Tasks that
    arrive while every worker is busy wait in a FIFO queue per priority;
    ``high`` waiters are always served before ``normal`` and ``low`` ones.

    When process memory exceeds ``memory_threshold`` bytes, each task start
    is preceded by a garbage collection and a ``cooldown`` second pause.
    Work is delayed, never rejected.
    """

    def __init__(
        self,
        worker_factory: Callable[[], W | Awaitable[W]],
        *,
        max_workers: int = 2,
        memory_threshold: int = 512 * _MB,
        cooldown: float = 1.0,
        memory_probe: Callable[[], int] = current_memory_usage,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._factory = worker_factory
        self._max_workers = max_workers
        self._memory_threshold = memory_threshold
        self._cooldown = cooldown
        self._memory_probe = memory_probe

        self._workers: list[W] = []
        self._idle: list[W] = []
        self._creating = 0
        self._queues: dict[str, deque[asyncio.Future[W]]] = {
            p: deque() for p in PRIORITIES
        }
        self._closed = False
        self._active = 0
        self._completed = 0
        self._failed = 0
        self._throttled = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def max_workers(self) -> int:
        return self._max_workers

    async def schedule(
        self,
        task: Callable[[W], Awaitable[T]],
        priority: str = "normal",
    ) -> T:
        """Run ``task(worker)`` once a worker is free and return its result.

        Raises:
            ValueError: If ``priority`` is not high, normal or low.
            PoolClosedError: If the pool is (or gets) shut down before a
                worker becomes available.
        """
        if priority not in self._queues:
            raise ValueError(
                f"Unknown priority: {priority!r} "
                f"(choose from {', '.join(PRIORITIES)})"
            )
        if self._closed:
            raise PoolClosedError("Worker pool has been shut down")

        worker = await self._acquire(priority)
        self._active += 1
        try:
            await self._throttle()
            result = await task(worker)
        except BaseException:
            self._failed += 1
            raise
        else:
            self._completed += 1
            return result
        finally:
            self._active -= 1
            if self._closed:
                await self._terminate(worker)
            else:
                self._release(worker)

    async def shutdown(self) -> None:
        """Terminate idle workers and reject every waiting caller.

        Workers still running a task are terminated when the task finishes.
        """
        if self._closed:
            return
        self._closed = True

        rejected = 0
        for queue in self._queues.values():
            while queue:
                waiter = queue.popleft()
                if not waiter.done():
                    waiter.set_exception(
                        PoolClosedError("Worker pool shut down while waiting")
                    )
                    rejected += 1

        idle, self._idle = self._idle, []
        for worker in idle:
            await self._terminate(worker)

        logger.info(
            "Worker pool shut down (%d idle workers terminated, %d waiters rejected)",
            len(idle),
            rejected,
        )

    def stats(self) -> dict[str, Any]:
        return {
            "max_workers": self._max_workers,
            "workers": len(self._workers),
            "idle": len(self._idle),
            "active": self._active,
            "queued": {p: len(q) for p, q in self._queues.items()},
            "completed": self._completed,
            "failed": self._failed,
            "throttled": self._throttled,
            "closed": self._closed,
        }

    def memory_info(self) -> dict[str, Any]:
        used = self._memory_probe()
        return {
            "rss_mb": round(used / _MB),
            "threshold_mb": round(self._memory_threshold / _MB),
            "constrained": used > self._memory_threshold,
        }

    async def _acquire(self, priority: str) -> W:
        while True:
            if self._closed:
                raise PoolClosedError("Worker pool has been shut down")
            if self._idle:
                return self._idle.pop()

            if len(self._workers) + self._creating < self._max_workers:
                return await self._create_worker()

            waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self._queues[priority].append(waiter)
            try:
                handed = await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                    # Handed a worker (or a free slot) just as we were cancelled
                    handed = waiter.result()
                    if handed is _SLOT:
                        self._offer_slot()
                    else:
                        self._release(handed)
                else:
                    try:
                        self._queues[priority].remove(waiter)
                    except ValueError:
                        pass
                raise

            if self._closed:
                # Shut down between the hand-off and this waiter resuming
                if handed is not _SLOT:
                    await self._terminate(handed)
                raise PoolClosedError("Worker pool shut down while waiting")
            if handed is not _SLOT:
                return handed

    async def _create_worker(self) -> W:
        self._creating += 1
        try:
            worker = self._factory()
            if inspect.isawaitable(worker):
                worker = await worker
        except BaseException:
            self._creating -= 1
            self._offer_slot()
            raise
        self._creating -= 1
        self._workers.append(worker)
        logger.debug("Created worker %d/%d", len(self._workers), self._max_workers)
        return worker

    def _next_waiter(self) -> asyncio.Future[Any] | None:
        for priority in PRIORITIES:
            queue = self._queues[priority]
            while queue:
                waiter = queue.popleft()
                if not waiter.done():
                    return waiter
        return None

    def _release(self, worker: W) -> None:
        waiter = self._next_waiter()
        if waiter is not None:
            waiter.set_result(worker)
        else:
            self._idle.append(worker)

    def _offer_slot(self) -> None:
        # A failed worker creation frees a slot; let the next waiter retry
        waiter = self._next_waiter()
        if waiter is not None:
            waiter.set_result(_SLOT)

    async def _throttle(self) -> None:
        used = self._memory_probe()
        if used <= self._memory_threshold:
            return
        self._throttled += 1
        logger.warning(
            "Memory usage high: %dMB (threshold %dMB), cooling down",
            round(used / _MB),
            round(self._memory_threshold / _MB),
        )
        gc.collect()
        await asyncio.sleep(self._cooldown)

    async def _terminate(self, worker: W) -> None:
        if worker in self._workers:
            self._workers.remove(worker)
        terminate = getattr(worker, "terminate", None)
        if terminate is None:
            return
        try:
            result = terminate()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Error terminating worker")
