import asyncio
import contextvars
import logging
import os
from asyncio import Semaphore
from typing import Coroutine

logger = logging.getLogger(__name__)


class WorkerPool:
    """Bounded task pool that surfaces the first error of its tasks.

    At most `concurrency` submitted tasks run at a time; submitting more suspends the
    submitter until a slot frees up. Tasks may submit further tasks. A failing task never
    cancels its siblings: wait() drains everything that was started and only then raises
    the first recorded error. Once an error is recorded, later submissions are discarded
    without running.
    """

    def __init__(self, concurrency: int | None = None):
        """Initialize the pool.

        Args:
            concurrency: Maximum number of tasks that run concurrently. None or a
                         non-positive value means the number of CPUs of the host.
        """
        if concurrency is None or concurrency <= 0:
            concurrency = os.cpu_count() or 1

        self._concurrency = concurrency
        self._semaphore = Semaphore(concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._first_error: BaseException | None = None

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def first_error(self) -> BaseException | None:
        return self._first_error

    async def submit(self, coro: Coroutine, name: str | None = None) -> asyncio.Task | None:
        """Start a coroutine as a pooled task once a slot is available.

        Returns:
            The created task, or None if the coroutine was discarded because an earlier
            task already failed.
        """
        if self._first_error is not None:
            coro.close()
            return None

        await self._semaphore.acquire()

        if self._first_error is not None:
            self._semaphore.release()
            coro.close()
            return None

        async def wrapper():
            slot = WorkerPool.__Slot(self._semaphore.release)
            token = WorkerPool.__current_slot.set(slot)
            try:
                return await coro
            finally:
                WorkerPool.__current_slot.reset(token)
                slot.release()

        try:
            task = asyncio.create_task(wrapper(), name=name)
        except BaseException:
            self._semaphore.release()
            coro.close()
            raise

        self._tasks.add(task)
        self._idle.clear()
        task.add_done_callback(self._on_task_done)
        return task

    async def wait(self) -> None:
        """Block until every submitted task has finished, then raise the first error, if any."""
        while self._tasks:
            await self._idle.wait()

        if self._first_error is not None:
            raise self._first_error

    @staticmethod
    def yield_slot():
        """Give up the current task's slot while the task keeps running.

        Tasks that mostly wait on tasks they submit themselves (such as directory walkers)
        call this so they do not hold slots their children need.

        Raises:
            LookupError: If called outside a task started by a WorkerPool
        """
        WorkerPool.__current_slot.get().release()

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)

        if not task.cancelled():
            error = task.exception()
            if error is not None:
                if self._first_error is None:
                    self._first_error = error
                else:
                    logger.debug(f"Discarding error from task {task.get_name()}: {error}")

        if not self._tasks:
            self._idle.set()

    __current_slot = contextvars.ContextVar('WorkerPool.__current_slot')

    class __Slot:
        """One task's ownership of a semaphore permit; released at most once."""

        def __init__(self, release_callback):
            self._released = False
            self._release_callback = release_callback

        def release(self):
            if not self._released:
                self._released = True
                self._release_callback()
