import asyncio
import logging
import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from enum import StrEnum
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class ExecutorKind(StrEnum):
    """Where key generators are evaluated.

    THREAD accepts any callable, including closures. PROCESS sidesteps the GIL for
    CPU-bound generators but requires a picklable, module-level function.
    """
    THREAD = 'thread'
    PROCESS = 'process'


class Processor:
    def __init__(self, concurrency: int | None = None, kind: ExecutorKind = ExecutorKind.THREAD):
        if concurrency is None or concurrency <= 0:
            concurrency = os.cpu_count() or 1

        self._concurrency = concurrency
        self._kind = ExecutorKind(kind)

        self._executor: Executor
        if self._kind is ExecutorKind.PROCESS:
            self._executor = ProcessPoolExecutor(self._concurrency)
        else:
            self._executor = ThreadPoolExecutor(self._concurrency, thread_name_prefix='dupescout-key')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Release the executor without blocking on key generations that are still running.

        Submitted calls still run to completion in the background.
        """
        self._executor.shutdown(wait=False, cancel_futures=False)

    @property
    def concurrency(self):
        return self._concurrency

    @property
    def kind(self) -> ExecutorKind:
        return self._kind

    def generate_key(self, key_generator: Callable[[str], str], path: str) -> Awaitable[str]:
        logger.debug(f"Starting key generation for: {path}")

        async def log_and_generate():
            result = await self._evaluate(key_generator, path)
            logger.debug(f"Completed key generation for: {path}")
            return result

        return log_and_generate()

    def _evaluate(self, func, *args):
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, func, *args)
