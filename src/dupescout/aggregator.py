"""Grouping of (key, path) pairs into duplicate groups, and delivery of the results.

The PairAggregator is the only reader of the pair queue and the only owner of the
key-to-paths map, so the map needs no locking. How duplicates are delivered is decided by
the sink the aggregator is given:

- BatchSink collects nothing incrementally; when the input ends it receives every group
  with two or more paths, flattened into one list, exactly once.
- StreamSink receives paths as soon as they are known to be duplicates: on the second
  occurrence of a key the first path and the new path, on every later occurrence only
  the new path. When the input ends the stream is closed by putting None on it.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Put on the pair queue after the last producer finished.
PAIRS_CLOSED = None


class Pair(NamedTuple):
    key: str
    path: str


class ResultSink(ABC):
    """Destination of the duplicates found by a search."""

    incremental: bool = False

    async def emit(self, path: str) -> None:
        """Receive one duplicate path as soon as it is found (incremental sinks only)."""
        raise NotImplementedError

    @abstractmethod
    async def close(self, groups: list[list[str]]) -> None:
        """Receive the duplicate groups once the input has ended."""


class BatchSink(ResultSink):
    """Sink that receives one final, flattened list of duplicate paths."""

    def __init__(self):
        self._future: asyncio.Future[list[str]] = asyncio.get_running_loop().create_future()

    async def close(self, groups: list[list[str]]) -> None:
        if self._future.done():
            raise RuntimeError("batch result has already been delivered")
        self._future.set_result([path for group in groups for path in group])

    async def result(self) -> list[str]:
        return await self._future

    def result_nowait(self) -> list[str]:
        """The delivered result, or an empty list if nothing was delivered."""
        return self._future.result() if self._future.done() else []


class StreamSink(ResultSink):
    """Sink that forwards duplicate paths to a queue as they are found."""

    incremental = True

    def __init__(self, output: asyncio.Queue):
        self._output = output
        self._closed = False

    async def emit(self, path: str) -> None:
        if self._closed:
            raise RuntimeError("stream has already been closed")
        await self._output.put(path)

    async def close(self, groups: list[list[str]] = ()) -> None:
        """Mark the end of the stream. Only the first call puts the end marker."""
        if self._closed:
            return
        self._closed = True
        await self._output.put(None)


class PairAggregator:
    def __init__(self, sink: ResultSink):
        self._sink = sink
        self._groups: dict[str, list[str]] = {}

    async def consume(self, pairs: asyncio.Queue):
        """Consume pairs until PAIRS_CLOSED arrives, then hand the groups to the sink."""
        consumed = 0
        while (pair := await pairs.get()) is not PAIRS_CLOSED:
            await self.add(pair)
            consumed += 1

        groups = self.duplicate_groups()
        logger.info(f"Aggregated {consumed} files into {len(groups)} duplicate groups")
        await self._sink.close(groups)

    async def add(self, pair: Pair):
        paths = self._groups.get(pair.key)
        if paths is None:
            self._groups[pair.key] = [pair.path]
            return

        if self._sink.incremental:
            if len(paths) == 1:
                await self._sink.emit(paths[0])
            await self._sink.emit(pair.path)

        paths.append(pair.path)

    def duplicate_groups(self) -> list[list[str]]:
        """Groups with two or more paths, in the order their keys were first seen."""
        return [list(paths) for paths in self._groups.values() if len(paths) > 1]
