import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator

from .aggregator import PAIRS_CLOSED, BatchSink, Pair, PairAggregator, ResultSink, StreamSink
from .config import SearchConfig
from .errors import ConfigurationError, DupeScoutError, KeyGenerationError
from .filters import PathFilter
from .shutdown import CancellationFlag, ShutdownCoordinator
from .utils.pool import WorkerPool
from .utils.processor import Processor
from .utils.walker import WalkPolicy, walk_files

logger = logging.getLogger(__name__)

# Pairs that may wait for the aggregator before producers are suspended.
PAIR_BUFFER_SIZE = 500


class DupeScout:
    """Walks the configured roots and produces one (key, path) pair per candidate file.

    Every root is walked by its own pooled task, and every candidate file gets a pooled
    producer task that runs the key generator on the processor and puts the pair on
    `pairs`. The walkers give up their pool slots right away, so the pool's concurrency
    bounds the producers that actually run.

    Walkers and producers check the cancellation flag before each entry and before each
    key generation respectively; work past that check always runs to completion.
    """

    def __init__(self, config: SearchConfig, processor: Processor, cancellation: CancellationFlag):
        """
        Args:
            config: Configuration with defaults applied (see SearchConfig.with_defaults())
            processor: Backend on which key generators are evaluated
            cancellation: Flag that stops new work once set
        """
        self._config = config
        self._processor = processor
        self._cancellation = cancellation
        self._path_filter = PathFilter(config.filters)
        self._pool = WorkerPool(config.workers)
        self.pairs: asyncio.Queue[Pair | None] = asyncio.Queue(PAIR_BUFFER_SIZE)

    def shutting_down(self) -> bool:
        return self._cancellation.is_set()

    async def search(self):
        """Walk all roots and wait for every producer.

        Raises:
            DupeScoutError: The first error of any walker or producer
        """
        for root in self._config.paths:
            await self._pool.submit(self._walk(root), name=f"walk {root}")

        await self._pool.wait()

    def _stop_walking(self) -> bool:
        return self.shutting_down() or self._pool.first_error is not None

    async def _walk(self, root: str):
        WorkerPool.yield_slot()

        logger.info(f"Searching for duplicates in {root}")
        policy = WalkPolicy(
            should_prune_directory=self._path_filter.should_prune_directory,
            should_skip_file=self._path_filter.should_skip_file,
            cancelled=self._stop_walking)

        scheduled = 0
        for file_path, _ in walk_files(Path(root), policy):
            await self._pool.submit(self._produce_pair(str(file_path)))
            scheduled += 1
            # Let the aggregator and finished producers run between blocking walk steps
            await asyncio.sleep(0)

        logger.info(f"Finished walking {root}, {scheduled} files scheduled")

    async def _produce_pair(self, path: str):
        if self.shutting_down():
            return

        try:
            key = await self._processor.generate_key(self._config.key_generator, path)
        except Exception as e:
            raise KeyGenerationError(path, str(e) or type(e).__name__) from e

        if not isinstance(key, str):
            raise ConfigurationError(
                f"key generator returned a {type(key).__name__} instead of a string for path: {path}")
        if not key.strip():
            raise ConfigurationError(f"key generator returned an empty key for path: {path}")

        await self.pairs.put(Pair(key, path))


async def run_search(config: SearchConfig, sink: ResultSink | None,
                     cancellation: CancellationFlag | None = None):
    """Run one search and deliver its duplicates to sink.

    The pair queue is closed only after every walker and producer has finished, which is
    what ends the aggregator; the aggregator is then awaited, so the sink has been closed
    by the time this returns or raises.

    Raises:
        ConfigurationError: If no sink is given or the configuration is invalid, before any
                            work starts
        DupeScoutError: The first error raised by a walker or producer
    """
    if sink is None:
        raise ConfigurationError("either a batch sink or a streaming sink must be provided")

    config = config.with_defaults()
    if cancellation is None:
        cancellation = CancellationFlag()

    aggregator = PairAggregator(sink)

    with Processor(config.workers, config.executor) as processor:
        logger.debug(f"Generating keys on {processor.concurrency} {processor.kind} workers")
        scout = DupeScout(config, processor, cancellation)
        aggregation = asyncio.create_task(aggregator.consume(scout.pairs), name="aggregate pairs")

        try:
            with ShutdownCoordinator(cancellation, enabled=config.handle_signals):
                await scout.search()
        finally:
            await scout.pairs.put(PAIRS_CLOSED)
            await aggregation


async def collect_results(config: SearchConfig, cancellation: CancellationFlag | None = None) -> list[str]:
    """Search and return all duplicate paths once the search is done.

    Paths of one duplicate group are adjacent; groups and paths within a group are in
    discovery order.

    Raises:
        DupeScoutError: If the search failed. The partial result, which must not be
                        trusted, is attached as the error's `results` attribute.
    """
    sink = BatchSink()
    try:
        await run_search(config, sink, cancellation)
    except DupeScoutError as e:
        e.results = sink.result_nowait()
        raise

    return await sink.result()


def get_results(config: SearchConfig, cancellation: CancellationFlag | None = None) -> list[str]:
    """Blocking variant of collect_results() that runs its own event loop."""
    return asyncio.run(collect_results(config, cancellation))


async def stream_results(config: SearchConfig, output: asyncio.Queue,
                         cancellation: CancellationFlag | None = None):
    """Search and put duplicate paths on output as they are found.

    None is put on output exactly once, after the last path, whether the search succeeds
    or fails. This coroutine finishes together with the search, so it must run in a
    different task than the one consuming output.

    Raises:
        DupeScoutError: If the search failed; paths already put on output stay valid
    """
    if output is None:
        raise ConfigurationError("either a batch sink or a streaming sink must be provided")

    sink = StreamSink(output)
    try:
        await run_search(config, sink, cancellation)
    finally:
        await sink.close()


async def iter_duplicates(config: SearchConfig,
                          cancellation: CancellationFlag | None = None) -> AsyncIterator[str]:
    """Iterate over duplicate paths as they are found.

    Closing the iterator early (e.g. with contextlib.aclosing) triggers a cooperative
    shutdown of the search and waits for it to wind down. If the search fails, its error
    is raised after the last path.
    """
    if cancellation is None:
        cancellation = CancellationFlag()

    output: asyncio.Queue[str | None] = asyncio.Queue()
    search = asyncio.create_task(stream_results(config, output, cancellation), name="stream duplicates")

    exhausted = False
    try:
        while (path := await output.get()) is not None:
            yield path
        exhausted = True
    finally:
        if not exhausted:
            cancellation.set()
            try:
                await search
            except DupeScoutError as e:
                logger.debug(f"Abandoned search ended with an error: {e}")

    await search
