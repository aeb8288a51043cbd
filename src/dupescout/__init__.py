from .errors import DupeScoutError, ConfigurationError, TraversalError, KeyGenerationError
from .config import SearchConfig, FilterRules, ScoutSettings
from .filters import PathFilter
from .keygen import KEY_GENERATORS, KeyGenerator, crc32_key, sha256_key, murmur3_key, resolve_key_generator
from .aggregator import Pair, PairAggregator, BatchSink, StreamSink, ResultSink
from .shutdown import CancellationFlag, ShutdownCoordinator
from .scout import DupeScout, run_search, collect_results, get_results, stream_results, iter_duplicates
