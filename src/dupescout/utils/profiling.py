"""Optional cProfile support.

Setting DUPESCOUT_PROFILE to a directory enables profiling. Each search run gets its
own session directory named {timestamp_ms}_{pid} under it; the command line entry point
writes main_*.prof files and every built-in key generator call writes a worker_*.prof
file, so per-file hashing cost can be inspected with pstats.
"""
import cProfile
import functools
import itertools
import os
import time
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec('P')
T = TypeVar('T')

PROFILE_ENV = 'DUPESCOUT_PROFILE'
SESSION_ENV = '_DUPESCOUT_PROFILE_SESSION_DIR'

_sequence = itertools.count()


def get_profile_dir() -> Path | None:
    """Return the session directory for profile output, or None if profiling is off."""
    base = os.environ.get(PROFILE_ENV)
    if not base:
        return None

    session = os.environ.get(SESSION_ENV) or f"{int(time.time() * 1000)}_{os.getpid()}"
    return Path(base) / session


def generate_profile_filename(prefix: str = "profile") -> str:
    """Return a file name unique within the session, e.g. 'worker_54398_0.prof'."""
    return f"{prefix}_{os.getpid()}_{next(_sequence)}.prof"


def profile_function(func: Callable[P, T], prefix: str = "profile") -> Callable[P, T]:
    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        profile_dir = get_profile_dir()
        if profile_dir is None:
            return func(*args, **kwargs)

        profile_dir.mkdir(parents=True, exist_ok=True)
        profiler = cProfile.Profile()
        try:
            profiler.enable()
        except ValueError:
            # Another profiler is already active in this interpreter
            return func(*args, **kwargs)

        try:
            return func(*args, **kwargs)
        finally:
            profiler.disable()
            profiler.dump_stats(str(profile_dir / generate_profile_filename(prefix)))

    return wrapper


def profile_main(func: Callable[P, T]) -> Callable[P, T]:
    """Profile a command entry point with the 'main' prefix.

    The session directory is pinned in the environment before the call so that key
    generators running in worker processes write into the same session.
    """
    profiled = profile_function(func, prefix="main")

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        if os.environ.get(PROFILE_ENV) and not os.environ.get(SESSION_ENV):
            os.environ[SESSION_ENV] = f"{int(time.time() * 1000)}_{os.getpid()}"
        return profiled(*args, **kwargs)

    return wrapper


def profile_worker(func: Callable[P, T]) -> Callable[P, T]:
    """Profile a key generator with the 'worker' prefix."""
    return profile_function(func, prefix="worker")
