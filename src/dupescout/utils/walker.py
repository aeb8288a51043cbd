import logging
import os
import stat
from pathlib import Path
from typing import Callable, Iterator, NamedTuple

from ..errors import TraversalError

logger = logging.getLogger(__name__)


class WalkPolicy(NamedTuple):
    """Policy controlling which parts of a tree are visited.

    Attributes:
        should_prune_directory: Returns True for directories that must not be descended into
        should_skip_file: Returns True for regular files that must not be yielded
        cancelled: Consulted before each entry; once it returns True the walk stops
    """
    should_prune_directory: Callable[[Path], bool]
    should_skip_file: Callable[[Path], bool]
    cancelled: Callable[[], bool] = lambda: False


def walk_files(root: Path, policy: WalkPolicy) -> Iterator[tuple[Path, os.stat_result]]:
    """Depth-first walk of root yielding candidate files.

    Candidates are non-empty regular files that are not skipped by the policy and do not
    live in a pruned directory. Children of a directory are visited in name order. Symbolic
    links are not followed except for root itself.

    Yields:
        Tuples of (path, stat_result) for each candidate file

    Raises:
        TraversalError: If root does not exist, or a directory cannot be listed, or an
                        entry cannot be inspected
    """
    if policy.cancelled():
        return

    try:
        st = root.stat()
    except OSError as e:
        raise TraversalError(root, e.strerror or str(e)) from e

    if stat.S_ISDIR(st.st_mode):
        if not policy.should_prune_directory(root):
            yield from _walk_directory(root, policy)
    elif _is_candidate(root, st, policy):
        yield root, st


def _walk_directory(directory: Path, policy: WalkPolicy) -> Iterator[tuple[Path, os.stat_result]]:
    try:
        children = sorted(directory.iterdir())
    except OSError as e:
        raise TraversalError(directory, e.strerror or str(e)) from e

    for child in children:
        if policy.cancelled():
            return

        try:
            st = child.stat(follow_symlinks=False)
        except FileNotFoundError:
            # Removed between listing and inspection
            logger.debug(f"Vanished during walk: {child}")
            continue
        except OSError as e:
            raise TraversalError(child, e.strerror or str(e)) from e

        if stat.S_ISDIR(st.st_mode):
            if not policy.should_prune_directory(child):
                yield from _walk_directory(child, policy)
        elif _is_candidate(child, st, policy):
            yield child, st


def _is_candidate(path: Path, st: os.stat_result, policy: WalkPolicy) -> bool:
    return stat.S_ISREG(st.st_mode) and st.st_size > 0 and not policy.should_skip_file(path)
