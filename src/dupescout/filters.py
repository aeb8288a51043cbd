import os
from pathlib import Path

from .config import FilterRules


def is_hidden(path: str | os.PathLike) -> bool:
    name = Path(path).name
    return name.startswith('.') and name not in ('.', '..')


class PathFilter:
    """Decides which directories are pruned and which files are skipped during a walk.

    Directory exclusion entries without a path separator match any directory with that
    name; entries containing a separator match one specific directory by resolved path.
    """

    def __init__(self, rules: FilterRules):
        self._include_hidden = rules.include_hidden
        self._excluded_names: set[str] = set()
        self._excluded_paths: set[Path] = set()
        for entry in rules.exclude_dirs:
            if os.sep in entry or (os.altsep is not None and os.altsep in entry):
                self._excluded_paths.add(Path(entry).resolve())
            else:
                self._excluded_names.add(entry)
        self._extensions = frozenset(rules.include_extensions)

    def should_prune_directory(self, path: str | os.PathLike) -> bool:
        if not self._include_hidden and is_hidden(path):
            return True

        if Path(path).name in self._excluded_names:
            return True

        return bool(self._excluded_paths) and Path(path).resolve() in self._excluded_paths

    def should_skip_file(self, path: str | os.PathLike) -> bool:
        if not self._include_hidden and is_hidden(path):
            return True

        if self._extensions:
            return Path(path).suffix.lower() not in self._extensions

        return False
