import os
import tomllib
from pathlib import Path
from typing import Any, NamedTuple

from .errors import ConfigurationError
from .keygen import KeyGenerator, resolve_key_generator
from .utils.processor import ExecutorKind


class FilterRules(NamedTuple):
    """Rules from which the path filter of a search is built.

    Attributes:
        include_hidden: Whether hidden files and directories (names starting with '.') are searched
        exclude_dirs: Directory names, or directory paths, that are not descended into
        include_extensions: If non-empty, only files with one of these extensions are searched
    """
    include_hidden: bool = False
    exclude_dirs: tuple[str, ...] = ()
    include_extensions: tuple[str, ...] = ()

    def normalized(self) -> 'FilterRules':
        extensions = []
        for ext in self.include_extensions:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith('.'):
                ext = '.' + ext
            extensions.append(ext)

        return self._replace(
            exclude_dirs=tuple(str(d) for d in self.exclude_dirs),
            include_extensions=tuple(extensions))


class SearchConfig(NamedTuple):
    """Configuration of one duplicate search. Never mutated by the search.

    Attributes:
        paths: Roots to search
        path: Convenience single root, searched before paths
        filters: Filter rules for pruning directories and skipping files
        key_generator: Key generator callable, or the name of a built-in one
        workers: Maximum number of concurrently running tasks; <= 0 means host parallelism
        handle_signals: Whether SIGINT/SIGTERM trigger a cooperative shutdown during the search
        executor: Where key generators run, 'thread' or 'process'
    """
    paths: tuple[str, ...] = ()
    path: str | os.PathLike | None = None
    filters: FilterRules = FilterRules()
    key_generator: KeyGenerator | str = 'crc32'
    workers: int = 0
    handle_signals: bool = True
    executor: str = ExecutorKind.THREAD

    @property
    def roots(self) -> list[str]:
        roots = []
        if self.path is not None:
            roots.append(str(self.path))
        roots.extend(str(p) for p in self.paths)
        return roots

    def with_defaults(self) -> 'SearchConfig':
        """Return a copy with defaults applied and all values normalized.

        Raises:
            ConfigurationError: If no root is given, or the key generator or executor is unknown
        """
        roots = self.roots
        if not roots:
            raise ConfigurationError("at least one path to search must be provided")

        workers = self.workers
        if workers is None or workers <= 0:
            workers = os.cpu_count() or 1

        try:
            executor = ExecutorKind(self.executor)
        except ValueError:
            raise ConfigurationError(f"unknown executor: {self.executor}") from None

        return SearchConfig(
            paths=tuple(roots),
            path=None,
            filters=self.filters.normalized(),
            key_generator=resolve_key_generator(self.key_generator),
            workers=workers,
            handle_signals=self.handle_signals,
            executor=executor)

    @classmethod
    def from_settings(cls, settings: 'ScoutSettings', **overrides) -> 'SearchConfig':
        """Build a configuration from a settings file; overrides that are not None win.

        Recognized override keywords are the field names of SearchConfig and FilterRules.
        """
        def pick(name: str, key: str, default: Any):
            value = overrides.get(name)
            return value if value is not None else settings.get(key, default)

        filters = FilterRules(
            include_hidden=bool(pick('include_hidden', 'filters.include_hidden', False)),
            exclude_dirs=_as_strings('filters.exclude_dirs', pick('exclude_dirs', 'filters.exclude_dirs', ())),
            include_extensions=_as_strings(
                'filters.include_extensions', pick('include_extensions', 'filters.include_extensions', ())))

        return cls(
            paths=_as_strings('paths', pick('paths', 'paths', ())),
            filters=filters,
            key_generator=pick('key_generator', 'key_generator', 'crc32'),
            workers=int(pick('workers', 'workers', 0)),
            handle_signals=bool(pick('handle_signals', 'handle_signals', True)),
            executor=pick('executor', 'executor', ExecutorKind.THREAD))


class ScoutSettings:
    """Read-only access to a TOML settings file.

    This class is agnostic to the schema of the settings; SearchConfig.from_settings()
    and the command line interpret the values.

    Example:
        settings = ScoutSettings(Path('dupescout.toml'))
        exclude = settings.get('filters.exclude_dirs', [])
        log_path = settings.get('logging.path')
    """

    def __init__(self, settings_file: str | os.PathLike | None = None):
        """Load settings from settings_file.

        If settings_file is None, an empty settings dictionary is used, and all get() calls
        return their defaults.

        Raises:
            ConfigurationError: If the file cannot be read or is not valid TOML
        """
        self._settings: dict[str, Any] = {}

        if settings_file is not None:
            try:
                with open(settings_file, 'rb') as f:
                    self._settings = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigurationError(f"cannot load settings from {settings_file}: {e}") from e

    def get(self, key: str, default=None):
        """Get a setting value by key with optional default.

        Dots in key address nested tables, e.g. 'filters.exclude_dirs' accesses
        settings['filters']['exclude_dirs']. Returns default if the key path does not exist
        or if any intermediate value is not a table.

        Examples:
            >>> settings.get('workers', 0)
            8
            >>> settings.get('nonexistent.key', 'fallback')
            'fallback'
        """
        value = self._settings

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value


def find_settings_file(explicit: str | os.PathLike | None = None) -> Path | None:
    """Locate the settings file: an explicit path, else DUPESCOUT_CONFIG, else none."""
    if explicit is not None:
        return Path(explicit)

    from_env = os.environ.get('DUPESCOUT_CONFIG')
    if from_env:
        return Path(from_env)

    return None



def _as_strings(key: str, value) -> tuple[str, ...]:
    """Normalize a list-valued setting; a single string counts as a one-element list.

    Raises:
        ConfigurationError: If the value is neither a string nor a list of strings
    """
    if isinstance(value, (str, os.PathLike)):
        return (str(value),)

    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{key} must be a string or a list of strings, not {type(value).__name__}")

    for item in value:
        if not isinstance(item, (str, os.PathLike)):
            raise ConfigurationError(f"{key} must only contain strings, found {type(item).__name__}")

    return tuple(str(item) for item in value)
