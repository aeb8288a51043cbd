"""Shared test utilities for dupescout tests."""
import threading
from pathlib import Path


def make_tree(root: Path, files: dict[str, bytes]) -> dict[str, Path]:
    """Create files under root from a mapping of relative path to content.

    Returns:
        Mapping of relative path to the created absolute path
    """
    created = {}
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        created[relative] = path
    return created


def content_key(path: str) -> str:
    """Key generator that uses the whole content as key; exact by construction."""
    return Path(path).read_bytes().hex()


class RecordingKeyGenerator:
    """Key generator returning keys from a mapping of file name to key.

    Files not in the mapping get their own name as key. Every call is recorded, and the
    recorder is safe to call from executor threads.
    """

    def __init__(self, keys: dict[str, str] | None = None, on_call=None):
        self._keys = keys or {}
        self._on_call = on_call
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def __call__(self, path: str) -> str:
        with self._lock:
            self.calls.append(path)
        if self._on_call is not None:
            self._on_call(path)
        name = Path(path).name
        return self._keys.get(name, name)
