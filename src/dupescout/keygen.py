"""Key generators turn a file path into a string key that identifies the file's content.

A key generator is any callable taking a path and returning a non-empty string. It must
return the same key for files with identical content, and distinct keys (with high
probability) for different content. It may read as much of the file as it likes; an
exception raised by it aborts the whole search.

The built-in generators are module-level functions so they can also be evaluated in a
process pool.
"""
import hashlib
import zlib
from typing import Callable

import mmh3

from .errors import ConfigurationError
from .utils.profiling import profile_worker

KeyGenerator = Callable[[str], str]

PARTIAL_READ_SIZE = 16 * 1024
CHUNK_SIZE = 1024 * 1024


@profile_worker
def crc32_key(path: str) -> str:
    """Fast key from the file size and the CRC32 of its first 16 KiB.

    Files that only differ after the first 16 KiB collide; use sha256_key or murmur3_key
    when that matters.
    """
    with open(path, 'rb') as f:
        head = f.read(PARTIAL_READ_SIZE)
        f.seek(0, 2)
        size = f.tell()
    return f"{size}-{zlib.crc32(head):08x}"


@profile_worker
def sha256_key(path: str) -> str:
    with open(path, 'rb') as f:
        # noinspection PyTypeChecker
        return hashlib.file_digest(f, hashlib.sha256).hexdigest()


@profile_worker
def murmur3_key(path: str) -> str:
    hasher = mmh3.mmh3_x64_128()
    with open(path, 'rb') as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.digest().hex()


KEY_GENERATORS: dict[str, KeyGenerator] = {
    'crc32': crc32_key,
    'sha256': sha256_key,
    'murmur3': murmur3_key,
}

DEFAULT_KEY_GENERATOR = 'crc32'


def resolve_key_generator(key_generator: KeyGenerator | str | None) -> KeyGenerator:
    """Return the callable for a key generator given by name or as a callable.

    Raises:
        ConfigurationError: If the name is not a built-in key generator
    """
    if key_generator is None:
        key_generator = DEFAULT_KEY_GENERATOR

    if isinstance(key_generator, str):
        try:
            return KEY_GENERATORS[key_generator]
        except KeyError:
            raise ConfigurationError(
                f"unknown key generator: {key_generator} "
                f"(available: {', '.join(sorted(KEY_GENERATORS))})") from None

    if not callable(key_generator):
        raise ConfigurationError(f"key generator is not callable: {key_generator!r}")

    return key_generator
