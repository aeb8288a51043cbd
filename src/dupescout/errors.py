class DupeScoutError(Exception):
    """Base class for errors that abort a duplicate search.

    Attributes:
        results: Duplicate paths collected before the search was aborted, attached by
                 batch-mode callers. These are partial and must not be trusted.
    """
    results: list[str] | None = None


class ConfigurationError(DupeScoutError):
    """The search was set up incorrectly, or a key generator broke its contract."""


class TraversalError(DupeScoutError):
    """A directory or file could not be accessed while walking a root."""

    def __init__(self, path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = str(path)


class KeyGenerationError(DupeScoutError):
    """The key generator failed for a specific file."""

    def __init__(self, path, message: str):
        super().__init__(f"key generation failed for {path}: {message}")
        self.path = str(path)
