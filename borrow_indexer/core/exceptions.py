# borrow_indexer/core/exceptions.py

from typing import Optional, Sequence


class IndexerError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigurationError(IndexerError):
    """Invalid configuration detected before the pipeline runs."""

    def __init__(self, message: str, name: Optional[str] = None):
        self.name = name
        super().__init__(f"{message}: {name}" if name else message)


class DuplicateSourceError(ConfigurationError):
    def __init__(self, source_id: str):
        super().__init__("Duplicate source id", source_id)


class DependencyCycleError(ConfigurationError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic transformer dependency", " -> ".join(self.cycle))


class TransientExtractionError(IndexerError):
    """Log source unreachable or throttled. The batch is retried from the same range."""

    def __init__(self, message: str, from_block: Optional[int] = None,
                 to_block: Optional[int] = None, rate_limited: bool = False):
        self.from_block = from_block
        self.to_block = to_block
        self.rate_limited = rate_limited
        super().__init__(message)


class DependencyLookupError(IndexerError):
    """A transformer could not resolve required cross-source state."""

    def __init__(self, transformer_name: str, dependency: str, key, block_number: int):
        self.transformer_name = transformer_name
        self.dependency = dependency
        self.key = key
        self.block_number = block_number
        super().__init__(
            f"{transformer_name}: {dependency}({key!r}) not resolvable at block {block_number}"
        )


class CommitError(IndexerError):
    """The store rejected a batch. Nothing from the batch was persisted."""


class BatchCancelled(IndexerError):
    """The batch was abandoned during extraction."""
