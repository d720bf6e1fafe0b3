"""
Storage interface the pipeline commits through.

The orchestrator is the only writer; transformers and extractors only read
(prices, checkpoints) through the lookups handed to them.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..types import BatchResult, BlockRange, DerivedEvent


class BatchStoreInterface(ABC):

    @abstractmethod
    def commit_batch(self, result: BatchResult, attempt: int = 1) -> None:
        """
        Persist decoded events, derived events and checkpoints of one batch
        atomically, replacing whatever an earlier attempt stored for the range.

        Raises:
            CommitError: nothing from the batch was persisted
        """
        pass

    @abstractmethod
    def record_failure(self, block_range: BlockRange, attempt: int, error: str) -> None:
        pass

    @abstractmethod
    def get_checkpoint(self, source_id: str) -> Optional[int]:
        pass

    @abstractmethod
    def get_checkpoints(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def save_checkpoint(self, source_id: str, block_number: int) -> None:
        pass

    @abstractmethod
    def rewind_checkpoints(self, to_block: int, source_ids: Optional[List[str]] = None) -> Dict[str, int]:
        """
        Lower checkpoints above ``to_block`` so that ``to_block + 1`` is
        processed again. Returns the rewound sources with their new value.
        """
        pass

    @abstractmethod
    def latest_price(self, token: str, block_number: int) -> Optional[str]:
        pass

    @abstractmethod
    def multiply_cdp_for_urn(self, urn: str, block_number: int) -> Optional[int]:
        """Cdp id of the latest stored multiply history row for the urn, at or before the block."""
        pass

    @abstractmethod
    def derived_events(self, transformer_name: str, block_range: Optional[BlockRange] = None) -> List[DerivedEvent]:
        pass
