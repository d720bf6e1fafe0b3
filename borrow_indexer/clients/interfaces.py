"""
Interfaces for the node collaborator.

The pipeline only needs two things from a node: logs for a block range and
the current head. Contract reads used by transformer lookups live on a
separate interface so tests can stub them independently.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..types import EvmLog


class LogClientInterface(ABC):
    """Interface for log source implementations."""

    @abstractmethod
    def get_logs(self,
                 address: Optional[str],
                 topics: Optional[Sequence[str]],
                 from_block: int,
                 to_block: int) -> List[EvmLog]:
        """
        Get logs in ``[from_block, to_block]``.

        Args:
            address: Emitting contract, or None for all emitters
            topics: Accepted topic0 values (OR-matched), or None for no filter

        Raises:
            TransientExtractionError: node unreachable or throttled
        """
        pass

    @abstractmethod
    def get_latest_block_number(self) -> int:
        pass


class ChainReaderInterface(ABC):
    """Interface for historical contract reads."""

    @abstractmethod
    def call(self, address: str, abi: List[Dict[str, Any]], function_name: str,
             args: Sequence[Any], block_number: int) -> Any:
        """Returns None when the call reverts or there is no contract at the address at that block."""
        pass

    @abstractmethod
    def get_gas_price(self, tx_hash: str) -> Optional[int]:
        pass
