# borrow_indexer/checkpoint/tracker.py

from typing import Dict, Iterable, List, Optional

from ..core.logging import LoggingMixin
from ..database.interfaces import BatchStoreInterface
from ..types import Checkpoint, Source


class CheckpointTracker(LoggingMixin):
    """
    Per-source cursor of the last processed block.

    Checkpoints only move forward through ``pending`` + the store's batch
    commit, or backward through an explicit ``rewind``.
    """

    def __init__(self, store: BatchStoreInterface):
        self.store = store
        self._pending: Dict[str, int] = {}

    def read(self, source_id: str) -> Optional[int]:
        return self.store.get_checkpoint(source_id)

    def read_all(self) -> Dict[str, int]:
        return self.store.get_checkpoints()

    def next_block(self, source: Source) -> int:
        last = self.read(source.id)
        if last is None:
            return source.starting_block
        return max(last + 1, source.starting_block)

    def frontier(self, sources: Iterable[Source]) -> Optional[int]:
        """Minimum next-unprocessed block across ``sources``."""
        committed = self.read_all()
        blocks = []
        for source in sources:
            last = committed.get(source.id)
            blocks.append(source.starting_block if last is None else max(last + 1, source.starting_block))
        return min(blocks) if blocks else None

    def pending(self, source_id: str, block_number: int) -> None:
        """
        Stage an advance; it becomes durable with the batch commit. A source
        already past ``block_number`` keeps its checkpoint.
        """
        current = self.read(source_id)
        staged = max(block_number, self._pending.get(source_id, block_number))
        if current is not None:
            staged = max(staged, current)
        self._pending[source_id] = staged

    def staged(self) -> List[Checkpoint]:
        return [Checkpoint(source_id, block) for source_id, block in sorted(self._pending.items())]

    def discard(self) -> None:
        self._pending.clear()

    def commit(self, source_id: str, block_number: int, rewind: bool = False) -> None:
        current = self.read(source_id)
        if current is not None and block_number < current and not rewind:
            raise ValueError(
                f"Checkpoint for {source_id} cannot move back from {current} to {block_number}"
            )
        self.store.save_checkpoint(source_id, block_number)
        self._pending.pop(source_id, None)

    def rewind(self, to_block: int, source_ids: Optional[List[str]] = None) -> Dict[str, int]:
        self.discard()
        rewound = self.store.rewind_checkpoints(to_block, source_ids)
        self.log_warning("Rewound checkpoints for reprocessing",
                         to_block=to_block,
                         rewound=rewound)
        return rewound
