# borrow_indexer/transform/context.py

from typing import Iterable, List, Mapping, Optional, Sequence

from msgspec import Struct

from ..types import BlockRange, DecodedEvent, DerivedEvent, EvmHash


class BatchView:
    """
    Read-only view of the derived events a transformer is allowed to see:
    the outputs of the transformers it declared in ``depends_on``.
    """

    def __init__(self, upstream: Mapping[str, Sequence[DerivedEvent]]):
        self._upstream = dict(upstream)

    def transformer_names(self) -> List[str]:
        return sorted(self._upstream)

    def derived(self, transformer_name: Optional[str] = None) -> List[DerivedEvent]:
        if transformer_name is not None:
            return list(self._upstream.get(transformer_name, ()))
        merged = [e for events in self._upstream.values() for e in events]
        return sorted(merged, key=lambda e: e.ordering_key)


class BlockContext(Struct, frozen=True):
    """Position of the event a lookup is made for."""
    block_number: int
    log_index: int
    tx_hash: Optional[EvmHash] = None
    view: Optional[BatchView] = None


class TransformInput:
    """Everything one transformer receives for one block range."""

    def __init__(self,
                 block_range: BlockRange,
                 decoded: Mapping[str, Sequence[DecodedEvent]],
                 upstream: Mapping[str, Sequence[DerivedEvent]]):
        self.block_range = block_range
        self._decoded = decoded
        self.view = BatchView(upstream)

    def events(self,
               source_ids: Optional[Iterable[str]] = None,
               names: Optional[Iterable[str]] = None) -> List[DecodedEvent]:
        wanted_sources = set(source_ids) if source_ids is not None else None
        wanted_names = set(names) if names is not None else None

        selected = []
        for source_id, events in self._decoded.items():
            if wanted_sources is not None and source_id not in wanted_sources:
                continue
            for event in events:
                if wanted_names is None or event.event_name in wanted_names:
                    selected.append(event)
        return sorted(selected, key=lambda e: (e.ordering_key, e.source_id))

    def derived(self, transformer_name: Optional[str] = None) -> List[DerivedEvent]:
        return self.view.derived(transformer_name)

    def context_for(self, block_number: int, log_index: int,
                    tx_hash: Optional[EvmHash] = None) -> BlockContext:
        return BlockContext(block_number, log_index, tx_hash, self.view)


