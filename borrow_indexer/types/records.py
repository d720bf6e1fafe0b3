# borrow_indexer/types/records.py

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple
import hashlib

import msgspec
from msgspec import Struct

from .new import EvmAddress, EvmHash, HexStr, DomainEventId, to_evm_address, to_hex
from .model import DomainPayload


class SourceKind(str, Enum):
    ADDRESS_LOG = "address-log"
    TOPIC_LOG = "topic-log"
    TOPIC_LOG_WITH_EXCLUSIONS = "topic-log-with-exclusions"

    @property
    def is_topic_based(self) -> bool:
        return self is not SourceKind.ADDRESS_LOG


class BlockRange(Struct, frozen=True):
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid block range [{self.start}, {self.end}]")

    def __len__(self) -> int:
        return self.end - self.start + 1

    def contains(self, block_number: int) -> bool:
        return self.start <= block_number <= self.end

    def clamp(self, start: Optional[int] = None, end: Optional[int] = None) -> Optional['BlockRange']:
        """Narrow the range, returning None when nothing is left."""
        new_start = max(self.start, start) if start is not None else self.start
        new_end = min(self.end, end) if end is not None else self.end
        if new_end < new_start:
            return None
        return BlockRange(new_start, new_end)

    def split(self, max_size: int) -> Iterator['BlockRange']:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        cursor = self.start
        while cursor <= self.end:
            upper = min(cursor + max_size - 1, self.end)
            yield BlockRange(cursor, upper)
            cursor = upper + 1

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"


class Source(Struct, frozen=True, kw_only=True):
    """
    A logical origin of logs. Address-log sources are bound to one emitter;
    topic sources claim an event family across all emitters, optionally
    ceding the addresses in ``excluded_addresses`` to another source.
    """
    id: str
    kind: SourceKind
    starting_block: int
    address: Optional[EvmAddress] = None
    topics: Tuple[EvmHash, ...] = ()
    abi: Tuple[Dict[str, Any], ...] = ()
    excluded_addresses: frozenset = frozenset()

    def __post_init__(self) -> None:
        if self.kind is SourceKind.ADDRESS_LOG and not self.address:
            raise ValueError(f"address-log source {self.id} requires an address")
        if self.kind.is_topic_based and not self.topics:
            raise ValueError(f"{self.kind.value} source {self.id} requires at least one topic")
        if self.excluded_addresses and self.kind is not SourceKind.TOPIC_LOG_WITH_EXCLUSIONS:
            raise ValueError(f"source {self.id} of kind {self.kind.value} cannot exclude addresses")

        # logs are matched in lowercase hex
        if self.address:
            msgspec.structs.force_setattr(self, "address", to_evm_address(self.address))
        msgspec.structs.force_setattr(self, "topics", tuple(EvmHash(to_hex(t)) for t in self.topics))
        msgspec.structs.force_setattr(
            self, "excluded_addresses", frozenset(to_evm_address(a) for a in self.excluded_addresses)
        )

    def is_excluded(self, address: str) -> bool:
        return to_evm_address(address) in self.excluded_addresses


class RawLogRecord(Struct, frozen=True, kw_only=True):
    source_id: str
    block_number: int
    log_index: int
    address: EvmAddress
    topics: Tuple[EvmHash, ...]
    data: HexStr
    tx_hash: Optional[EvmHash] = None
    tx_index: int = 0

    @property
    def ordering_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


class DecodedEvent(Struct, frozen=True, kw_only=True):
    source_id: str
    block_number: int
    log_index: int
    event_name: str
    fields: Dict[str, Any]
    address: EvmAddress
    tx_hash: Optional[EvmHash] = None

    @property
    def ordering_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


class DerivedEvent(Struct, frozen=True, kw_only=True):
    transformer_name: str
    block_number: int
    log_index: int
    payload: DomainPayload
    tx_hash: Optional[EvmHash] = None

    @property
    def ordering_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)

    @property
    def content_id(self) -> DomainEventId:
        content = {
            "transformer": self.transformer_name,
            "block": self.block_number,
            "log_index": self.log_index,
            "tx_hash": self.tx_hash,
            "payload": msgspec.to_builtins(self.payload),
        }
        content_bytes = msgspec.msgpack.encode(content)
        return DomainEventId(hashlib.sha256(content_bytes).hexdigest()[:16])

    def payload_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self.payload)


class Checkpoint(Struct, frozen=True):
    source_id: str
    last_processed_block: int


class BatchResult(Struct, kw_only=True):
    """Everything one block range produced, committed as a single unit."""
    block_range: BlockRange
    source_ids: Tuple[str, ...]
    transformer_names: Tuple[str, ...]
    decoded: Dict[str, List[DecodedEvent]] = {}
    derived: Dict[str, List[DerivedEvent]] = {}
    checkpoints: List[Checkpoint] = []

    @property
    def decoded_count(self) -> int:
        return sum(len(events) for events in self.decoded.values())

    @property
    def derived_count(self) -> int:
        return sum(len(events) for events in self.derived.values())

    def all_derived(self) -> List[DerivedEvent]:
        merged = [e for events in self.derived.values() for e in events]
        return sorted(merged, key=lambda e: (e.ordering_key, e.transformer_name))
