# borrow_indexer/types/configs/source.py

from typing import List, Optional

from msgspec import Struct

from ..records import SourceKind


class SourceConfig(Struct):
    id: str
    kind: SourceKind
    starting_block: Optional[int] = None  # defaults to the global starting block
    address: Optional[str] = None  # address-book key or literal 0x address
    abi_file: Optional[str] = None
    event_names: Optional[List[str]] = None  # subset of ABI events to claim
    note_functions: Optional[List[str]] = None  # ds-note signatures, e.g. "tend(uint256,uint256,uint256)"
    exclude: List[str] = []
