# borrow_indexer/contracts/signatures.py

from typing import Any, Dict, Iterable, Tuple

from web3 import Web3

from ..types import EvmHash, to_hex
from .abi_loader import function_signature

NOTE_PADDING = b"\x00" * 28


def event_signature(entry: Dict[str, Any]) -> str:
    # Event and function signatures share the canonical form
    return function_signature(entry)


def event_topic(entry: Dict[str, Any]) -> EvmHash:
    return EvmHash(to_hex(Web3.keccak(text=event_signature(entry))))


def function_selector(entry: Dict[str, Any]) -> bytes:
    return bytes(Web3.keccak(text=function_signature(entry)))[:4]


def note_topic(entry: Dict[str, Any]) -> EvmHash:
    """ds-note logs carry the 4-byte selector left-aligned in topic0."""
    return EvmHash(to_hex(function_selector(entry) + NOTE_PADDING))


def abi_topics(abi: Iterable[Dict[str, Any]]) -> Tuple[EvmHash, ...]:
    topics = []
    for entry in abi:
        if entry.get('type') == 'event' and not entry.get('anonymous', False):
            topics.append(event_topic(entry))
        elif entry.get('type') == 'function':
            topics.append(note_topic(entry))
    return tuple(sorted(set(topics)))
