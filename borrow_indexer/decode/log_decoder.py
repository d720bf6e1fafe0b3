# borrow_indexer/decode/log_decoder.py

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_utils import is_address
from hexbytes import HexBytes
from web3 import Web3
from web3._utils.events import get_event_data

from ..contracts.abi_loader import canonical_type
from ..contracts.signatures import NOTE_PADDING, function_selector
from ..core.logging import LoggingMixin
from ..types import DecodedEvent, RawLogRecord, to_hex

_codec = Web3().codec


def decode(raw: RawLogRecord, abi: Sequence[Dict[str, Any]]) -> Optional[DecodedEvent]:
    """
    Decode ``raw`` against ``abi``. Returns None when nothing in the ABI
    matches: a topic match across unrelated contracts does not promise a
    full signature match, so a miss is an expected outcome.
    """
    if not raw.topics:
        return None

    decoded = _decode_event(raw, abi)
    if decoded is None:
        decoded = _decode_note(raw, abi)
    if decoded is None:
        return None

    name, fields = decoded
    return DecodedEvent(
        source_id=raw.source_id,
        block_number=raw.block_number,
        log_index=raw.log_index,
        event_name=name,
        fields=fields,
        address=raw.address,
        tx_hash=raw.tx_hash,
    )


def _decode_event(raw: RawLogRecord, abi: Iterable[Dict[str, Any]]) -> Optional[Tuple[str, Dict[str, Any]]]:
    log_entry = {
        'address': Web3.to_checksum_address(raw.address),
        'topics': [HexBytes(t) for t in raw.topics],
        'data': HexBytes(raw.data),
        'logIndex': raw.log_index,
        'transactionIndex': raw.tx_index,
        'transactionHash': HexBytes(raw.tx_hash) if raw.tx_hash else HexBytes(b"\x00" * 32),
        'blockHash': HexBytes(b"\x00" * 32),
        'blockNumber': raw.block_number,
    }

    for entry in abi:
        if entry.get('type') != 'event':
            continue
        try:
            event_data = get_event_data(_codec, {'anonymous': False, **entry}, log_entry)
        except Exception:
            continue
        return event_data['event'], normalize_fields(dict(event_data['args']))

    return None


def _decode_note(raw: RawLogRecord, abi: Iterable[Dict[str, Any]]) -> Optional[Tuple[str, Dict[str, Any]]]:
    topic0 = bytes(HexBytes(raw.topics[0]))
    if len(topic0) != 32 or topic0[4:] != NOTE_PADDING:
        return None

    for entry in abi:
        if entry.get('type') != 'function':
            continue
        selector = function_selector(entry)
        if topic0[:4] != selector:
            continue
        try:
            (calldata,) = abi_decode(['bytes'], bytes(HexBytes(raw.data)))
            if calldata[:4] != selector:
                return None
            inputs = entry.get('inputs', [])
            # notes may copy a fixed-size calldata window, trailing bytes included
            values = abi_decode([canonical_type(i) for i in inputs], calldata[4:], strict=False)
        except Exception:
            return None
        fields = {
            (i.get('name') or f"arg{n}"): value
            for n, (i, value) in enumerate(zip(inputs, values))
        }
        return entry['name'], normalize_fields(fields)

    return None


def normalize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _normalize_value(value) for key, value in fields.items()}


def _normalize_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (bytes, bytearray, HexBytes)):
        return to_hex(bytes(value))
    if isinstance(value, str) and is_address(value):
        return value.lower()
    if isinstance(value, (list, tuple)):
        return [_normalize_value(item) for item in value]
    if isinstance(value, dict):
        return normalize_fields(value)
    return value


class LogDecoder(LoggingMixin):
    """Decodes the raw records of one batch, dropping non-matching logs."""

    def decode_records(self, records: List[RawLogRecord], abi: Sequence[Dict[str, Any]]) -> List[DecodedEvent]:
        decoded_events = []
        dropped = 0
        for record in records:
            event = decode(record, abi)
            if event is None:
                dropped += 1
                self.log_debug("Log did not match any ABI entry",
                               source_id=record.source_id,
                               block_number=record.block_number,
                               log_index=record.log_index)
                continue
            decoded_events.append(event)

        if dropped:
            self.log_debug("Dropped undecodable logs",
                           source_id=records[0].source_id,
                           dropped=dropped,
                           kept=len(decoded_events))
        return decoded_events
