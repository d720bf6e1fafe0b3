# borrow_indexer/types/new.py

from typing import NewType, Union

HexStr = NewType('HexStr', str)
EvmAddress = NewType('EvmAddress', str)
EvmHash = NewType('EvmHash', str)
DomainEventId = NewType('DomainEventId', str)
ErrorId = NewType('ErrorId', str)


def to_hex(value: Union[bytes, str, None]) -> HexStr:
    if value is None:
        return HexStr("0x")
    if isinstance(value, (bytes, bytearray)):
        return HexStr("0x" + bytes(value).hex())
    value = value.lower()
    return HexStr(value if value.startswith("0x") else "0x" + value)


def to_evm_address(value: Union[bytes, str]) -> EvmAddress:
    return EvmAddress(to_hex(value))


def hex_to_int(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith("0x") else int(value)
