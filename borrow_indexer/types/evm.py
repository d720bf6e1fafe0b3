# borrow_indexer/types/evm.py

from msgspec import Struct

from .new import HexStr, EvmAddress, EvmHash


class EvmLog(Struct):
    address: EvmAddress
    blockHash: EvmHash
    blockNumber: HexStr
    data: HexStr
    logIndex: HexStr
    topics: list[EvmHash]
    transactionHash: EvmHash
    transactionIndex: HexStr
    removed: bool = False  # True when dropped by a reorg
