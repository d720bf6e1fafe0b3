# borrow_indexer/transform/dependencies.py
"""
Named lookups injected into transformers.

Every lookup is a callable ``(key, BlockContext) -> value`` returning None
when the value is unknown. Transformers never cache lookup results;
``ChainLookups`` and ``PriceLookup`` own whatever consistency they need.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence

from msgspec import Struct

from ..clients.interfaces import ChainReaderInterface
from ..core.exceptions import ConfigurationError
from ..core.logging import LoggingMixin
from ..types import EvmAddress, PriceUpdate, to_evm_address
from ..utils.amounts import RAY, WAD, bytes32_to_str, from_fixed, str_to_bytes32
from .context import BlockContext


class IlkInfo(Struct, frozen=True):
    ilk: str
    token: EvmAddress
    decimals: int
    liquidation_penalty: str


class IlkKey(Struct, frozen=True):
    """Key for the ilk-info lookup; the mechanism picks where the penalty is read."""
    ilk: str
    mechanism: str  # cat or dog


class Lookup(Protocol):
    def __call__(self, key: Any, context: BlockContext) -> Optional[Any]: ...


# Dependency names shared by configuration and transformers
ILK_FOR_CDP = "get_ilk_for_cdp"
URN_FOR_CDP = "get_urn_for_cdp"
ILK_INFO = "get_ilk_info"
LIQUIDATION_RATIO = "get_liquidation_ratio"
COLLATERAL_PRICE = "get_collateral_price"
GAS_PRICE = "get_gas_price"
MULTIPLY_CDP_FOR_URN = "get_multiply_cdp_for_urn"

CDP_MANAGER_ABI = [
    {"type": "function", "name": "urns", "stateMutability": "view",
     "inputs": [{"name": "", "type": "uint256"}], "outputs": [{"name": "", "type": "address"}]},
    {"type": "function", "name": "ilks", "stateMutability": "view",
     "inputs": [{"name": "", "type": "uint256"}], "outputs": [{"name": "", "type": "bytes32"}]},
]

ILK_REGISTRY_ABI = [
    {"type": "function", "name": "gem", "stateMutability": "view",
     "inputs": [{"name": "ilk", "type": "bytes32"}], "outputs": [{"name": "", "type": "address"}]},
    {"type": "function", "name": "dec", "stateMutability": "view",
     "inputs": [{"name": "ilk", "type": "bytes32"}], "outputs": [{"name": "", "type": "uint256"}]},
]

CAT_ABI = [
    {"type": "function", "name": "ilks", "stateMutability": "view",
     "inputs": [{"name": "", "type": "bytes32"}],
     "outputs": [{"name": "flip", "type": "address"}, {"name": "chop", "type": "uint256"},
                 {"name": "dunk", "type": "uint256"}]},
]

DOG_ABI = [
    {"type": "function", "name": "ilks", "stateMutability": "view",
     "inputs": [{"name": "", "type": "bytes32"}],
     "outputs": [{"name": "clip", "type": "address"}, {"name": "chop", "type": "uint256"},
                 {"name": "hole", "type": "uint256"}, {"name": "dirt", "type": "uint256"}]},
]

SPOTTER_ABI = [
    {"type": "function", "name": "ilks", "stateMutability": "view",
     "inputs": [{"name": "", "type": "bytes32"}],
     "outputs": [{"name": "pip", "type": "address"}, {"name": "mat", "type": "uint256"}]},
]

ZERO_ADDRESS = "0x" + "00" * 20

# address-book key and ABI holding each mechanism's liquidation penalty
PENALTY_SOURCES = {
    "cat": ("MCD_CAT", CAT_ABI),
    "dog": ("MCD_DOG", DOG_ABI),
}


class ChainLookups(LoggingMixin):
    """Lookups answered by reading contract state at the event's block."""

    def __init__(self, reader: ChainReaderInterface, addresses: Mapping[str, str]):
        self.reader = reader
        self.addresses = {key: to_evm_address(value) for key, value in addresses.items()}

    def _address(self, key: str) -> EvmAddress:
        if key not in self.addresses:
            raise ConfigurationError("Address required for lookup", key)
        return self.addresses[key]

    def get_urn_for_cdp(self, cdp_id: int, context: BlockContext) -> Optional[EvmAddress]:
        urn = self.reader.call(self._address("CDP_MANAGER"), CDP_MANAGER_ABI, "urns",
                               [int(cdp_id)], context.block_number)
        if not urn or urn.lower() == ZERO_ADDRESS:
            return None
        return to_evm_address(urn)

    def get_ilk_for_cdp(self, cdp_id: int, context: BlockContext) -> Optional[str]:
        raw = self.reader.call(self._address("CDP_MANAGER"), CDP_MANAGER_ABI, "ilks",
                               [int(cdp_id)], context.block_number)
        ilk = bytes32_to_str(raw) if raw else ""
        return ilk or None

    def get_ilk_info(self, key: IlkKey, context: BlockContext) -> Optional[IlkInfo]:
        """
        Token, decimals and liquidation penalty of an ilk. The penalty is
        read from the Cat for cat liquidations and from the Dog for dog
        liquidations; the Dog did not exist for most of the Cat's life.
        """
        if key.mechanism not in PENALTY_SOURCES:
            raise ConfigurationError("Unknown liquidation mechanism", key.mechanism)
        penalty_key, penalty_abi = PENALTY_SOURCES[key.mechanism]

        ilk_bytes = str_to_bytes32(key.ilk)
        registry = self._address("ILK_REGISTRY")
        token = self.reader.call(registry, ILK_REGISTRY_ABI, "gem", [ilk_bytes], context.block_number)
        if not token or token.lower() == ZERO_ADDRESS:
            return None
        decimals = self.reader.call(registry, ILK_REGISTRY_ABI, "dec", [ilk_bytes], context.block_number)
        penalty = self.reader.call(self._address(penalty_key), penalty_abi, "ilks",
                                   [ilk_bytes], context.block_number)
        if decimals is None or not penalty:
            self.log_debug("Ilk info incomplete",
                           ilk=key.ilk,
                           mechanism=key.mechanism,
                           block_number=context.block_number)
            return None

        # chop is the second field for both the Cat and the Dog
        return IlkInfo(
            ilk=key.ilk,
            token=to_evm_address(token),
            decimals=int(decimals),
            liquidation_penalty=from_fixed(penalty[1], WAD),
        )

    def get_liquidation_ratio(self, ilk: str, context: BlockContext) -> Optional[str]:
        result = self.reader.call(self._address("MCD_SPOT"), SPOTTER_ABI, "ilks",
                                  [str_to_bytes32(ilk)], context.block_number)
        if not result:
            return None
        _pip, mat = result
        if not mat:
            return None
        return from_fixed(mat, RAY)

    def get_gas_price(self, tx_hash: str, context: BlockContext) -> Optional[str]:
        gas_price = self.reader.get_gas_price(tx_hash)
        return str(gas_price) if gas_price is not None else None

    def as_dependencies(self) -> Dict[str, Lookup]:
        return {
            URN_FOR_CDP: self.get_urn_for_cdp,
            ILK_FOR_CDP: self.get_ilk_for_cdp,
            ILK_INFO: self.get_ilk_info,
            LIQUIDATION_RATIO: self.get_liquidation_ratio,
            GAS_PRICE: self.get_gas_price,
        }


class PriceLookup(LoggingMixin):
    """
    Latest known price for a token at or before the looked-up event: first
    from oracle updates derived earlier in the same batch, then from the
    store for blocks already committed.
    """

    def __init__(self, latest_stored_price: Callable[[str, int], Optional[str]],
                 oracle_transformers: Sequence[str]):
        self.latest_stored_price = latest_stored_price
        self.oracle_transformers = list(oracle_transformers)

    def __call__(self, token: str, context: BlockContext) -> Optional[str]:
        if context.view is not None:
            best = None
            for name in self.oracle_transformers:
                for event in context.view.derived(name):
                    payload = event.payload
                    if not isinstance(payload, PriceUpdate) or payload.token != token:
                        continue
                    if event.ordering_key > (context.block_number, context.log_index):
                        continue
                    if best is None or event.ordering_key > best.ordering_key:
                        best = event
            if best is not None:
                return best.payload.price

        return self.latest_stored_price(token, context.block_number)


class StoredLookup:
    """Adapts a store query ``(key, block_number)`` to the lookup signature."""

    def __init__(self, query: Callable[[Any, int], Optional[Any]]):
        self.query = query

    def __call__(self, key: Any, context: BlockContext) -> Optional[Any]:
        return self.query(key, context.block_number)
