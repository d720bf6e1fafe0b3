# tests/conftest.py
"""
pytest configuration and fixtures for the borrow pipeline tests

Logs are built with eth_abi exactly as a node would return them and served
by an in-memory log client; storage is an in-memory SQLite database and
chain lookups are answered from dictionaries.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
from eth_abi import encode

from borrow_indexer.clients.interfaces import ChainReaderInterface, LogClientInterface
from borrow_indexer.clients.rpc_client import LogRangeTooLargeError
from borrow_indexer.contracts.abi_loader import ABILoader, canonical_type
from borrow_indexer.contracts.signatures import event_topic, function_selector, note_topic
from borrow_indexer.core.config import IndexerConfig
from borrow_indexer.core.exceptions import TransientExtractionError
from borrow_indexer.core.logging import IndexerLogger
from borrow_indexer.database.connection import DatabaseManager
from borrow_indexer.database.store import SqlBatchStore
from borrow_indexer.factory import create_pipeline
from borrow_indexer.transform.dependencies import (
    COLLATERAL_PRICE,
    GAS_PRICE,
    ILK_FOR_CDP,
    ILK_INFO,
    LIQUIDATION_RATIO,
    MULTIPLY_CDP_FOR_URN,
    URN_FOR_CDP,
    IlkInfo,
    PriceLookup,
    StoredLookup,
)
from borrow_indexer.types import DecodedEvent, EvmLog, to_hex
from borrow_indexer.types.configs.config import DatabaseConfig
from borrow_indexer.utils.amounts import str_to_bytes32

PROJECT_ROOT = Path(__file__).parent.parent
ABI_DIR = PROJECT_ROOT / "config" / "abis"
CONFIG_PATH = PROJECT_ROOT / "config" / "config.yaml"

CDP_MANAGER = "0x" + "11" * 20
VAT = "0x" + "22" * 20
DOG = "0x" + "3d" * 20
CLIPPER_ETH = "0x" + "44" * 20
CLIPPER_WBTC = "0x" + "45" * 20
CAT = "0x" + "55" * 20
PIP_ETH = "0x" + "66" * 20
FLIPPER = "0x" + "77" * 20
MULTIPLY = "0x" + "88" * 20
EXCHANGE = "0x" + "99" * 20
OWNER_A = "0x" + "00" * 19 + "0a"
USER = "0x" + "ab" * 20
URN = "0x" + "cc" * 20
VOW = "0x" + "dd" * 20
WETH = "0x" + "ee" * 20

ADDRESSES = {
    "CDP_MANAGER": CDP_MANAGER,
    "MCD_VAT": VAT,
    "MCD_DOG": DOG,
    "MCD_CAT": CAT,
    "PIP_ETH": PIP_ETH,
    "MULTIPLY_PROXY_ACTIONS": MULTIPLY,
    "EXCHANGE": EXCHANGE,
}

WAD = 10 ** 18
RAY = 10 ** 27
RAD = 10 ** 45


# === Log builders ===

def tx_hash_for(*parts: int) -> str:
    seed = 0
    for part in parts:
        seed = seed * 1_000_003 + part + 1
    return "0x" + format(seed, "064x")


def address_topic(address: str) -> str:
    return "0x" + "00" * 12 + address[2:].lower()


def make_log(address: str, topics: Sequence[str], data: bytes, block_number: int, log_index: int,
             tx_hash: Optional[str] = None, removed: bool = False) -> EvmLog:
    return EvmLog(
        address=address,
        blockHash="0x" + "00" * 32,
        blockNumber=hex(block_number),
        data=to_hex(data),
        logIndex=hex(log_index),
        topics=list(topics),
        transactionHash=tx_hash or tx_hash_for(block_number, log_index),
        transactionIndex="0x0",
        removed=removed,
    )


def find_entry(abi: List[Dict[str, Any]], name: str, types: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("name") != name:
            continue
        if types is None or [canonical_type(i) for i in entry["inputs"]] == list(types):
            return entry
    raise KeyError(name)


def event_log(entry: Dict[str, Any], values: Dict[str, Any], address: str, block_number: int,
              log_index: int, tx_hash: Optional[str] = None) -> EvmLog:
    """A log for a regular event, indexed inputs in topics and the rest ABI-encoded in data."""
    topics = [event_topic(entry)]
    data_types, data_values = [], []
    for item in entry["inputs"]:
        value = values[item["name"]]
        if item.get("indexed"):
            topics.append(to_hex(encode([item["type"]], [value])))
        else:
            data_types.append(item["type"])
            data_values.append(value)
    return make_log(address, topics, encode(data_types, data_values), block_number, log_index, tx_hash)


def note_log(entry: Dict[str, Any], args: Sequence[Any], address: str, block_number: int,
             log_index: int, tx_hash: Optional[str] = None, sender: str = USER) -> EvmLog:
    """A ds-note log: selector in topic0 and the calldata wrapped as ABI ``bytes``."""
    calldata = function_selector(entry) + encode([canonical_type(i) for i in entry["inputs"]], list(args))
    topics = [note_topic(entry), address_topic(sender)]
    return make_log(address, topics, encode(["bytes"], [calldata]), block_number, log_index, tx_hash)


def decoded(source_id: str, event_name: str, fields: Dict[str, Any], block_number: int = 100,
            log_index: int = 0, address: str = VAT, tx_hash: Optional[str] = None) -> DecodedEvent:
    return DecodedEvent(
        source_id=source_id,
        block_number=block_number,
        log_index=log_index,
        event_name=event_name,
        fields=fields,
        address=address,
        tx_hash=tx_hash or tx_hash_for(block_number),
    )


def ilk_hex(ilk: str) -> str:
    return to_hex(str_to_bytes32(ilk))


# === Collaborators ===

class FakeLogClient(LogClientInterface):
    """Serves canned logs, filtering them the way eth_getLogs does."""

    def __init__(self, logs: Sequence[EvmLog] = (), head: Optional[int] = None):
        self.logs = list(logs)
        self.head = head
        self.calls = []
        self.failures = 0
        self.max_range: Optional[int] = None

    def add(self, *logs: EvmLog) -> None:
        self.logs.extend(logs)

    def get_logs(self, address, topics, from_block, to_block) -> List[EvmLog]:
        self.calls.append((address, tuple(topics) if topics else None, from_block, to_block))
        if self.failures:
            self.failures -= 1
            raise TransientExtractionError("node unavailable", from_block, to_block)
        if self.max_range is not None and to_block - from_block + 1 > self.max_range:
            raise LogRangeTooLargeError("query returned more than 10000 results", from_block, to_block)

        matched = []
        for log in self.logs:
            block_number = int(log.blockNumber, 16)
            if not from_block <= block_number <= to_block:
                continue
            if address is not None and log.address.lower() != address.lower():
                continue
            if topics is not None and (not log.topics or log.topics[0] not in topics):
                continue
            matched.append(log)
        return matched

    def get_latest_block_number(self) -> int:
        if self.head is not None:
            return self.head
        return max((int(log.blockNumber, 16) for log in self.logs), default=0)


class StubChain:
    """Answers the chain-backed lookups from dictionaries."""

    def __init__(self):
        self.ilks: Dict[int, str] = {7: "ETH-A"}
        self.urns: Dict[int, str] = {7: URN}
        self.ilk_info: Dict[str, IlkInfo] = {
            "ETH-A": IlkInfo(ilk="ETH-A", token=WETH, decimals=18, liquidation_penalty="1.13"),
        }
        self.ilk_info_keys = []
        self.ratios: Dict[str, str] = {"ETH-A": "1.45"}
        self.gas_price: Optional[str] = "30000000000"

    def as_dependencies(self) -> Dict[str, Any]:
        return {
            ILK_FOR_CDP: lambda cdp_id, context: self.ilks.get(int(cdp_id)),
            URN_FOR_CDP: lambda cdp_id, context: self.urns.get(int(cdp_id)),
            ILK_INFO: self._ilk_info,
            LIQUIDATION_RATIO: lambda ilk, context: self.ratios.get(ilk),
            GAS_PRICE: lambda tx_hash, context: self.gas_price,
        }

    def _ilk_info(self, key, context):
        self.ilk_info_keys.append(key)
        return self.ilk_info.get(key.ilk)


class FakeChainReader(ChainReaderInterface):
    """Contract reads keyed by (address, function, args)."""

    def __init__(self):
        self.results: Dict[tuple, Any] = {}
        self.gas_prices: Dict[str, int] = {}
        self.calls = []

    def set(self, address: str, function_name: str, args: Sequence[Any], result: Any) -> None:
        self.results[(address.lower(), function_name, tuple(args))] = result

    def call(self, address, abi, function_name, args, block_number):
        self.calls.append((address, function_name, tuple(args), block_number))
        return self.results.get((address.lower(), function_name, tuple(args)))

    def get_gas_price(self, tx_hash):
        return self.gas_prices.get(tx_hash)


def build_config(sources: Sequence[Dict[str, Any]],
                 transformers: Sequence[Dict[str, Any]] = (),
                 starting_block: int = 0,
                 **pipeline: Any) -> IndexerConfig:
    settings = {
        "max_batch_size": 100,
        "poll_interval": 0,
        "retry_backoff": 0,
        "max_batch_retries": 2,
        "extraction_workers": 4,
    }
    settings.update(pipeline)
    return IndexerConfig.from_dict({
        "name": "test",
        "starting_block": starting_block,
        "rpc": {"endpoint_url": "http://localhost:8545", "max_retries": 2, "backoff_base": 0},
        "database": {"url": "sqlite://"},
        "pipeline": settings,
        "paths": {"abi_dir": str(ABI_DIR)},
        "addresses": ADDRESSES,
        "sources": list(sources),
        "transformers": list(transformers),
    })


# === Fixtures ===

@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Route pipeline logs through the root logger so caplog sees them"""
    IndexerLogger.configure(log_level="DEBUG", console_enabled=False, force=True)


@pytest.fixture(scope="session")
def abi_loader():
    return ABILoader(ABI_DIR)


@pytest.fixture
def db_manager():
    manager = DatabaseManager(DatabaseConfig(url="sqlite://"))
    manager.initialize()
    manager.create_schema()
    yield manager
    manager.shutdown()


@pytest.fixture
def store(db_manager):
    return SqlBatchStore(db_manager)


@pytest.fixture
def stub_chain():
    return StubChain()


@pytest.fixture
def lookups(stub_chain, store):
    """Stub chain lookups plus the real price lookup over oracle output and the store"""
    dependencies = stub_chain.as_dependencies()
    dependencies[COLLATERAL_PRICE] = PriceLookup(store.latest_price, ["oracle"])
    dependencies[MULTIPLY_CDP_FOR_URN] = StoredLookup(store.multiply_cdp_for_urn)
    return dependencies


@pytest.fixture
def log_client():
    return FakeLogClient()


@pytest.fixture
def make_pipeline(log_client, store, lookups):
    """Factory building a pipeline over the fake client and in-memory store"""
    def _make(config: IndexerConfig):
        return create_pipeline(config, log_client=log_client, store=store, lookups=lookups)
    return _make
