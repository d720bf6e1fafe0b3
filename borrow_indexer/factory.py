"""
Factory for wiring pipeline components from an IndexerConfig.

Every collaborator can be substituted, which is how tests run the pipeline
against canned logs, an in-memory database and stub lookups.
"""
import threading
from pathlib import Path
from typing import Callable, Mapping, Optional

from .checkpoint.tracker import CheckpointTracker
from .clients.interfaces import ChainReaderInterface, LogClientInterface
from .clients.rpc_client import Web3RpcClient
from .contracts.abi_loader import ABILoader
from .core.config import IndexerConfig
from .core.exceptions import ConfigurationError
from .core.logging import IndexerLogger, log_with_context, INFO
from .database.connection import DatabaseManager
from .database.interfaces import BatchStoreInterface
from .database.store import SqlBatchStore
from .decode.log_decoder import LogDecoder
from .extract.extractor import RawExtractor
from .pipeline.orchestrator import PipelineOrchestrator
from .sources.registry import SourceRegistry
from .transform.dependencies import (
    COLLATERAL_PRICE,
    MULTIPLY_CDP_FOR_URN,
    ChainLookups,
    Lookup,
    PriceLookup,
    StoredLookup,
)
from .transform.graph import TransformerGraph
from .transform.registry import build_transformers


def create_store(config: IndexerConfig) -> SqlBatchStore:
    db_manager = DatabaseManager(config.database)
    db_manager.initialize()
    db_manager.create_schema()
    return SqlBatchStore(db_manager)


def create_lookups(config: IndexerConfig,
                   reader: ChainReaderInterface,
                   latest_stored_price: Callable[[str, int], Optional[str]],
                   multiply_cdp_for_urn: Optional[Callable[[str, int], Optional[int]]] = None) -> dict:
    lookups = ChainLookups(reader, config.addresses).as_dependencies()
    oracle_names = [t.name for t in config.transformers if t.kind == "oracle"]
    lookups[COLLATERAL_PRICE] = PriceLookup(latest_stored_price, oracle_names)
    if multiply_cdp_for_urn is not None:
        lookups[MULTIPLY_CDP_FOR_URN] = StoredLookup(multiply_cdp_for_urn)
    return lookups


def build_graph(config: IndexerConfig,
                registry: SourceRegistry,
                lookups: Optional[Mapping[str, Lookup]] = None) -> TransformerGraph:
    transformers = build_transformers(config, lookups)
    return TransformerGraph.build(transformers, known_sources=[s.id for s in registry.all()])


def create_registry(config: IndexerConfig) -> SourceRegistry:
    registry = SourceRegistry.from_config(config, ABILoader(Path(config.paths.abi_dir)))
    registry.freeze()
    return registry


def create_pipeline(config: IndexerConfig,
                    log_client: Optional[LogClientInterface] = None,
                    store: Optional[BatchStoreInterface] = None,
                    lookups: Optional[Mapping[str, Lookup]] = None) -> PipelineOrchestrator:
    logger = IndexerLogger.get_logger('factory')

    registry = create_registry(config)

    if log_client is None:
        log_client = Web3RpcClient(config.rpc)
    if store is None:
        store = create_store(config)
    if lookups is None:
        if not isinstance(log_client, ChainReaderInterface):
            raise ConfigurationError("Lookups must be supplied when the log client cannot read chain state")
        lookups = create_lookups(config, log_client, store.latest_price, store.multiply_cdp_for_urn)

    graph = build_graph(config, registry, lookups)

    cancel_event = threading.Event()
    extractor = RawExtractor(log_client, config.rpc, is_cancelled=cancel_event.is_set)

    orchestrator = PipelineOrchestrator(
        config=config,
        registry=registry,
        extractor=extractor,
        decoder=LogDecoder(),
        graph=graph,
        tracker=CheckpointTracker(store),
        store=store,
        log_client=log_client,
        cancel_event=cancel_event,
    )

    log_with_context(logger, INFO, "Pipeline created",
                     name=config.name,
                     source_count=len(registry),
                     transformer_count=len(graph.order))
    return orchestrator
