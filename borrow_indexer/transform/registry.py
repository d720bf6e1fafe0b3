# borrow_indexer/transform/registry.py

from typing import Any, Dict, List, Mapping, Optional, Type
import logging

from ..core.config import IndexerConfig
from ..core.exceptions import ConfigurationError
from ..core.logging import IndexerLogger, log_with_context
from ..types.configs.transformer import TransformerConfig
from .dependencies import Lookup
from .transformers import (
    BaseTransformer,
    CdpManagerOpenTransformer,
    CdpManagerGiveTransformer,
    VatTransformer,
    VatRawMoveTransformer,
    VatMoveEventsTransformer,
    VatCombineTransformer,
    CatTransformer,
    DogTransformer,
    CatAuctionTransformer,
    DogAuctionTransformer,
    ClipperTransformer,
    FlipperTransformer,
    FlipperNoteTransformer,
    OracleTransformer,
    ExchangeTransformer,
    MultiplyTransformer,
    MultiplyHistoryTransformer,
    CollateralPriceEnhancer,
    EthPriceEnhancer,
    GasPriceEnhancer,
)

TRANSFORMER_KINDS: Dict[str, Type[BaseTransformer]] = {
    cls.kind: cls for cls in (
        CdpManagerOpenTransformer,
        CdpManagerGiveTransformer,
        VatTransformer,
        VatRawMoveTransformer,
        VatMoveEventsTransformer,
        VatCombineTransformer,
        CatTransformer,
        DogTransformer,
        CatAuctionTransformer,
        DogAuctionTransformer,
        ClipperTransformer,
        FlipperTransformer,
        FlipperNoteTransformer,
        OracleTransformer,
        ExchangeTransformer,
        MultiplyTransformer,
        MultiplyHistoryTransformer,
        CollateralPriceEnhancer,
        EthPriceEnhancer,
        GasPriceEnhancer,
    )
}


def build_transformer(config: IndexerConfig,
                      transformer_config: TransformerConfig,
                      lookups: Mapping[str, Lookup]) -> BaseTransformer:
    cls = TRANSFORMER_KINDS.get(transformer_config.kind)
    if cls is None:
        raise ConfigurationError(
            f"Unknown transformer kind {transformer_config.kind!r}", transformer_config.name
        )

    options = _resolve_address_options(config, cls, transformer_config.options)
    try:
        return cls(
            transformer_config.name,
            sources=transformer_config.sources,
            depends_on=transformer_config.depends_on,
            dependencies=lookups,
            **options,
        )
    except TypeError as e:
        raise ConfigurationError(f"Invalid options ({e})", transformer_config.name) from e


def build_transformers(config: IndexerConfig,
                       lookups: Optional[Mapping[str, Lookup]] = None) -> List[BaseTransformer]:
    logger = IndexerLogger.get_logger('transform.registry')
    lookups = dict(lookups or {})

    transformers = [build_transformer(config, tc, lookups) for tc in config.transformers]

    log_with_context(logger, logging.INFO, "Transformers built",
                     transformer_count=len(transformers),
                     kinds=sorted({t.kind for t in transformers}))
    return transformers


def _resolve_address_options(config: IndexerConfig, cls: Type[BaseTransformer],
                             options: Mapping[str, Any]) -> Dict[str, Any]:
    resolved = dict(options)
    for option in cls.address_options:
        if option not in resolved:
            continue
        value = resolved[option]
        if isinstance(value, str):
            resolved[option] = config.resolve_address(value)
        elif isinstance(value, dict):
            resolved[option] = {config.resolve_address(k): v for k, v in value.items()}
        else:
            resolved[option] = [config.resolve_address(v) for v in value]
    return resolved
