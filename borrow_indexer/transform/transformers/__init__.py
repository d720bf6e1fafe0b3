# borrow_indexer/transform/transformers/__init__.py

from .base import BaseTransformer
from .vaults import (
    CdpManagerOpenTransformer,
    CdpManagerGiveTransformer,
    VatTransformer,
    VatRawMoveTransformer,
    VatMoveEventsTransformer,
    VatCombineTransformer,
)
from .liquidations import (
    CatTransformer,
    DogTransformer,
    LiquidationAuctionTransformer,
    CatAuctionTransformer,
    DogAuctionTransformer,
)
from .auctions import ClipperTransformer, FlipperTransformer, FlipperNoteTransformer
from .prices import OracleTransformer
from .multiply import ExchangeTransformer, MultiplyTransformer, MultiplyHistoryTransformer
from .enhancers import (
    EventEnhancer,
    CollateralPriceEnhancer,
    EthPriceEnhancer,
    GasPriceEnhancer,
    token_for_ilk,
)

__all__ = [
    "BaseTransformer",
    "CdpManagerOpenTransformer",
    "CdpManagerGiveTransformer",
    "VatTransformer",
    "VatRawMoveTransformer",
    "VatMoveEventsTransformer",
    "VatCombineTransformer",
    "CatTransformer",
    "DogTransformer",
    "LiquidationAuctionTransformer",
    "CatAuctionTransformer",
    "DogAuctionTransformer",
    "ClipperTransformer",
    "FlipperTransformer",
    "FlipperNoteTransformer",
    "OracleTransformer",
    "ExchangeTransformer",
    "MultiplyTransformer",
    "MultiplyHistoryTransformer",
    "EventEnhancer",
    "CollateralPriceEnhancer",
    "EthPriceEnhancer",
    "GasPriceEnhancer",
    "token_for_ilk",
]
