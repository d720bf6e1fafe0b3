# borrow_indexer/types/model/__init__.py

from typing import Union

from .base import Payload
from .vault import (
    VaultOpened,
    VaultTransferred,
    VaultBalanceChange,
    VatMove,
    UrnMove,
    VaultNetChange,
    Enrichment,
)
from .liquidation import Liquidation, AuctionStarted, ParameterChanged
from .auction import (
    AuctionKick,
    AuctionTake,
    AuctionReset,
    AuctionCancelled,
    FlipKick,
    FlipBid,
)
from .prices import PriceUpdate
from .multiply import MultiplyAction, AssetSwap, FeePaid, MultiplyHistory

DomainPayload = Union[
    VaultOpened,
    VaultTransferred,
    VaultBalanceChange,
    VatMove,
    UrnMove,
    VaultNetChange,
    Enrichment,
    Liquidation,
    AuctionStarted,
    ParameterChanged,
    AuctionKick,
    AuctionTake,
    AuctionReset,
    AuctionCancelled,
    FlipKick,
    FlipBid,
    PriceUpdate,
    MultiplyAction,
    AssetSwap,
    FeePaid,
    MultiplyHistory,
]

__all__ = [
    "Payload",
    "DomainPayload",
    "VaultOpened",
    "VaultTransferred",
    "VaultBalanceChange",
    "VatMove",
    "UrnMove",
    "VaultNetChange",
    "Enrichment",
    "Liquidation",
    "AuctionStarted",
    "ParameterChanged",
    "AuctionKick",
    "AuctionTake",
    "AuctionReset",
    "AuctionCancelled",
    "FlipKick",
    "FlipBid",
    "PriceUpdate",
    "MultiplyAction",
    "AssetSwap",
    "FeePaid",
    "MultiplyHistory",
]
