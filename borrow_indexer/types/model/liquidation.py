# borrow_indexer/types/model/liquidation.py

from ..new import EvmAddress
from .base import Payload


class Liquidation(Payload):
    mechanism: str  # "cat" (liquidations 1.2) or "dog" (liquidations 2.0)
    ilk: str
    urn: EvmAddress
    collateral: str
    debt: str
    due: str
    auction_address: EvmAddress
    auction_id: int


class AuctionStarted(Payload):
    mechanism: str
    auction_id: int
    auction_address: EvmAddress
    ilk: str
    urn: EvmAddress
    collateral: str
    debt: str
    collateral_token: EvmAddress
    collateral_decimals: int
    liquidation_penalty: str


class ParameterChanged(Payload):
    contract: EvmAddress
    what: str
    data: str
