# borrow_indexer/types/model/auction.py

from typing import Optional

from ..new import EvmAddress
from .base import Payload


class AuctionKick(Payload):
    auction_id: int
    clipper: EvmAddress
    top: str
    tab: str
    lot: str
    usr: EvmAddress
    keeper: EvmAddress
    coin: str


class AuctionTake(Payload):
    auction_id: int
    clipper: EvmAddress
    max_price: str
    price: str
    owe: str
    tab: str
    lot: str
    usr: EvmAddress


class AuctionReset(Payload):
    auction_id: int
    clipper: EvmAddress
    top: str
    tab: str
    lot: str
    usr: EvmAddress
    keeper: EvmAddress
    coin: str


class AuctionCancelled(Payload):
    auction_id: int
    clipper: EvmAddress


class FlipKick(Payload):
    auction_id: int
    flipper: EvmAddress
    lot: str
    bid: str
    tab: str
    usr: EvmAddress
    gal: EvmAddress


class FlipBid(Payload):
    auction_id: int
    flipper: EvmAddress
    action: str  # tend, dent or deal
    lot: Optional[str] = None
    bid: Optional[str] = None
