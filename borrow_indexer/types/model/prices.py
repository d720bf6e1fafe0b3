# borrow_indexer/types/model/prices.py

from ..new import EvmAddress
from .base import Payload


class PriceUpdate(Payload):
    token: str
    oracle: EvmAddress
    price: str
