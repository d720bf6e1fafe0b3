# borrow_indexer/types/model/multiply.py

from typing import Optional

from ..new import EvmAddress
from .base import Payload


class MultiplyAction(Payload):
    method_name: str
    cdp_id: int
    collateral_type: str
    liquidation_ratio: str
    swap_min_amount: str
    swap_optimist_amount: str
    collateral_left: str
    dai_left: str


class AssetSwap(Payload):
    exchange: EvmAddress
    asset_in: EvmAddress
    asset_out: EvmAddress
    amount_in: str
    amount_out: str


class FeePaid(Payload):
    exchange: EvmAddress
    beneficiary: EvmAddress
    amount: str


class MultiplyHistory(Payload):
    cdp_id: int
    kind: str
    collateral_type: str
    collateral_delta: str
    debt_delta: str
    swap_amount_in: Optional[str] = None
    swap_amount_out: Optional[str] = None
    fee: Optional[str] = None
    liquidated: bool = False
    urn: Optional[EvmAddress] = None
