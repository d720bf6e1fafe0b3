# borrow_indexer/types/model/vault.py

from typing import Optional

from ..new import EvmAddress
from .base import Payload


class VaultOpened(Payload):
    cdp_id: int
    owner: EvmAddress
    creator: EvmAddress
    collateral_type: str
    urn: Optional[EvmAddress] = None


class VaultTransferred(Payload):
    cdp_id: int
    new_owner: EvmAddress
    manager: EvmAddress


class VaultBalanceChange(Payload):
    kind: str  # frob, fork or grab
    ilk: str
    urn: EvmAddress
    collateral_delta: str
    debt_delta: str
    counterparty: Optional[EvmAddress] = None


class VatMove(Payload):
    src: EvmAddress
    dst: EvmAddress
    rad: str


class VaultNetChange(Payload):
    urn: EvmAddress
    ilk: str
    collateral_delta: str
    debt_delta: str
    dai_delta: str
    combined_logs: int


class Enrichment(Payload):
    target_transformer: str
    target_log_index: int
    urn: EvmAddress
    ilk: str
    field: str  # collateral_price, eth_price or gas_price
    value: str


class UrnMove(Payload):
    """One side of a Vat transfer: dai from ``move`` (rad) or collateral from ``flux`` (wad)."""
    urn: EvmAddress
    counterparty: EvmAddress
    asset: str  # dai or collateral
    amount: str  # negative on the sending side
    ilk: Optional[str] = None
