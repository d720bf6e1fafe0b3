# borrow_indexer/transform/transformers/enhancers.py

from typing import Any, Dict, List, Optional

from .base import BaseTransformer
from ..context import TransformInput
from ..dependencies import COLLATERAL_PRICE, GAS_PRICE
from ...types import DerivedEvent, Enrichment, VaultNetChange


def token_for_ilk(ilk: str, overrides: Optional[Dict[str, str]] = None) -> str:
    """ETH-A -> ETH, WBTC-C -> WBTC, unless overridden."""
    if overrides and ilk in overrides:
        return overrides[ilk]
    return ilk.rsplit("-", 1)[0]


class EventEnhancer(BaseTransformer):
    """
    Attaches one looked-up field to every upstream VaultNetChange.

    The lookup is resolved for the position of the vault change, so price
    lookups see oracle updates up to and including that log only.
    """

    kind = "event_enhancer"
    field = ""
    dependency = ""

    def __init__(self, name: str, ilk_tokens: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.ilk_tokens = dict(ilk_tokens or {})

    def lookup_key(self, event: DerivedEvent, change: VaultNetChange) -> Any:
        raise NotImplementedError

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        derived = []
        for event in inputs.derived():
            change = event.payload
            if not isinstance(change, VaultNetChange):
                continue
            value = self.lookup_for(self.dependency, self.lookup_key(event, change), event, inputs)
            derived.append(self.emit(
                event.block_number,
                event.log_index,
                Enrichment(
                    target_transformer=event.transformer_name,
                    target_log_index=event.log_index,
                    urn=change.urn,
                    ilk=change.ilk,
                    field=self.field,
                    value=str(value),
                ),
                event.tx_hash,
            ))
        return derived


class CollateralPriceEnhancer(EventEnhancer):
    kind = "event_enhancer_price"
    field = "collateral_price"
    dependency = COLLATERAL_PRICE
    required_dependencies = (COLLATERAL_PRICE,)

    def lookup_key(self, event: DerivedEvent, change: VaultNetChange) -> str:
        return token_for_ilk(change.ilk, self.ilk_tokens)


class EthPriceEnhancer(EventEnhancer):
    kind = "event_enhancer_eth_price"
    field = "eth_price"
    dependency = COLLATERAL_PRICE
    required_dependencies = (COLLATERAL_PRICE,)

    def __init__(self, name: str, eth_token: str = "ETH", **kwargs):
        super().__init__(name, **kwargs)
        self.eth_token = eth_token

    def lookup_key(self, event: DerivedEvent, change: VaultNetChange) -> str:
        return self.eth_token


class GasPriceEnhancer(EventEnhancer):
    kind = "event_enhancer_gas_price"
    field = "gas_price"
    dependency = GAS_PRICE
    required_dependencies = (GAS_PRICE,)

    def lookup_key(self, event: DerivedEvent, change: VaultNetChange) -> Optional[str]:
        return event.tx_hash
