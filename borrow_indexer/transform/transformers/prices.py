# borrow_indexer/transform/transformers/prices.py

from typing import Dict, Optional

from .base import BaseTransformer
from ..context import TransformInput
from ...types import DecodedEvent, PriceUpdate, hex_to_int
from ...utils.amounts import WAD, from_fixed


class OracleTransformer(BaseTransformer):
    """
    Price updates from OSM (LogValue) and LP oracle (Value) contracts.

    ``tokens`` maps each oracle address to the token it prices; updates
    from oracles not listed there are skipped.
    """

    kind = "oracle"
    address_options = ("tokens",)

    def __init__(self, name: str, tokens: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.tokens = {address.lower(): token for address, token in (tokens or {}).items()}
        self.handler_map = {
            "LogValue": self._handle_log_value,
            "Value": self._handle_value,
        }

    def _token_for(self, event: DecodedEvent) -> Optional[str]:
        token = self.tokens.get(event.address.lower())
        if token is None:
            self.log_debug("Price update from unmapped oracle",
                           transformer_name=self.name,
                           block_number=event.block_number,
                           oracle=event.address)
        return token

    def _handle_log_value(self, event: DecodedEvent, inputs: TransformInput) -> Optional[PriceUpdate]:
        token = self._token_for(event)
        if token is None:
            return None
        # val is a bytes32 holding the wad price
        return PriceUpdate(
            token=token,
            oracle=event.address,
            price=from_fixed(hex_to_int(event.fields["val"]), WAD),
        )

    def _handle_value(self, event: DecodedEvent, inputs: TransformInput) -> Optional[PriceUpdate]:
        token = self._token_for(event)
        if token is None:
            return None
        return PriceUpdate(
            token=token,
            oracle=event.address,
            price=from_fixed(event.fields["curVal"], WAD),
        )
