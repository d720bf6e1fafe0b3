# borrow_indexer/transform/transformers/liquidations.py

from typing import List

from .auctions import parameter_changed
from .base import BaseTransformer
from ..context import TransformInput
from ..dependencies import ILK_INFO, IlkKey
from ...types import AuctionStarted, DecodedEvent, DerivedEvent, Liquidation, ParameterChanged
from ...utils.amounts import amount_to_str, bytes32_to_str


class CatTransformer(BaseTransformer):
    """Liquidations 1.2: Bite starts a flip auction."""

    kind = "cat"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"Bite": self._handle_bite}

    def _handle_bite(self, event: DecodedEvent, inputs: TransformInput) -> Liquidation:
        fields = event.fields
        return Liquidation(
            mechanism="cat",
            ilk=bytes32_to_str(fields["ilk"]),
            urn=fields["urn"],
            collateral=amount_to_str(fields["ink"]),
            debt=amount_to_str(fields["art"]),
            due=amount_to_str(fields["tab"]),
            auction_address=fields["flip"],
            auction_id=int(fields["id"]),
        )


class DogTransformer(BaseTransformer):
    """Liquidations 2.0: Bark starts a clipper auction. Also records its File parameter changes."""

    kind = "dog"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {
            "Bark": self._handle_bark,
            "File": self._handle_file,
        }

    def _handle_bark(self, event: DecodedEvent, inputs: TransformInput) -> Liquidation:
        fields = event.fields
        return Liquidation(
            mechanism="dog",
            ilk=bytes32_to_str(fields["ilk"]),
            urn=fields["urn"],
            collateral=amount_to_str(fields["ink"]),
            debt=amount_to_str(fields["art"]),
            due=amount_to_str(fields["due"]),
            auction_address=fields["clip"],
            auction_id=int(fields["id"]),
        )

    def _handle_file(self, event: DecodedEvent, inputs: TransformInput) -> ParameterChanged:
        return parameter_changed(event)


class LiquidationAuctionTransformer(BaseTransformer):
    """
    Turns upstream Liquidation events into AuctionStarted records carrying
    the collateral token, its decimals and the liquidation penalty of the
    ilk at the liquidation block.
    """

    kind = "liquidation_auction"
    mechanism = ""
    required_dependencies = (ILK_INFO,)

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        derived = []
        for event in inputs.derived():
            liquidation = event.payload
            if not isinstance(liquidation, Liquidation) or liquidation.mechanism != self.mechanism:
                continue

            info = self.lookup_for(ILK_INFO, IlkKey(liquidation.ilk, liquidation.mechanism), event, inputs)
            derived.append(self.emit(
                event.block_number,
                event.log_index,
                AuctionStarted(
                    mechanism=liquidation.mechanism,
                    auction_id=liquidation.auction_id,
                    auction_address=liquidation.auction_address,
                    ilk=liquidation.ilk,
                    urn=liquidation.urn,
                    collateral=liquidation.collateral,
                    debt=liquidation.due,
                    collateral_token=info.token,
                    collateral_decimals=info.decimals,
                    liquidation_penalty=info.liquidation_penalty,
                ),
                event.tx_hash,
            ))
        return derived


class CatAuctionTransformer(LiquidationAuctionTransformer):
    kind = "cat_auction"
    mechanism = "cat"


class DogAuctionTransformer(LiquidationAuctionTransformer):
    kind = "dog_auction"
    mechanism = "dog"
