# borrow_indexer/transform/transformers/auctions.py

from typing import List, Optional, Sequence

from .base import BaseTransformer
from ..context import TransformInput
from ...types import (
    AuctionCancelled,
    AuctionKick,
    AuctionReset,
    AuctionTake,
    DecodedEvent,
    DerivedEvent,
    FlipBid,
    FlipKick,
    ParameterChanged,
)
from ...utils.amounts import amount_to_str, bytes32_to_str


def parameter_changed(event: DecodedEvent) -> ParameterChanged:
    return ParameterChanged(
        contract=event.address,
        what=bytes32_to_str(event.fields["what"]),
        data=str(event.fields["data"]),
    )


class ClipperTransformer(BaseTransformer):
    """
    Clipper auctions, matched by topic across every clipper deployment.

    Only the auction events are handled. The generic File/Rely/Deny shapes
    are emitted by many unrelated contracts, so a topic match says nothing
    about the emitter being a clipper. Logs emitted by an address in
    ``owner_addresses`` belong to the owning source and are refused here
    even if extraction let them through.
    """

    kind = "clipper"
    address_options = ("owner_addresses",)

    def __init__(self, name: str, owner_addresses: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.owner_addresses = frozenset(a.lower() for a in (owner_addresses or ()))
        self.handler_map = {
            "Kick": self._handle_kick,
            "Take": self._handle_take,
            "Redo": self._handle_redo,
            "Yank": self._handle_yank,
        }

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        derived = []
        for event in inputs.events(self.sources, self.input_event_names):
            if event.address.lower() in self.owner_addresses:
                self.log_debug("Refusing event emitted by owner contract",
                               transformer_name=self.name,
                               block_number=event.block_number,
                               log_index=event.log_index,
                               address=event.address)
                continue
            payload = self.handler_map[event.event_name](event, inputs)
            derived.append(self.emit(event.block_number, event.log_index, payload, event.tx_hash))
        return derived

    def _handle_kick(self, event: DecodedEvent, inputs: TransformInput) -> AuctionKick:
        fields = event.fields
        return AuctionKick(
            auction_id=int(fields["id"]),
            clipper=event.address,
            top=amount_to_str(fields["top"]),
            tab=amount_to_str(fields["tab"]),
            lot=amount_to_str(fields["lot"]),
            usr=fields["usr"],
            keeper=fields["kpr"],
            coin=amount_to_str(fields["coin"]),
        )

    def _handle_take(self, event: DecodedEvent, inputs: TransformInput) -> AuctionTake:
        fields = event.fields
        return AuctionTake(
            auction_id=int(fields["id"]),
            clipper=event.address,
            max_price=amount_to_str(fields["max"]),
            price=amount_to_str(fields["price"]),
            owe=amount_to_str(fields["owe"]),
            tab=amount_to_str(fields["tab"]),
            lot=amount_to_str(fields["lot"]),
            usr=fields["usr"],
        )

    def _handle_redo(self, event: DecodedEvent, inputs: TransformInput) -> AuctionReset:
        fields = event.fields
        return AuctionReset(
            auction_id=int(fields["id"]),
            clipper=event.address,
            top=amount_to_str(fields["top"]),
            tab=amount_to_str(fields["tab"]),
            lot=amount_to_str(fields["lot"]),
            usr=fields["usr"],
            keeper=fields["kpr"],
            coin=amount_to_str(fields["coin"]),
        )

    def _handle_yank(self, event: DecodedEvent, inputs: TransformInput) -> AuctionCancelled:
        return AuctionCancelled(auction_id=int(event.fields["id"]), clipper=event.address)


class FlipperTransformer(BaseTransformer):
    kind = "flipper"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"Kick": self._handle_kick}

    def _handle_kick(self, event: DecodedEvent, inputs: TransformInput) -> FlipKick:
        fields = event.fields
        return FlipKick(
            auction_id=int(fields["id"]),
            flipper=event.address,
            lot=amount_to_str(fields["lot"]),
            bid=amount_to_str(fields["bid"]),
            tab=amount_to_str(fields["tab"]),
            usr=fields["usr"],
            gal=fields["gal"],
        )


class FlipperNoteTransformer(BaseTransformer):
    """Bids on flip auctions, recorded only as ds-notes."""

    kind = "flipper_note"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {
            "tend": self._handle_bid,
            "dent": self._handle_bid,
            "deal": self._handle_deal,
        }

    def _handle_bid(self, event: DecodedEvent, inputs: TransformInput) -> FlipBid:
        return FlipBid(
            auction_id=int(event.fields["id"]),
            flipper=event.address,
            action=event.event_name,
            lot=amount_to_str(event.fields["lot"]),
            bid=amount_to_str(event.fields["bid"]),
        )

    def _handle_deal(self, event: DecodedEvent, inputs: TransformInput) -> FlipBid:
        return FlipBid(auction_id=int(event.fields["id"]), flipper=event.address, action="deal")
