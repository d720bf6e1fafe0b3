# borrow_indexer/transform/transformers/vaults.py

from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .base import BaseTransformer
from ..context import TransformInput
from ..dependencies import ILK_FOR_CDP, URN_FOR_CDP
from ...types import (
    DecodedEvent,
    DerivedEvent,
    EvmAddress,
    EvmHash,
    UrnMove,
    VatMove,
    VaultBalanceChange,
    VaultNetChange,
    VaultOpened,
    VaultTransferred,
)
from ...utils.amounts import amount_to_int, amount_to_str, bytes32_to_str


class CdpManagerOpenTransformer(BaseTransformer):
    """NewCdp -> VaultOpened, with the collateral type resolved at the event block."""

    kind = "cdp_manager_open"
    required_dependencies = (ILK_FOR_CDP,)

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"NewCdp": self._handle_new_cdp}

    def _handle_new_cdp(self, event: DecodedEvent, inputs: TransformInput) -> VaultOpened:
        cdp_id = int(event.fields["cdp"])
        collateral_type = self.lookup_for(ILK_FOR_CDP, cdp_id, event, inputs)

        urn = None
        if URN_FOR_CDP in self.dependencies:
            urn = self.lookup_for(URN_FOR_CDP, cdp_id, event, inputs)

        self.log_debug("Vault opened",
                       transformer_name=self.name,
                       block_number=event.block_number,
                       cdp_id=cdp_id,
                       collateral_type=collateral_type)

        return VaultOpened(
            cdp_id=cdp_id,
            owner=event.fields["own"],
            creator=event.fields["usr"],
            collateral_type=collateral_type,
            urn=urn,
        )


class CdpManagerGiveTransformer(BaseTransformer):
    kind = "cdp_manager_give"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"give": self._handle_give}

    def _handle_give(self, event: DecodedEvent, inputs: TransformInput) -> VaultTransferred:
        return VaultTransferred(
            cdp_id=int(event.fields["cdp"]),
            new_owner=event.fields["dst"],
            manager=event.address,
        )


class VatTransformer(BaseTransformer):
    """
    Vault balance changes from the Vat notes. ``fork`` moves collateral and
    debt between two urns and yields one change for each side.
    """

    kind = "vat"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {
            "frob": self._handle_frob,
            "grab": self._handle_grab,
            "fork": self._handle_fork,
        }

    def _handle_frob(self, event: DecodedEvent, inputs: TransformInput) -> VaultBalanceChange:
        return VaultBalanceChange(
            kind="frob",
            ilk=bytes32_to_str(event.fields["i"]),
            urn=event.fields["u"],
            collateral_delta=amount_to_str(event.fields["dink"]),
            debt_delta=amount_to_str(event.fields["dart"]),
        )

    def _handle_grab(self, event: DecodedEvent, inputs: TransformInput) -> VaultBalanceChange:
        # grab is a confiscation; w is the vow receiving the debt
        return VaultBalanceChange(
            kind="grab",
            ilk=bytes32_to_str(event.fields["i"]),
            urn=event.fields["u"],
            collateral_delta=amount_to_str(event.fields["dink"]),
            debt_delta=amount_to_str(event.fields["dart"]),
            counterparty=event.fields["w"],
        )

    def _handle_fork(self, event: DecodedEvent, inputs: TransformInput) -> List[VaultBalanceChange]:
        ilk = bytes32_to_str(event.fields["ilk"])
        src, dst = event.fields["src"], event.fields["dst"]
        dink = amount_to_int(event.fields["dink"])
        dart = amount_to_int(event.fields["dart"])
        return [
            VaultBalanceChange(kind="fork", ilk=ilk, urn=src,
                               collateral_delta=amount_to_str(-dink),
                               debt_delta=amount_to_str(-dart),
                               counterparty=dst),
            VaultBalanceChange(kind="fork", ilk=ilk, urn=dst,
                               collateral_delta=amount_to_str(dink),
                               debt_delta=amount_to_str(dart),
                               counterparty=src),
        ]


class VatRawMoveTransformer(BaseTransformer):
    kind = "vat_raw_move"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"move": self._handle_move}

    def _handle_move(self, event: DecodedEvent, inputs: TransformInput) -> VatMove:
        return VatMove(
            src=event.fields["src"],
            dst=event.fields["dst"],
            rad=amount_to_str(event.fields["rad"]),
        )


class VatMoveEventsTransformer(BaseTransformer):
    """
    Per-urn view of Vat transfers. Each ``move`` (dai) and ``flux``
    (collateral) yields one UrnMove for the sending urn and one for the
    receiving urn. Transfers from an urn to itself change nothing and are
    skipped.
    """

    kind = "vat_move_events"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {
            "move": self._handle_move,
            "flux": self._handle_flux,
        }

    def _handle_move(self, event: DecodedEvent, inputs: TransformInput) -> List[UrnMove]:
        return self._both_sides(event.fields["src"], event.fields["dst"], "dai",
                                amount_to_int(event.fields["rad"]))

    def _handle_flux(self, event: DecodedEvent, inputs: TransformInput) -> List[UrnMove]:
        return self._both_sides(event.fields["src"], event.fields["dst"], "collateral",
                                amount_to_int(event.fields["wad"]), bytes32_to_str(event.fields["ilk"]))

    @staticmethod
    def _both_sides(src: EvmAddress, dst: EvmAddress, asset: str, amount: int,
                    ilk: Optional[str] = None) -> List[UrnMove]:
        if src == dst:
            return []
        return [
            UrnMove(urn=src, counterparty=dst, asset=asset, amount=amount_to_str(-amount), ilk=ilk),
            UrnMove(urn=dst, counterparty=src, asset=asset, amount=amount_to_str(amount), ilk=ilk),
        ]


class _NetChangeGroup:
    def __init__(self):
        self.ilk: Optional[str] = None
        self.block_number: Optional[int] = None
        self.log_index: Optional[int] = None
        self.collateral = 0
        self.debt = 0
        self.dai = 0
        self.frobs = 0
        self.logs = 0

    def touch(self, event: DerivedEvent) -> None:
        self.logs += 1
        if self.log_index is None or event.ordering_key < (self.block_number, self.log_index):
            self.block_number, self.log_index = event.ordering_key


class VatCombineTransformer(BaseTransformer):
    """
    Joins each frob with the Vat moves touching the same urn in the same
    transaction into one VaultNetChange.

    Correlation is on ``(tx_hash, urn)``, never on log adjacency, and the
    result does not depend on the order the logs arrived in. Moves with no
    frob in their transaction are left alone.
    """

    kind = "vat_combine"

    def __init__(self, name: str, balance_transformer: str = "vat",
                 move_transformer: str = "vat_raw_move", **kwargs):
        super().__init__(name, **kwargs)
        self.balance_transformer = balance_transformer
        self.move_transformer = move_transformer

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        groups: Dict[Tuple[Optional[EvmHash], EvmAddress], _NetChangeGroup] = {}

        for event in inputs.derived(self.balance_transformer):
            payload = event.payload
            if not isinstance(payload, VaultBalanceChange) or payload.kind != "frob":
                continue
            group = groups.setdefault((event.tx_hash, payload.urn), _NetChangeGroup())
            group.touch(event)
            group.ilk = payload.ilk
            group.frobs += 1
            group.collateral += amount_to_int(payload.collateral_delta)
            group.debt += amount_to_int(payload.debt_delta)

        for event in inputs.derived(self.move_transformer):
            payload = event.payload
            if not isinstance(payload, VatMove):
                continue
            rad = amount_to_int(payload.rad)
            # one entry per urn, so a move from an urn to itself counts once
            deltas: Dict[EvmAddress, int] = defaultdict(int)
            deltas[payload.dst] += rad
            deltas[payload.src] -= rad
            for urn, delta in deltas.items():
                group = groups.get((event.tx_hash, urn))
                if group is None:
                    continue
                group.touch(event)
                group.dai += delta

        derived = []
        for (tx_hash, urn), group in groups.items():
            if not group.frobs:
                continue
            derived.append(self.emit(
                group.block_number,
                group.log_index,
                VaultNetChange(
                    urn=urn,
                    ilk=group.ilk,
                    collateral_delta=amount_to_str(group.collateral),
                    debt_delta=amount_to_str(group.debt),
                    dai_delta=amount_to_str(group.dai),
                    combined_logs=group.logs,
                ),
                tx_hash,
            ))

        derived.sort(key=lambda d: (d.ordering_key, d.payload.urn))
        self.log_debug("Vault changes combined",
                       transformer_name=self.name,
                       from_block=inputs.block_range.start,
                       to_block=inputs.block_range.end,
                       group_count=len(derived))
        return derived
