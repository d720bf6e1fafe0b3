# borrow_indexer/transform/transformers/multiply.py

from typing import Dict, List, Optional

from .base import BaseTransformer
from ..context import TransformInput
from ..dependencies import ILK_FOR_CDP, LIQUIDATION_RATIO, MULTIPLY_CDP_FOR_URN
from ...types import (
    AssetSwap,
    DecodedEvent,
    DerivedEvent,
    EvmAddress,
    EvmHash,
    FeePaid,
    Liquidation,
    MultiplyAction,
    MultiplyHistory,
    VaultNetChange,
)
from ...utils.amounts import amount_to_str


class ExchangeTransformer(BaseTransformer):
    kind = "exchange"

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {
            "AssetSwap": self._handle_swap,
            "FeePaid": self._handle_fee,
        }

    def _handle_swap(self, event: DecodedEvent, inputs: TransformInput) -> AssetSwap:
        return AssetSwap(
            exchange=event.address,
            asset_in=event.fields["assetIn"],
            asset_out=event.fields["assetOut"],
            amount_in=amount_to_str(event.fields["amountIn"]),
            amount_out=amount_to_str(event.fields["amountOut"]),
        )

    def _handle_fee(self, event: DecodedEvent, inputs: TransformInput) -> FeePaid:
        return FeePaid(
            exchange=event.address,
            beneficiary=event.fields["beneficiary"],
            amount=amount_to_str(event.fields["amount"]),
        )


class MultiplyTransformer(BaseTransformer):
    """Multiply proxy actions, with the vault's ilk and liquidation ratio at the event block."""

    kind = "multiply"
    required_dependencies = (ILK_FOR_CDP, LIQUIDATION_RATIO)

    def __init__(self, name: str, **kwargs):
        super().__init__(name, **kwargs)
        self.handler_map = {"MultipleActionCalled": self._handle_action}

    def _handle_action(self, event: DecodedEvent, inputs: TransformInput) -> MultiplyAction:
        fields = event.fields
        cdp_id = int(fields["cdpId"])
        ilk = self.lookup_for(ILK_FOR_CDP, cdp_id, event, inputs)
        ratio = self.lookup_for(LIQUIDATION_RATIO, ilk, event, inputs)
        return MultiplyAction(
            method_name=fields["methodName"],
            cdp_id=cdp_id,
            collateral_type=ilk,
            liquidation_ratio=ratio,
            swap_min_amount=amount_to_str(fields["swapMinAmount"]),
            swap_optimist_amount=amount_to_str(fields["swapOptimistAmount"]),
            collateral_left=amount_to_str(fields["collateralLeft"]),
            dai_left=amount_to_str(fields["daiLeft"]),
        )


class _TxParts:
    def __init__(self):
        self.action: Optional[DerivedEvent] = None
        self.changes: List[VaultNetChange] = []
        self.swap: Optional[AssetSwap] = None
        self.fee: Optional[FeePaid] = None


class MultiplyHistoryTransformer(BaseTransformer):
    """
    Per-vault history of multiply positions.

    A multiply action, the vault's net change, the swap and the fee are
    joined on the transaction hash. Liquidations are joined on the urn of a
    multiply vault: first one touched earlier in the same batch, then the
    stored history when a ``get_multiply_cdp_for_urn`` lookup is injected.
    """

    kind = "multiply_history"

    def _stored_cdp(self, urn: EvmAddress, event: DerivedEvent, inputs: TransformInput) -> Optional[int]:
        if MULTIPLY_CDP_FOR_URN not in self.dependencies:
            return None
        # most liquidated vaults were never multiplied, so a miss is not an error
        return self.dependencies[MULTIPLY_CDP_FOR_URN](
            urn, inputs.context_for(event.block_number, event.log_index, event.tx_hash)
        )

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        by_tx: Dict[Optional[EvmHash], _TxParts] = {}
        liquidations: List[DerivedEvent] = []

        for event in inputs.derived():
            payload = event.payload
            if isinstance(payload, Liquidation):
                liquidations.append(event)
                continue
            parts = by_tx.setdefault(event.tx_hash, _TxParts())
            if isinstance(payload, MultiplyAction):
                parts.action = event
            elif isinstance(payload, VaultNetChange):
                parts.changes.append(payload)
            elif isinstance(payload, AssetSwap):
                parts.swap = payload
            elif isinstance(payload, FeePaid):
                parts.fee = payload

        derived = []
        urn_to_cdp: Dict[EvmAddress, int] = {}
        for tx_hash, parts in by_tx.items():
            if parts.action is None:
                continue
            action: MultiplyAction = parts.action.payload
            change = next((c for c in parts.changes if c.ilk == action.collateral_type), None)
            if change is not None:
                urn_to_cdp[change.urn] = action.cdp_id

            derived.append(self.emit(
                parts.action.block_number,
                parts.action.log_index,
                MultiplyHistory(
                    cdp_id=action.cdp_id,
                    kind=action.method_name,
                    collateral_type=action.collateral_type,
                    collateral_delta=change.collateral_delta if change else "0",
                    debt_delta=change.debt_delta if change else "0",
                    swap_amount_in=parts.swap.amount_in if parts.swap else None,
                    swap_amount_out=parts.swap.amount_out if parts.swap else None,
                    fee=parts.fee.amount if parts.fee else None,
                    urn=change.urn if change else None,
                ),
                tx_hash,
            ))

        for event in liquidations:
            liquidation: Liquidation = event.payload
            cdp_id = urn_to_cdp.get(liquidation.urn)
            if cdp_id is None:
                cdp_id = self._stored_cdp(liquidation.urn, event, inputs)
            if cdp_id is None:
                continue
            derived.append(self.emit(
                event.block_number,
                event.log_index,
                MultiplyHistory(
                    cdp_id=cdp_id,
                    kind="liquidation",
                    collateral_type=liquidation.ilk,
                    collateral_delta=amount_to_str(-int(liquidation.collateral)),
                    debt_delta=amount_to_str(-int(liquidation.debt)),
                    liquidated=True,
                    urn=liquidation.urn,
                ),
                event.tx_hash,
            ))

        return sorted(derived, key=lambda d: d.ordering_key)
