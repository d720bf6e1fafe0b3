# tests/test_transformers.py
"""
Individual transformers over hand-built decoded and upstream events
"""
from typing import Dict, List, Mapping, Sequence

import msgspec
import pytest

from borrow_indexer.core.exceptions import ConfigurationError, DependencyLookupError
from borrow_indexer.transform.context import TransformInput
from borrow_indexer.transform.dependencies import (
    COLLATERAL_PRICE,
    GAS_PRICE,
    MULTIPLY_CDP_FOR_URN,
    IlkKey,
    PriceLookup,
    StoredLookup,
)
from borrow_indexer.transform.transformers import (
    CatAuctionTransformer,
    CdpManagerGiveTransformer,
    CdpManagerOpenTransformer,
    ClipperTransformer,
    CollateralPriceEnhancer,
    DogAuctionTransformer,
    DogTransformer,
    CatTransformer,
    EthPriceEnhancer,
    ExchangeTransformer,
    FlipperNoteTransformer,
    GasPriceEnhancer,
    MultiplyHistoryTransformer,
    MultiplyTransformer,
    OracleTransformer,
    VatCombineTransformer,
    VatMoveEventsTransformer,
    VatRawMoveTransformer,
    VatTransformer,
    token_for_ilk,
)
from borrow_indexer.types import (
    AuctionCancelled,
    AuctionKick,
    AuctionStarted,
    BatchResult,
    BlockRange,
    Checkpoint,
    DecodedEvent,
    DerivedEvent,
    Enrichment,
    FlipBid,
    Liquidation,
    MultiplyHistory,
    ParameterChanged,
    PriceUpdate,
    UrnMove,
    VaultBalanceChange,
    VaultNetChange,
    VaultOpened,
    VaultTransferred,
    to_hex,
)

from conftest import (
    CAT,
    CDP_MANAGER,
    CLIPPER_ETH,
    DOG,
    EXCHANGE,
    FLIPPER,
    MULTIPLY,
    OWNER_A,
    PIP_ETH,
    RAD,
    URN,
    USER,
    VOW,
    WAD,
    WETH,
    decoded,
    ilk_hex,
    tx_hash_for,
)

BLOCKS = BlockRange(100, 110)


def transform(transformer, events: Sequence[DecodedEvent] = (),
              upstream: Mapping[str, Sequence[DerivedEvent]] = None) -> List[DerivedEvent]:
    by_source: Dict[str, List[DecodedEvent]] = {}
    for event in events:
        by_source.setdefault(event.source_id, []).append(event)
    return transformer.transform(TransformInput(BLOCKS, by_source, upstream or {}))


def derived(name, payload, block_number=100, log_index=0, tx_hash=None) -> DerivedEvent:
    return DerivedEvent(transformer_name=name, block_number=block_number, log_index=log_index,
                        payload=payload, tx_hash=tx_hash or tx_hash_for(block_number))


def frob(urn=URN, dink=10 * WAD, dart=500 * WAD, log_index=1, tx_hash=None):
    return decoded("vat", "frob",
                   {"i": ilk_hex("ETH-A"), "u": urn, "v": urn, "w": urn, "dink": dink, "dart": dart},
                   log_index=log_index, tx_hash=tx_hash)


def move(src=URN, dst=USER, rad=500 * RAD, log_index=2, tx_hash=None):
    return decoded("vat", "move", {"src": src, "dst": dst, "rad": rad}, log_index=log_index, tx_hash=tx_hash)


def combine(events: Sequence[DecodedEvent]) -> List[DerivedEvent]:
    vat = VatTransformer("vat", sources=["vat"])
    moves = VatRawMoveTransformer("vat_raw_move", sources=["vat"])
    upstream = {"vat": transform(vat, events), "vat_raw_move": transform(moves, events)}
    return transform(VatCombineTransformer("vat_combine", depends_on=["vat", "vat_raw_move"]),
                     upstream=upstream)


# === Vaults ===

def test_new_cdp_resolves_ilk_and_urn(stub_chain):
    transformer = CdpManagerOpenTransformer("cdp_manager_open", sources=["cdp_manager"],
                                            dependencies=stub_chain.as_dependencies())
    event = decoded("cdp_manager", "NewCdp", {"usr": USER, "own": OWNER_A, "cdp": 7},
                    log_index=3, address=CDP_MANAGER)

    [result] = transform(transformer, [event])

    assert result.payload == VaultOpened(cdp_id=7, owner=OWNER_A, creator=USER,
                                         collateral_type="ETH-A", urn=URN)
    assert (result.transformer_name, result.ordering_key) == ("cdp_manager_open", (100, 3))
    assert result.tx_hash == event.tx_hash


def test_unresolvable_lookup_fails_the_transform(stub_chain):
    transformer = CdpManagerOpenTransformer("cdp_manager_open", sources=["cdp_manager"],
                                            dependencies=stub_chain.as_dependencies())
    event = decoded("cdp_manager", "NewCdp", {"usr": USER, "own": OWNER_A, "cdp": 8}, address=CDP_MANAGER)

    with pytest.raises(DependencyLookupError) as exc_info:
        transform(transformer, [event])

    assert exc_info.value.transformer_name == "cdp_manager_open"
    assert exc_info.value.key == 8
    assert exc_info.value.block_number == 100


def test_missing_required_dependency_rejected_at_construction():
    with pytest.raises(ConfigurationError, match="cdp_manager_open"):
        CdpManagerOpenTransformer("cdp_manager_open", sources=["cdp_manager"], dependencies={})


def test_give_transfers_vault():
    transformer = CdpManagerGiveTransformer("cdp_manager_give", sources=["cdp_manager"])
    event = decoded("cdp_manager", "give", {"cdp": 7, "dst": OWNER_A}, address=CDP_MANAGER)

    [result] = transform(transformer, [event])

    assert result.payload == VaultTransferred(cdp_id=7, new_owner=OWNER_A, manager=CDP_MANAGER)


def test_transformer_ignores_sources_it_does_not_read():
    transformer = CdpManagerGiveTransformer("cdp_manager_give", sources=["cdp_manager"])
    event = decoded("other", "give", {"cdp": 7, "dst": OWNER_A}, address=CDP_MANAGER)
    assert transform(transformer, [event]) == []


def test_vat_balance_changes():
    transformer = VatTransformer("vat", sources=["vat"])
    events = [
        frob(log_index=1),
        decoded("vat", "grab", {"i": ilk_hex("ETH-A"), "u": URN, "v": DOG, "w": VOW,
                                "dink": -3 * WAD, "dart": -100 * WAD}, log_index=2),
        decoded("vat", "fork", {"ilk": ilk_hex("ETH-A"), "src": URN, "dst": USER,
                                "dink": 2 * WAD, "dart": 50 * WAD}, log_index=3),
    ]

    results = transform(transformer, events)

    assert [r.payload for r in results] == [
        VaultBalanceChange(kind="frob", ilk="ETH-A", urn=URN,
                           collateral_delta=str(10 * WAD), debt_delta=str(500 * WAD)),
        VaultBalanceChange(kind="grab", ilk="ETH-A", urn=URN,
                           collateral_delta=str(-3 * WAD), debt_delta=str(-100 * WAD), counterparty=VOW),
        VaultBalanceChange(kind="fork", ilk="ETH-A", urn=URN,
                           collateral_delta=str(-2 * WAD), debt_delta=str(-50 * WAD), counterparty=USER),
        VaultBalanceChange(kind="fork", ilk="ETH-A", urn=USER,
                           collateral_delta=str(2 * WAD), debt_delta=str(50 * WAD), counterparty=URN),
    ]
    assert [r.log_index for r in results] == [1, 2, 3, 3]


def test_vat_combine_joins_frob_and_move():
    tx = tx_hash_for(1)
    [result] = combine([frob(log_index=1, tx_hash=tx), move(log_index=2, tx_hash=tx)])

    assert result.payload == VaultNetChange(
        urn=URN, ilk="ETH-A",
        collateral_delta=str(10 * WAD), debt_delta=str(500 * WAD),
        dai_delta=str(-500 * RAD), combined_logs=2,
    )
    assert result.ordering_key == (100, 1)
    assert result.tx_hash == tx


def test_vat_combine_is_independent_of_log_order():
    tx = tx_hash_for(1)
    forward = combine([frob(log_index=1, tx_hash=tx), move(log_index=2, tx_hash=tx)])
    backward = combine([move(log_index=1, tx_hash=tx), frob(log_index=2, tx_hash=tx)])

    assert [r.payload for r in forward] == [r.payload for r in backward]
    assert [r.ordering_key for r in backward] == [(100, 1)]


def test_vat_combine_keeps_transactions_apart():
    first, second = tx_hash_for(1), tx_hash_for(2)
    results = combine([
        frob(log_index=1, tx_hash=first),
        move(log_index=2, tx_hash=second),
        move(src=USER, dst=URN, rad=RAD, log_index=3, tx_hash=first),
    ])

    [result] = results
    assert result.payload.dai_delta == str(RAD)
    assert result.payload.combined_logs == 2


def test_vat_combine_ignores_moves_without_frob():
    assert combine([move(log_index=1)]) == []


def test_vat_combine_counts_a_self_move_once():
    tx = tx_hash_for(1)
    [result] = combine([frob(log_index=1, tx_hash=tx), move(src=URN, dst=URN, log_index=2, tx_hash=tx)])

    assert result.payload.combined_logs == 2
    assert result.payload.dai_delta == "0"


def test_vat_move_events_per_urn():
    transformer = VatMoveEventsTransformer("vat_move_events", sources=["vat"])
    events = [
        move(log_index=1),
        decoded("vat", "flux", {"ilk": ilk_hex("ETH-A"), "src": URN, "dst": USER, "wad": 3 * WAD}, log_index=2),
        move(src=URN, dst=URN, log_index=3),
    ]

    results = transform(transformer, events)

    assert [r.payload for r in results] == [
        UrnMove(urn=URN, counterparty=USER, asset="dai", amount=str(-500 * RAD)),
        UrnMove(urn=USER, counterparty=URN, asset="dai", amount=str(500 * RAD)),
        UrnMove(urn=URN, counterparty=USER, asset="collateral", amount=str(-3 * WAD), ilk="ETH-A"),
        UrnMove(urn=USER, counterparty=URN, asset="collateral", amount=str(3 * WAD), ilk="ETH-A"),
    ]
    assert [r.log_index for r in results] == [1, 1, 2, 2]


# === Liquidations and auctions ===

def bark(log_index=4):
    return decoded("dog", "Bark", {"ilk": ilk_hex("ETH-A"), "urn": URN, "ink": 10 * WAD, "art": 400 * WAD,
                                   "due": 450 * RAD, "clip": CLIPPER_ETH, "id": 12},
                   log_index=log_index, address=DOG)


def test_dog_bark_and_file():
    transformer = DogTransformer("dog", sources=["dog"])
    file_event = decoded("dog", "File", {"what": to_hex(b"vow".ljust(32, b"\x00")), "data": VOW},
                         log_index=1, address=DOG)

    results = transform(transformer, [bark(), file_event])

    assert [r.payload for r in results] == [
        ParameterChanged(contract=DOG, what="vow", data=VOW),
        Liquidation(mechanism="dog", ilk="ETH-A", urn=URN, collateral=str(10 * WAD), debt=str(400 * WAD),
                    due=str(450 * RAD), auction_address=CLIPPER_ETH, auction_id=12),
    ]


def test_cat_bite():
    transformer = CatTransformer("cat", sources=["cat"])
    event = decoded("cat", "Bite", {"ilk": ilk_hex("ETH-A"), "urn": URN, "ink": 5, "art": 6, "tab": 7,
                                    "flip": FLIPPER, "id": 3}, address=CAT)

    [result] = transform(transformer, [event])

    assert result.payload.mechanism == "cat"
    assert (result.payload.due, result.payload.auction_address) == ("7", FLIPPER)


def test_dog_auction_adds_ilk_info(stub_chain):
    liquidations = transform(DogTransformer("dog", sources=["dog"]), [bark()])
    transformer = DogAuctionTransformer("dog_auction", depends_on=["dog"],
                                        dependencies=stub_chain.as_dependencies())

    [result] = transform(transformer, upstream={"dog": liquidations})

    assert result.payload == AuctionStarted(
        mechanism="dog", auction_id=12, auction_address=CLIPPER_ETH, ilk="ETH-A", urn=URN,
        collateral=str(10 * WAD), debt=str(450 * RAD),
        collateral_token=WETH, collateral_decimals=18, liquidation_penalty="1.13",
    )
    assert result.ordering_key == (100, 4)
    assert stub_chain.ilk_info_keys == [IlkKey("ETH-A", "dog")]


def test_cat_auction_reads_cat_penalty(stub_chain):
    bite = decoded("cat", "Bite", {"ilk": ilk_hex("ETH-A"), "urn": URN, "ink": 5, "art": 6, "tab": 7,
                                   "flip": FLIPPER, "id": 3}, address=CAT)
    liquidations = transform(CatTransformer("cat", sources=["cat"]), [bite])
    transformer = CatAuctionTransformer("cat_auction", depends_on=["cat"],
                                        dependencies=stub_chain.as_dependencies())

    [result] = transform(transformer, upstream={"cat": liquidations})

    assert (result.payload.mechanism, result.payload.auction_address) == ("cat", FLIPPER)
    assert stub_chain.ilk_info_keys == [IlkKey("ETH-A", "cat")]


def test_dog_auction_fails_on_unknown_ilk(stub_chain):
    stub_chain.ilk_info.clear()
    liquidations = transform(DogTransformer("dog", sources=["dog"]), [bark()])
    transformer = DogAuctionTransformer("dog_auction", depends_on=["dog"],
                                        dependencies=stub_chain.as_dependencies())

    with pytest.raises(DependencyLookupError):
        transform(transformer, upstream={"dog": liquidations})


def test_clipper_refuses_owner_events():
    transformer = ClipperTransformer("clipper", sources=["clipper"], owner_addresses=[DOG])
    kick = {"id": 12, "top": 3, "tab": 4, "lot": 5, "usr": URN, "kpr": USER, "coin": 1}
    events = [
        decoded("clipper", "Kick", dict(kick, id=11), log_index=1, address=DOG),
        decoded("clipper", "Kick", kick, log_index=3, address=CLIPPER_ETH),
        decoded("clipper", "Yank", {"id": 12}, log_index=4, address=CLIPPER_ETH),
    ]

    results = transform(transformer, events)

    assert [r.payload for r in results] == [
        AuctionKick(auction_id=12, clipper=CLIPPER_ETH, top="3", tab="4", lot="5",
                    usr=URN, keeper=USER, coin="1"),
        AuctionCancelled(auction_id=12, clipper=CLIPPER_ETH),
    ]


def test_clipper_ignores_file_from_any_emitter():
    transformer = ClipperTransformer("clipper", sources=["clipper"], owner_addresses=[DOG])
    what = to_hex(b"hole".ljust(32, b"\x00"))
    events = [
        decoded("clipper", "File", {"what": what, "data": 6}, log_index=1, address=CLIPPER_ETH),
        decoded("clipper", "File", {"what": what, "data": 7}, log_index=2, address="0x" + "65" * 20),
    ]

    assert transform(transformer, events) == []


def test_flipper_notes():
    transformer = FlipperNoteTransformer("flipper_note", sources=["flipper_notes"])
    events = [
        decoded("flipper_notes", "tend", {"id": 3, "lot": 10, "bid": 20}, log_index=1, address=FLIPPER),
        decoded("flipper_notes", "deal", {"id": 3}, log_index=2, address=FLIPPER),
    ]

    results = transform(transformer, events)

    assert [r.payload for r in results] == [
        FlipBid(auction_id=3, flipper=FLIPPER, action="tend", lot="10", bid="20"),
        FlipBid(auction_id=3, flipper=FLIPPER, action="deal"),
    ]


# === Prices ===

def test_oracle_price_updates():
    transformer = OracleTransformer("oracle", sources=["oracle", "lp_oracle"],
                                    tokens={PIP_ETH: "ETH", CLIPPER_ETH: "UNIV2"})
    events = [
        decoded("oracle", "LogValue", {"val": to_hex((2000 * WAD).to_bytes(32, "big"))},
                log_index=1, address=PIP_ETH),
        decoded("lp_oracle", "Value", {"curVal": 1500 * WAD + WAD // 2, "nxtVal": 0},
                log_index=2, address=CLIPPER_ETH),
        decoded("oracle", "LogValue", {"val": to_hex(WAD.to_bytes(32, "big"))},
                log_index=3, address=USER),
    ]

    results = transform(transformer, events)

    assert [r.payload for r in results] == [
        PriceUpdate(token="ETH", oracle=PIP_ETH, price="2000"),
        PriceUpdate(token="UNIV2", oracle=CLIPPER_ETH, price="1500.5"),
    ]


# === Multiply ===

def multiply_action(cdp_id=7, tx_hash=None, log_index=9):
    return decoded("multiply", "MultipleActionCalled",
                   {"methodName": "openMultiplyVault", "cdpId": cdp_id, "swapMinAmount": 1,
                    "swapOptimistAmount": 2, "collateralLeft": 0, "daiLeft": 0},
                   log_index=log_index, address=MULTIPLY, tx_hash=tx_hash)


def test_multiply_action_resolves_ilk_and_ratio(stub_chain):
    transformer = MultiplyTransformer("multiply", sources=["multiply"],
                                      dependencies=stub_chain.as_dependencies())

    [result] = transform(transformer, [multiply_action()])

    assert result.payload.collateral_type == "ETH-A"
    assert result.payload.liquidation_ratio == "1.45"
    assert result.payload.method_name == "openMultiplyVault"


def test_multiply_history_joins_transaction_and_liquidation(stub_chain):
    tx = tx_hash_for(1)
    actions = transform(MultiplyTransformer("multiply", sources=["multiply"],
                                            dependencies=stub_chain.as_dependencies()),
                        [multiply_action(tx_hash=tx)])
    exchange = transform(ExchangeTransformer("exchange", sources=["exchange"]), [
        decoded("exchange", "AssetSwap", {"assetIn": USER, "assetOut": WETH, "amountIn": 100, "amountOut": 3},
                log_index=5, address=EXCHANGE, tx_hash=tx),
        decoded("exchange", "FeePaid", {"beneficiary": VOW, "amount": 1}, log_index=6,
                address=EXCHANGE, tx_hash=tx),
    ])
    change = derived("vat_combine", VaultNetChange(urn=URN, ilk="ETH-A", collateral_delta="30",
                                                   debt_delta="100", dai_delta="0", combined_logs=1),
                     log_index=7, tx_hash=tx)
    liquidation = derived("dog", Liquidation(mechanism="dog", ilk="ETH-A", urn=URN, collateral="30",
                                             debt="100", due="110", auction_address=CLIPPER_ETH,
                                             auction_id=1),
                          block_number=105, log_index=0)
    transformer = MultiplyHistoryTransformer("multiply_history",
                                             depends_on=["multiply", "vat_combine", "exchange", "dog"])

    results = transform(transformer, upstream={
        "multiply": actions, "vat_combine": [change], "exchange": exchange, "dog": [liquidation],
    })

    assert [r.payload for r in results] == [
        MultiplyHistory(cdp_id=7, kind="openMultiplyVault", collateral_type="ETH-A",
                        collateral_delta="30", debt_delta="100",
                        swap_amount_in="100", swap_amount_out="3", fee="1", urn=URN),
        MultiplyHistory(cdp_id=7, kind="liquidation", collateral_type="ETH-A",
                        collateral_delta="-30", debt_delta="-100", liquidated=True, urn=URN),
    ]
    assert [r.ordering_key for r in results] == [(100, 9), (105, 0)]


def test_multiply_history_joins_liquidation_from_a_later_batch(store):
    tx = tx_hash_for(1)
    opened = derived("multiply_history", MultiplyHistory(cdp_id=7, kind="openMultiplyVault", collateral_type="ETH-A",
                                                         collateral_delta="30", debt_delta="100", urn=URN),
                     block_number=90, log_index=9, tx_hash=tx)
    store.commit_batch(BatchResult(
        block_range=BlockRange(90, 90),
        source_ids=("multiply",),
        transformer_names=("multiply_history",),
        decoded={},
        derived={"multiply_history": [opened]},
        checkpoints=[Checkpoint("multiply", 90)],
    ))
    liquidation = derived("dog", Liquidation(mechanism="dog", ilk="ETH-A", urn=URN, collateral="30",
                                             debt="100", due="110", auction_address=CLIPPER_ETH,
                                             auction_id=1),
                          block_number=105, log_index=0)
    stranger = derived("dog", Liquidation(mechanism="dog", ilk="ETH-A", urn=USER, collateral="1",
                                          debt="1", due="1", auction_address=CLIPPER_ETH, auction_id=2),
                       block_number=105, log_index=1)
    transformer = MultiplyHistoryTransformer(
        "multiply_history", depends_on=["dog"],
        dependencies={MULTIPLY_CDP_FOR_URN: StoredLookup(store.multiply_cdp_for_urn)},
    )

    results = transform(transformer, upstream={"dog": [liquidation, stranger]})

    assert [r.payload for r in results] == [
        MultiplyHistory(cdp_id=7, kind="liquidation", collateral_type="ETH-A",
                        collateral_delta="-30", debt_delta="-100", liquidated=True, urn=URN),
    ]


# === Enhancers ===

def net_change(log_index=5, ilk="ETH-A"):
    return derived("vat_combine", VaultNetChange(urn=URN, ilk=ilk, collateral_delta="1", debt_delta="2",
                                                 dai_delta="0", combined_logs=1), log_index=log_index)


def test_gas_price_enhancer():
    transformer = GasPriceEnhancer("gas", depends_on=["vat_combine"],
                                   dependencies={GAS_PRICE: lambda tx_hash, context: "12345"})

    [result] = transform(transformer, upstream={"vat_combine": [net_change()]})

    assert result.payload == Enrichment(target_transformer="vat_combine", target_log_index=5, urn=URN,
                                        ilk="ETH-A", field="gas_price", value="12345")


def test_gas_price_enhancer_without_tx_hash_fails():
    looked_up = []
    transformer = GasPriceEnhancer("gas", depends_on=["vat_combine"],
                                   dependencies={GAS_PRICE: lambda tx_hash, context: looked_up.append(tx_hash)})
    change = msgspec.structs.replace(net_change(), tx_hash=None)

    with pytest.raises(DependencyLookupError) as exc_info:
        transform(transformer, upstream={"vat_combine": [change]})
    assert exc_info.value.dependency == GAS_PRICE
    assert looked_up == []


def test_price_enhancer_uses_latest_price_before_the_change():
    prices = PriceLookup(lambda token, block_number: "1800", ["oracle"])
    transformer = CollateralPriceEnhancer("price", depends_on=["vat_combine", "oracle"],
                                          dependencies={COLLATERAL_PRICE: prices})
    oracle = [
        derived("oracle", PriceUpdate(token="ETH", oracle=PIP_ETH, price="1900"), log_index=2),
        derived("oracle", PriceUpdate(token="ETH", oracle=PIP_ETH, price="2100"), log_index=8),
    ]

    results = transform(transformer, upstream={
        "vat_combine": [net_change(log_index=1), net_change(log_index=5)],
        "oracle": oracle,
    })

    assert [r.payload.value for r in results] == ["1800", "1900"]
    assert all(r.payload.field == "collateral_price" for r in results)


def test_eth_price_enhancer_always_prices_eth():
    seen = []

    def price(token, context):
        seen.append(token)
        return "2000"

    transformer = EthPriceEnhancer("eth_price", depends_on=["vat_combine"],
                                   dependencies={COLLATERAL_PRICE: price})
    transform(transformer, upstream={"vat_combine": [net_change(ilk="WBTC-A")]})

    assert seen == ["ETH"]


def test_token_for_ilk():
    assert token_for_ilk("ETH-A") == "ETH"
    assert token_for_ilk("GUNIV3DAIUSDC1-A") == "GUNIV3DAIUSDC1"
    assert token_for_ilk("ETH-A", {"ETH-A": "WETH"}) == "WETH"
