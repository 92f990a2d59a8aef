import pytest

from engine.models import BETL, MEXICO, PASS, ActionType, Bid, BidKind, IllegalAction, MexicoPhase

from .helpers import create_mexico


def test_third_join_deals_first_round():
    game = create_mexico()
    assert game.phase is MexicoPhase.BIDDING
    assert [len(hand) for hand in game.hands] == [10, 10, 10]
    assert len(game.talon) == 2
    dealt = [card for hand in game.hands for card in hand] + game.talon
    assert len(set(dealt)) == 32
    assert game.current_player == 1


def test_fourth_player_cannot_join():
    game = create_mexico()
    with pytest.raises(IllegalAction, match="Game is full"):
        game.join("Late")


def test_five_six_pass_pass_gives_contract_to_second_bidder():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, 6)
    game.bid(0, "pass")
    events = game.bid(1, "pass")

    assert game.bid_winner == 2
    assert game.winning_bid == Bid(BidKind.NUMERIC, 6)
    assert not game.is_betl
    assert game.phase is MexicoPhase.TALON_REVEAL
    assert game.current_player == 2
    assert events[-1] == {"ev": "BIDDING_WON", "player": 2, "bid": 6}


def test_first_player_cannot_open_with_pass():
    game = create_mexico()
    result = game.apply_action(1, ActionType.BID, {"bid": "pass"})
    assert not result.success
    assert "First player cannot pass" in result.error
    assert game.bids == [None, None, None]
    assert game.current_player == 1


def test_five_only_allowed_as_opening_bid():
    game = create_mexico()
    game.bid(1, 5)
    with pytest.raises(IllegalAction, match="Cannot bid 5"):
        game.bid(2, 5)


def test_numeric_bid_must_beat_highest():
    game = create_mexico()
    game.bid(1, 6)
    with pytest.raises(IllegalAction, match="Bid must be higher"):
        game.bid(2, 6)
    game.bid(2, 7)
    assert game.highest_numeric_bid() == 7


def test_betl_forces_seven_or_more():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, "betl")
    with pytest.raises(IllegalAction, match="Must bid 7 or higher to outbid Betl"):
        game.bid(0, 6)
    game.bid(0, 7)
    with pytest.raises(IllegalAction, match="Bid must be higher"):
        game.bid(1, 7)


def test_betl_rejected_after_seven():
    game = create_mexico()
    game.bid(1, 7)
    with pytest.raises(IllegalAction, match="Betl can only be bid"):
        game.bid(2, "betl")


def test_betl_contract_skips_talon_and_trump():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, "betl")
    game.bid(0, "pass")
    game.bid(1, "pass")

    assert game.bid_winner == 2
    assert game.is_betl
    assert game.trump is None
    assert game.phase is MexicoPhase.PLAYING
    assert game.current_player == 1


def test_mexico_bid_ends_bidding_at_once():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, "mexico")

    assert game.bid_winner == 2
    assert game.winning_bid == MEXICO
    assert game.phase is MexicoPhase.PLAYING
    assert game.trump is None


def test_turn_skips_players_who_passed():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, "pass")
    game.bid(0, 6)
    assert game.current_player == 1
    game.bid(1, 7)
    assert game.current_player == 0


def test_out_of_turn_bid_leaves_state_untouched():
    game = create_mexico()
    before = game.snapshot(0)
    result = game.apply_action(0, "bid", {"bid": 6})
    assert not result.success
    assert result.error == "Not your turn"
    assert game.snapshot(0) == before


def test_bid_outside_bidding_phase_rejected():
    game = create_mexico()
    game.bid(1, 5)
    game.bid(2, "mexico")
    with pytest.raises(IllegalAction, match="Not in bidding phase"):
        game.bid(1, 6)


def test_legal_bids_for_opening_player():
    game = create_mexico()
    legal = game.legal_bids(1)
    assert PASS not in legal
    assert BETL in legal and MEXICO in legal
    assert [bid.value for bid in legal if bid.kind is BidKind.NUMERIC] == [5, 6, 7, 8, 9, 10]
    assert game.legal_bids(0) == []
    assert game.snapshot(1)["legalBids"] == ["betl", "mexico", 5, 6, 7, 8, 9, 10]


def test_bid_parse_accepts_wire_forms():
    assert Bid.parse("7") == Bid(BidKind.NUMERIC, 7)
    assert Bid.parse(" Betl ") == BETL
    assert Bid.parse("MEXICO") == MEXICO
    assert Bid.parse(10).wire() == 10
    for raw in ("eleven", 11, 4, True, None):
        with pytest.raises(IllegalAction):
            Bid.parse(raw)


def test_bid_ranking():
    ordered = sorted(
        [Bid(BidKind.NUMERIC, 7), BETL, Bid(BidKind.NUMERIC, 6), MEXICO, PASS, Bid(BidKind.NUMERIC, 10)],
        key=lambda bid: bid.sort_key(),
    )
    assert [bid.wire() for bid in ordered] == ["pass", 6, "betl", 7, 10, "mexico"]
    assert MEXICO.numeric_rank == 20
    assert MEXICO.threshold == 10
