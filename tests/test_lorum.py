import random

import pytest

from engine.lorum import contract_scores, trick_winner
from engine.models import ActionType, Contract, ContractMode, IllegalAction, LorumPhase, TrickPlay

from .helpers import card, cards, create_lorum, force_lorum_deal, step_bots


def _scores(contract, tricks=(0, 0, 0, 0), queens=(0, 0, 0, 0), hearts=(0, 0, 0, 0), jack=None, king=None):
    return contract_scores(
        contract,
        tricks_taken=tricks,
        queens_taken=queens,
        hearts_taken=hearts,
        jack_of_clubs_taken_by=jack,
        king_of_hearts_taken_by=king,
    )


def test_fourth_join_deals_first_deal():
    game = create_lorum()
    assert game.phase is LorumPhase.PLAYING
    assert game.current_contract == Contract.MINIMUM
    assert [len(hand) for hand in game.hands] == [8, 8, 8, 8]
    assert len({c for hand in game.hands for c in hand}) == 32
    assert game.current_player == 1
    assert game.contract_selector == 1


def test_contract_formulas():
    assert _scores(Contract.MINIMUM, tricks=(3, 2, 2, 1)) == [3, 2, 2, 1]
    assert _scores(Contract.MAXIMUM, tricks=(1, 0, 5, 2)) == [8, 8, 0, 0]
    assert _scores(Contract.QUEENS, queens=(2, 0, 1, 1)) == [4, 0, 2, 2]
    assert _scores(Contract.HEARTS, hearts=(3, 2, 3, 0)) == [3, 2, 3, 0]
    assert _scores(Contract.JACK_OF_CLUBS, jack=2) == [0, 0, 8, 0]
    assert _scores(Contract.KING_OF_HEARTS, king=0) == [8, 0, 0, 0]


def test_all_hearts_flip_to_minus_eight():
    assert _scores(Contract.HEARTS, hearts=(0, 8, 0, 0)) == [0, -8, 0, 0]

    game = create_lorum()
    force_lorum_deal(game, [[], [], [], []], Contract.HEARTS)
    game.tricks_taken = [0, 8, 0, 0]
    game.hearts_taken = [0, 8, 0, 0]
    game.score_contract()
    assert game.scores == [0, -8, 0, 0]
    assert game.contract_scores[-1].scores == (0, -8, 0, 0)


def test_trick_winner_is_highest_of_led_suit():
    trick = [
        TrickPlay(1, card("9h")),
        TrickPlay(2, card("Ab")),
        TrickPlay(3, card("Jh")),
        TrickPlay(0, card("8h")),
    ]
    assert trick_winner(trick) == 3


def test_must_follow_suit_when_able():
    game = create_lorum()
    force_lorum_deal(
        game,
        [cards("7a", "8a"), cards("9h", "10a"), cards("Qh", "Kb"), cards("Ab", "Ah")],
        Contract.MINIMUM,
    )
    game.play_card(1, card("9h"))
    with pytest.raises(IllegalAction, match="Must follow suit"):
        game.play_card(2, card("Kb"))
    assert game.legal_cards(2) == [card("Qh")]
    game.play_card(2, card("Qh"))
    assert game.legal_cards(3) == [card("Ah")]
    game.play_card(3, card("Ah"))
    assert game.legal_cards(0) == cards("7a", "8a")


def test_trick_tracks_captures_and_running_scores():
    game = create_lorum()
    force_lorum_deal(game, [cards("7b"), cards("Qh"), cards("Kh"), cards("Ja")], Contract.JACK_OF_CLUBS)

    game.play_card(1, card("Qh"))
    game.play_card(2, card("Kh"))
    game.play_card(3, card("Ja"))
    result = game.apply_action(0, ActionType.PLAY_LORUM_CARD, {"card": {"suit": "bells", "rank": "7"}})

    assert result.success and result.needs_delay
    assert game.phase is LorumPhase.TRICK_COMPLETE
    assert game.tricks_taken == [0, 0, 1, 0]
    assert game.queens_taken == [0, 0, 1, 0]
    assert game.hearts_taken == [0, 0, 2, 0]
    assert game.jack_of_clubs_taken_by == 2
    assert game.king_of_hearts_taken_by == 2
    assert game.running_scores == [0, 0, 8, 0]

    events = game.continue_after_trick()

    assert game.scores == [0, 0, 8, 0]
    assert game.contract_scores[-1].contract == Contract.JACK_OF_CLUBS
    assert events[0]["ev"] == "DEAL_SCORED"
    assert game.current_deal == 1
    assert game.current_contract == Contract.MAXIMUM
    assert game.phase is LorumPhase.PLAYING
    assert game.running_scores == [0, 0, 0, 0]


def test_winner_leads_next_trick():
    game = create_lorum()
    force_lorum_deal(
        game,
        [cards("7b", "8b"), cards("Qh", "9l"), cards("Kh", "10l"), cards("Ja", "Jl")],
        Contract.MINIMUM,
    )
    for seat, text in ((1, "Qh"), (2, "Kh"), (3, "Ja"), (0, "7b")):
        game.play_card(seat, card(text))
    game.continue_after_trick()
    assert game.phase is LorumPhase.PLAYING
    assert game.current_player == 2
    assert game.current_trick == []


def test_fixed_mode_follows_deal_number():
    game = create_lorum()
    seen = []
    for _ in range(7):
        seen.append((game.current_contract, game.phase))
        game.advance_deal()
    assert [contract for contract, _ in seen] == list(Contract)
    assert seen[-1][1] is LorumPhase.LORA_PLAYING
    assert all(phase is LorumPhase.PLAYING for _, phase in seen[:-1])


def test_twenty_eight_deals_then_finished():
    game = create_lorum()
    for _ in range(27):
        game.advance_deal()
    assert game.current_deal == 27
    assert game.dealer == 3
    assert game.current_contract == Contract.LORA
    assert game.current_player == 0

    events = game.advance_deal()
    assert game.phase is LorumPhase.FINISHED
    assert game.is_finished()
    assert events[-1]["ev"] == "GAME_OVER"
    assert game.next_actor() is None


def test_choice_mode_contract_selection():
    game = create_lorum(contract_mode=ContractMode.CHOICE)
    assert game.phase is LorumPhase.CONTRACT_SELECTION
    assert game.next_actor() == 1
    assert game.snapshot(1)["legalContracts"] == [1, 2, 3, 4, 5, 6, 7]

    with pytest.raises(IllegalAction, match="Only the first player"):
        game.select_contract(2, 4)
    for raw in (0, 8, "queens", None):
        result = game.apply_action(1, ActionType.SELECT_CONTRACT, {"contractId": raw})
        assert not result.success
    assert game.phase is LorumPhase.CONTRACT_SELECTION

    game.select_contract(1, 4)
    assert game.current_contract == Contract.HEARTS
    assert game.phase is LorumPhase.PLAYING
    assert game.used_contracts[3]

    game.advance_deal()
    with pytest.raises(IllegalAction, match="already used"):
        game.select_contract(1, 4)
    game.select_contract(1, "7")
    assert game.phase is LorumPhase.LORA_PLAYING


def test_choice_mode_resets_usage_when_dealer_rotates():
    game = create_lorum(contract_mode=ContractMode.CHOICE)
    for contract in Contract:
        game.select_contract(game.contract_selector, int(contract))
        game.advance_deal()
    assert game.current_deal == 7
    assert game.dealer == 1
    assert game.used_contracts == [False] * 7
    assert game.contract_selector == 2


def test_play_card_outside_playing_rejected():
    game = create_lorum(contract_mode=ContractMode.CHOICE)
    result = game.apply_action(1, "play_lorum_card", {"card": {"suit": "hearts", "rank": "7"}})
    assert not result.success
    assert result.error == "Not in playing state"


def test_snapshot_redacts_other_hands():
    game = create_lorum()
    view = game.snapshot(2)
    assert view["playerIndex"] == 2
    assert len(view["hand"]) == 8
    assert view["handSizes"] == [8, 8, 8, 8]
    assert "legal" not in view
    assert len(game.snapshot(1)["legal"]) == 8
    assert view["contractName"] == "Minimum"


def test_minimum_deal_hands_out_eight_tricks():
    game = create_lorum(seed=9)
    rng = random.Random(1)
    while not game.contract_scores:
        step_bots(game, rng)
    entry = game.contract_scores[0]
    assert entry.contract == Contract.MINIMUM
    assert sum(entry.scores) == 8


def test_mexico_verbs_rejected_by_lorum():
    game = create_lorum()
    result = game.apply_action(1, ActionType.BID, {"bid": 5})
    assert not result.success
    assert "not part of Lorum" in result.error
