import pytest

from engine.models import Contract, ContractMode, GameConfig, LorumPhase, MexicoPhase
from engine.lorum import LorumGame
from engine.mexico import MexicoGame

from .helpers import play_out


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_bot_mexico_games_reach_target(seed):
    game = MexicoGame("STRESS", config=GameConfig(target_score=101), seed=seed)
    for idx in range(3):
        game.join(f"Bot{idx}", is_bot=True)

    play_out(game, seed=seed)

    assert game.phase is MexicoPhase.FINISHED
    assert max(game.scores) >= 101
    totals = [0, 0, 0]
    for record in game.round_history:
        assert sum(record.tricks_taken) == 10
        totals = [total + delta for total, delta in zip(totals, record.round_scores)]
        assert list(record.total_scores) == totals
    assert totals == game.scores


@pytest.mark.parametrize("mode", [ContractMode.FIXED, ContractMode.CHOICE])
def test_bot_lorum_games_complete_twenty_eight_deals(mode):
    game = LorumGame("STRESS", contract_mode=mode, seed=17)
    for idx in range(4):
        game.join(f"Bot{idx}", is_bot=True)

    play_out(game, seed=5)

    assert game.phase is LorumPhase.FINISHED
    assert len(game.contract_scores) == 28
    assert [entry.deal for entry in game.contract_scores] == list(range(28))
    for dealer in range(4):
        block = game.contract_scores[dealer * 7:(dealer + 1) * 7]
        assert sorted(entry.contract for entry in block) == list(Contract)

    totals = [0, 0, 0, 0]
    for entry in game.contract_scores:
        if entry.contract == Contract.MINIMUM:
            assert sum(entry.scores) == 8
        if entry.contract == Contract.QUEENS:
            assert sum(entry.scores) == 8
        if entry.contract in (Contract.JACK_OF_CLUBS, Contract.KING_OF_HEARTS):
            assert sorted(entry.scores) == [0, 0, 0, 8]
        if entry.contract == Contract.LORA:
            assert entry.scores.count(-8) == 1
        totals = [total + delta for total, delta in zip(totals, entry.scores)]
        assert list(entry.total_scores) == totals
    assert totals == game.scores
