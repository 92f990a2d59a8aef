from __future__ import annotations

import random
from typing import List, Optional, Sequence, Union

from engine.cards import Card
from engine.lorum import LorumGame
from engine.mexico import MexicoGame
from engine.models import Bid, BidKind, Contract, ContractMode, GameConfig, LorumPhase
from practice.bots import baseline_strategy


def card(text: str) -> Card:
    """Shorthand used across tests: ``"10h"`` -> ten of hearts, ``"Ja"`` -> jack of acorns."""
    suits = {"a": "acorns", "l": "leaves", "h": "hearts", "b": "bells"}
    return Card(suits[text[-1]], text[:-1])


def cards(*texts: str) -> List[Card]:
    return [card(text) for text in texts]


def create_mexico(*, seed: int = 42, target_score: int = 101) -> MexicoGame:
    """Instantiate a Mexico game with all three seats taken; the first round is dealt."""
    game = MexicoGame("MEX001", config=GameConfig(target_score=target_score), seed=seed)
    for idx in range(3):
        game.join(f"Player{idx}")
    return game


def create_lorum(*, seed: int = 42, contract_mode: ContractMode = ContractMode.FIXED) -> LorumGame:
    game = LorumGame("LOR001", contract_mode=contract_mode, seed=seed)
    for idx in range(4):
        game.join(f"Player{idx}")
    return game


def force_mexico_play(
    game: MexicoGame,
    hands: Sequence[Sequence[Card]],
    *,
    trump: Optional[str] = None,
    winner: int = 1,
    bid: Bid = Bid(BidKind.NUMERIC, 6),
) -> None:
    """Skip bidding and talon: put the table straight into trick play with the given hands."""
    game.hands = [list(hand) for hand in hands]
    game.talon = []
    game.bids = [None, None, None]
    game.bids[winner] = bid
    game.bid_winner = winner
    game.is_betl = bid.is_betl
    game.trump = trump
    game._start_play()


def force_lorum_deal(game: LorumGame, hands: Sequence[Sequence[Card]], contract: Contract) -> None:
    """Re-deal the current deal with fixed hands and a chosen contract."""
    game.start_deal()
    game.hands = [list(hand) for hand in hands]
    game.current_contract = contract
    game.phase = LorumPhase.LORA_PLAYING if contract == Contract.LORA else LorumPhase.PLAYING


def step_bots(game: Union[MexicoGame, LorumGame], rng: random.Random) -> None:
    """Advance one step: clear a finished trick or let the bot on turn act."""
    if game.phase.value == "trick_complete":
        game.continue_after_trick()
        return
    actor = game.next_actor()
    assert actor is not None, f"nobody to act in {game.phase.value}"
    action, payload = baseline_strategy(game, actor, rng)
    result = game.apply_action(actor, action, payload)
    assert result.success, result.error


def play_out(game: Union[MexicoGame, LorumGame], seed: int = 0, max_steps: int = 100_000) -> None:
    """Drive every seat with the house bot until the game is finished."""
    rng = random.Random(seed)
    for _ in range(max_steps):
        if game.is_finished():
            return
        step_bots(game, rng)
    raise AssertionError("game did not finish")


class DummyWebSocket:
    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True
