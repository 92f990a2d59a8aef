from __future__ import annotations

import random
from typing import Dict, List, Optional, Tuple, Union

from engine.cards import SUITS, Card, card_payload
from engine.lorum import LorumGame
from engine.mexico import MexicoGame, determine_winner
from engine.models import ActionType, Bid, Contract, LorumPhase, MexicoPhase, TrickPlay

_RNG = random.Random()

Decision = Tuple[ActionType, Dict[str, object]]


def _estimate_tricks(hand: List[Card]) -> int:
    """Very rough trick count for a Mexico hand: high cards plus length in the best suit."""
    aces = sum(1 for card in hand if card.rank == "A")
    kings = sum(1 for card in hand if card.rank == "K")
    longest = max(sum(1 for card in hand if card.suit == suit) for suit in SUITS)
    return aces + kings // 2 + max(longest - 2, 0)


def _looks_like_betl(hand: List[Card]) -> bool:
    # Nothing above a 10 and mostly sevens and eights.
    return all(card.value <= 3 for card in hand) and sum(1 for card in hand if card.value <= 1) >= 6


def _choose_bid(game: MexicoGame, seat_idx: int, rng: random.Random) -> Bid:
    legal = game.legal_bids(seat_idx)
    if not legal:
        raise ValueError("Bot asked to bid out of turn")

    hand = game.hands[seat_idx]
    if _looks_like_betl(hand):
        betl = [bid for bid in legal if bid.is_betl]
        if betl:
            return betl[0]

    estimate = _estimate_tricks(hand) + (1 if rng.random() < 0.2 else 0)
    numeric = [bid for bid in legal if bid.numeric_rank is not None and not bid.is_mexico]
    affordable = [bid for bid in numeric if bid.threshold <= estimate]
    if affordable:
        return affordable[0]

    passes = [bid for bid in legal if bid.is_pass]
    if passes:
        return passes[0]
    # Only the opening bidder lands here: the cheapest number is forced.
    return numeric[0]


def _best_trump(hand: List[Card]) -> str:
    def weight(suit: str) -> Tuple[int, int]:
        cards = [card for card in hand if card.suit == suit]
        return len(cards), sum(card.value for card in cards)

    return max(SUITS, key=weight)


def _mexico_card(game: MexicoGame, seat_idx: int) -> Card:
    legal = sorted(game.legal_cards(seat_idx), key=lambda card: card.value)
    if not legal:
        raise ValueError("Bot has no legal card")

    avoiding_tricks = game.is_betl and seat_idx == game.bid_winner
    if not game.current_trick:
        return legal[0] if avoiding_tricks else legal[-1]

    winning = [
        card
        for card in legal
        if determine_winner(game.current_trick + [TrickPlay(seat_idx, card)], game.trump) == seat_idx
    ]
    if avoiding_tricks:
        losing = [card for card in legal if card not in winning]
        return losing[-1] if losing else legal[0]
    if winning:
        return winning[0]
    return legal[0]


def mexico_strategy(game: MexicoGame, seat_idx: int, rng: Optional[random.Random] = None) -> Decision:
    """House bot for Mexico: bids on a trick estimate, keeps long suits, wins tricks cheaply."""

    rng = rng or _RNG
    if game.phase is MexicoPhase.BIDDING:
        return ActionType.BID, {"bid": _choose_bid(game, seat_idx, rng).wire()}

    if game.phase is MexicoPhase.TALON_REVEAL:
        pool = game.hands[seat_idx] + game.talon
        trump = _best_trump(pool)
        # Throw the two cheapest cards outside the intended trump suit.
        candidates = sorted(pool, key=lambda card: (card.suit == trump, card.value))
        return ActionType.TAKE_TALON, {"discards": [card_payload(card) for card in candidates[:2]]}

    if game.phase is MexicoPhase.TRUMP_SELECTION:
        return ActionType.SELECT_TRUMP, {"trump": _best_trump(game.hands[seat_idx])}

    if game.phase is MexicoPhase.PLAYING:
        return ActionType.PLAY_CARD, {"card": card_payload(_mexico_card(game, seat_idx))}

    raise ValueError(f"Bot cannot act in phase {game.phase.value}")


def lorum_strategy(game: LorumGame, seat_idx: int, rng: Optional[random.Random] = None) -> Decision:
    """House bot for Lorum: ducks tricks except in Maximum, plays the first legal Lora card."""

    rng = rng or _RNG
    if game.phase is LorumPhase.CONTRACT_SELECTION:
        options = game.available_contracts()
        if not options:
            raise ValueError("No contract left to select")
        return ActionType.SELECT_CONTRACT, {"contractId": int(rng.choice(options))}

    if game.phase is LorumPhase.LORA_PLAYING:
        legal = game.legal_cards(seat_idx)
        if not legal:
            return ActionType.PASS_LORA, {}
        return ActionType.PLAY_LORA_CARD, {"card": card_payload(legal[0])}

    if game.phase is LorumPhase.PLAYING:
        legal = sorted(game.legal_cards(seat_idx), key=lambda card: card.value)
        if not legal:
            raise ValueError("Bot has no legal card")
        card = legal[-1] if game.current_contract == Contract.MAXIMUM else legal[0]
        return ActionType.PLAY_LORUM_CARD, {"card": card_payload(card)}

    raise ValueError(f"Bot cannot act in phase {game.phase.value}")


def baseline_strategy(game: Union[MexicoGame, LorumGame], seat_idx: int, rng: Optional[random.Random] = None) -> Decision:
    if isinstance(game, MexicoGame):
        return mexico_strategy(game, seat_idx, rng)
    return lorum_strategy(game, seat_idx, rng)
