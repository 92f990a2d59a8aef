from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

SUITS = ("acorns", "leaves", "hearts", "bells")
RANKS = ("7", "8", "9", "10", "J", "Q", "K", "A")
RANK_VALUES: Dict[str, int] = {rank: idx for idx, rank in enumerate(RANKS)}


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str

    def __post_init__(self) -> None:
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")

    @property
    def value(self) -> int:
        return RANK_VALUES[self.rank]

    @property
    def label(self) -> str:
        return f"{self.rank} of {self.suit}"


def next_rank(rank: str) -> str:
    """Cyclic successor used by Lora piles: 7..A then back to 7."""
    return RANKS[(RANK_VALUES[rank] + 1) % len(RANKS)]


def ordered_deck() -> List[Card]:
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


def build_deck(seed: Optional[int] = None, rng: Optional[random.Random] = None) -> List[Card]:
    if rng is None:
        rng = random.Random(seed)
    deck = ordered_deck()
    rng.shuffle(deck)
    return deck


def deal(deck: List[Card], count: int) -> List[Card]:
    if len(deck) < count:
        raise ValueError("Not enough cards left in deck")
    cards = deck[:count]
    del deck[:count]
    return cards


def card_payload(card: Card) -> Dict[str, str]:
    return {"suit": card.suit, "rank": card.rank}


def cards_payload(cards: Iterable[Card]) -> List[Dict[str, str]]:
    return [card_payload(card) for card in cards]


def parse_card(payload: object) -> Card:
    if not isinstance(payload, Mapping):
        raise ValueError("Card must be an object with suit and rank")
    suit = payload.get("suit")
    rank = payload.get("rank")
    if not isinstance(suit, str) or not isinstance(rank, (str, int)):
        raise ValueError("Card must be an object with suit and rank")
    return Card(suit.strip().lower(), str(rank).strip().upper())
