from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple, Union

from .cards import Card, card_payload

MIN_BID = 5
MAX_BID = 10
BETL_OVERRIDE_BID = 7
MEXICO_RANK = 20
MEXICO_BID_THRESHOLD = 10
BETL_POINTS = 7


class IllegalAction(ValueError):
    """A player action that breaks the rules; the game state is left untouched."""


class InvariantViolation(RuntimeError):
    """Internal consistency check failed. Should never happen in normal play."""


class GameType(str, Enum):
    MEXICO = "mexico"
    LORUM = "lorum"


class MexicoPhase(str, Enum):
    WAITING = "waiting"
    BIDDING = "bidding"
    TALON_REVEAL = "talon_reveal"
    TRUMP_SELECTION = "trump_selection"
    PLAYING = "playing"
    TRICK_COMPLETE = "trick_complete"
    FINISHED = "finished"


class LorumPhase(str, Enum):
    WAITING = "waiting"
    CONTRACT_SELECTION = "contract_selection"
    PLAYING = "playing"
    TRICK_COMPLETE = "trick_complete"
    LORA_PLAYING = "lora_playing"
    FINISHED = "finished"


class ContractMode(str, Enum):
    FIXED = "fixed"
    CHOICE = "choice"


class ActionType(str, Enum):
    BID = "bid"
    TAKE_TALON = "take_talon"
    SELECT_TRUMP = "select_trump"
    PLAY_CARD = "play_card"
    SELECT_CONTRACT = "select_contract"
    PLAY_LORUM_CARD = "play_lorum_card"
    PLAY_LORA_CARD = "play_lora_card"
    PASS_LORA = "pass_lora"


class Contract(IntEnum):
    MINIMUM = 1
    MAXIMUM = 2
    QUEENS = 3
    HEARTS = 4
    JACK_OF_CLUBS = 5
    KING_OF_HEARTS = 6
    LORA = 7

    @property
    def title(self) -> str:
        return CONTRACT_NAMES[self][0]

    @property
    def local_name(self) -> str:
        return CONTRACT_NAMES[self][1]


CONTRACT_NAMES: Dict[Contract, Tuple[str, str]] = {
    Contract.MINIMUM: ("Minimum", "Minimum"),
    Contract.MAXIMUM: ("Maximum", "Maksimum"),
    Contract.QUEENS: ("Queens", "Dame"),
    Contract.HEARTS: ("Hearts", "Srca"),
    Contract.JACK_OF_CLUBS: ("Jack of Clubs", "Žandar tref"),
    Contract.KING_OF_HEARTS: ("King of Hearts", "Kralj srce"),
    Contract.LORA: ("Lora", "Ređanje"),
}


class BidKind(str, Enum):
    PASS = "pass"
    BETL = "betl"
    MEXICO = "mexico"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class Bid:
    kind: BidKind
    value: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind is BidKind.NUMERIC:
            if self.value is None or not MIN_BID <= self.value <= MAX_BID:
                raise IllegalAction(f"Bid must be between {MIN_BID} and {MAX_BID}")
        elif self.value is not None:
            raise IllegalAction(f"{self.kind.value} bid takes no value")

    @classmethod
    def parse(cls, raw: Union[str, int, None]) -> "Bid":
        if isinstance(raw, bool) or raw is None:
            raise IllegalAction("Bid required")
        if isinstance(raw, int):
            return cls(BidKind.NUMERIC, raw)
        if not isinstance(raw, str):
            raise IllegalAction("Bid must be a string or integer")
        text = raw.strip().lower()
        if text in (BidKind.PASS.value, BidKind.BETL.value, BidKind.MEXICO.value):
            return cls(BidKind(text))
        if not text.isdigit():
            raise IllegalAction(f"Unknown bid: {raw}")
        return cls(BidKind.NUMERIC, int(text))

    @property
    def is_pass(self) -> bool:
        return self.kind is BidKind.PASS

    @property
    def is_betl(self) -> bool:
        return self.kind is BidKind.BETL

    @property
    def is_mexico(self) -> bool:
        return self.kind is BidKind.MEXICO

    @property
    def numeric_rank(self) -> Optional[int]:
        """Value used when comparing against other numeric bids; mexico counts as MEXICO_RANK."""
        if self.kind is BidKind.NUMERIC:
            return self.value
        if self.kind is BidKind.MEXICO:
            return MEXICO_RANK
        return None

    @property
    def threshold(self) -> int:
        """Tricks the caller needs to make the contract."""
        if self.kind is BidKind.MEXICO:
            return MEXICO_BID_THRESHOLD
        if self.kind is BidKind.NUMERIC:
            assert self.value is not None
            return self.value
        return 0

    def sort_key(self) -> Tuple[int, int]:
        # betl sits between a numeric 6 and a numeric 7.
        if self.kind is BidKind.MEXICO:
            return (3, MEXICO_RANK)
        if self.kind is BidKind.BETL:
            return (1, 0)
        if self.kind is BidKind.NUMERIC:
            assert self.value is not None
            return (2 if self.value >= BETL_OVERRIDE_BID else 0, self.value)
        return (-1, 0)

    def wire(self) -> Union[str, int]:
        if self.kind is BidKind.NUMERIC:
            assert self.value is not None
            return self.value
        return self.kind.value


PASS = Bid(BidKind.PASS)
BETL = Bid(BidKind.BETL)
MEXICO = Bid(BidKind.MEXICO)


@dataclass
class GameConfig:
    target_score: int = 101
    total_deals: int = 28
    trick_delay_ms: int = 3_000


@dataclass
class PlayerSeat:
    seat: int
    name: str
    connected: bool = True
    is_bot: bool = False

    def payload(self) -> Dict[str, object]:
        return {"seat": self.seat, "name": self.name, "connected": self.connected, "isBot": self.is_bot}


@dataclass(frozen=True)
class TrickPlay:
    player: int
    card: Card

    def payload(self) -> Dict[str, object]:
        return {"playerIndex": self.player, "card": card_payload(self.card)}


@dataclass
class ActionResult:
    success: bool
    error: Optional[str] = None
    needs_delay: bool = False
    events: List[Dict[str, object]] = field(default_factory=list)

    @classmethod
    def ok(cls, events: Optional[List[Dict[str, object]]] = None, *, needs_delay: bool = False) -> "ActionResult":
        return cls(success=True, needs_delay=needs_delay, events=list(events or []))

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)

    def payload(self) -> Dict[str, object]:
        if self.success:
            return {"success": True}
        return {"success": False, "error": self.error}


@dataclass(frozen=True)
class ContractScore:
    deal: int
    contract: Contract
    scores: Tuple[int, ...]
    total_scores: Tuple[int, ...]
    passes: Optional[Tuple[int, ...]] = None

    def payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "deal": self.deal,
            "contract": int(self.contract),
            "scores": list(self.scores),
            "totalScores": list(self.total_scores),
        }
        if self.passes is not None:
            payload["passes"] = list(self.passes)
        return payload


@dataclass(frozen=True)
class RoundRecord:
    dealer: int
    bids: Tuple[Optional[Union[str, int]], ...]
    bid_winner: int
    trump: Optional[str]
    is_betl: bool
    tricks_taken: Tuple[int, ...]
    round_scores: Tuple[int, ...]
    total_scores: Tuple[int, ...]

    def payload(self) -> Dict[str, object]:
        return {
            "dealer": self.dealer,
            "bids": list(self.bids),
            "bidWinner": self.bid_winner,
            "trump": self.trump,
            "isBetl": self.is_betl,
            "tricksTaken": list(self.tricks_taken),
            "roundScores": list(self.round_scores),
            "totalScores": list(self.total_scores),
        }
