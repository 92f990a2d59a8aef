"""Card game engines (Mexico, Lorum) shared by the game server, bots and scripts."""

from .cards import RANKS, SUITS, Card, build_deck, deal, parse_card
from .lorum import LorumGame
from .mexico import MexicoGame
from .models import (
    ActionResult,
    ActionType,
    Bid,
    Contract,
    ContractMode,
    GameConfig,
    GameType,
    IllegalAction,
    InvariantViolation,
    LorumPhase,
    MexicoPhase,
    PlayerSeat,
)
from .registry import GameRegistry

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal",
    "parse_card",
    "LorumGame",
    "MexicoGame",
    "ActionResult",
    "ActionType",
    "Bid",
    "Contract",
    "ContractMode",
    "GameConfig",
    "GameType",
    "IllegalAction",
    "InvariantViolation",
    "LorumPhase",
    "MexicoPhase",
    "PlayerSeat",
    "GameRegistry",
]
