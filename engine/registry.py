from __future__ import annotations

import logging
import random
import string
from typing import Dict, Iterator, Optional, Union

from .lorum import LorumGame
from .mexico import MexicoGame
from .models import ContractMode, GameConfig, GameType

LOGGER = logging.getLogger("game_registry")

GAME_ID_LENGTH = 6
GAME_ID_ALPHABET = string.ascii_uppercase + string.digits

Game = Union[MexicoGame, LorumGame]


class GameRegistry:
    """Process-wide table of live games keyed by their short join code."""

    def __init__(self, config: Optional[GameConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self._games: Dict[str, Game] = {}

    def __len__(self) -> int:
        return len(self._games)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._games

    def __iter__(self) -> Iterator[Game]:
        return iter(list(self._games.values()))

    def create(
        self,
        game_type: Union[GameType, str],
        contract_mode: Union[ContractMode, str] = ContractMode.FIXED,
        *,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
    ) -> Game:
        try:
            kind = GameType(game_type)
        except ValueError as exc:
            raise ValueError(f"Unknown game type: {game_type}") from exc

        game_id = self._new_id()
        game_config = config or self.config
        game: Game
        if kind is GameType.MEXICO:
            game = MexicoGame(game_id, config=game_config, seed=seed)
        else:
            game = LorumGame(game_id, contract_mode=contract_mode, config=game_config, seed=seed)
        self._games[game_id] = game
        LOGGER.info("Game %s created (%s)", game_id, kind.value)
        return game

    def get(self, game_id: object) -> Optional[Game]:
        if not isinstance(game_id, str):
            return None
        return self._games.get(game_id.strip().upper())

    def remove(self, game_id: str) -> Optional[Game]:
        game = self._games.pop(game_id, None)
        if game is not None:
            LOGGER.info("Game %s removed", game_id)
        return game

    def _new_id(self) -> str:
        while True:
            candidate = "".join(self.rng.choice(GAME_ID_ALPHABET) for _ in range(GAME_ID_LENGTH))
            if candidate not in self._games:
                return candidate
