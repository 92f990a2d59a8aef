import random

import pytest

from engine.lorum import LorumGame
from engine.mexico import MexicoGame
from engine.models import ContractMode, GameConfig, LorumPhase
from engine.registry import GAME_ID_LENGTH, GameRegistry


def test_create_returns_engine_per_game_type():
    registry = GameRegistry(rng=random.Random(1))
    mexico = registry.create("mexico")
    lorum = registry.create("lorum", ContractMode.CHOICE)

    assert isinstance(mexico, MexicoGame)
    assert isinstance(lorum, LorumGame)
    assert lorum.contract_mode is ContractMode.CHOICE
    assert len(registry) == 2
    assert mexico.game_id != lorum.game_id
    for game_id in (mexico.game_id, lorum.game_id):
        assert len(game_id) == GAME_ID_LENGTH
        assert game_id == game_id.upper()


def test_get_is_case_insensitive_and_tolerates_junk():
    registry = GameRegistry()
    game = registry.create("mexico")
    assert registry.get(game.game_id.lower()) is game
    assert registry.get(f" {game.game_id} ") is game
    assert registry.get("NOPE00") is None
    assert registry.get(None) is None
    assert registry.get(12345) is None


def test_unknown_game_type_rejected():
    registry = GameRegistry()
    with pytest.raises(ValueError, match="Unknown game type"):
        registry.create("poker")
    assert len(registry) == 0


def test_remove_forgets_game():
    registry = GameRegistry()
    game = registry.create("lorum")
    assert game.game_id in registry
    assert registry.remove(game.game_id) is game
    assert game.game_id not in registry
    assert registry.remove(game.game_id) is None


def test_registry_config_reaches_games():
    registry = GameRegistry(GameConfig(target_score=51, trick_delay_ms=0))
    game = registry.create("mexico")
    assert game.config.target_score == 51
    assert registry.create("lorum", config=GameConfig(total_deals=7)).config.total_deals == 7


def test_new_games_wait_for_players():
    registry = GameRegistry()
    game = registry.create("lorum")
    assert game.phase is LorumPhase.WAITING
    assert list(registry) == [game]
