#!/usr/bin/env python3
"""Play full Mexico or Lorum games with house bots, no network involved.

Every seat is driven by ``practice.bots`` and every completed trick is
cleared immediately, so a run shows how the engines behave over many games
and whether the score logs stay consistent.

Example:
    python scripts/simulate.py --game lorum --games 20 --contract-mode choice
"""

from __future__ import annotations

import argparse
import logging
import random
from typing import List, Optional, Union

from engine.lorum import LorumGame
from engine.mexico import MexicoGame
from engine.models import ContractMode, GameConfig, GameType
from practice.bots import baseline_strategy

LOGGER = logging.getLogger("simulate")

MAX_STEPS = 100_000


def play_game(
    game_type: GameType,
    *,
    seed: Optional[int] = None,
    contract_mode: ContractMode = ContractMode.FIXED,
    config: Optional[GameConfig] = None,
) -> Union[MexicoGame, LorumGame]:
    """Seat bots, play until the game is finished and return the final game object."""

    game: Union[MexicoGame, LorumGame]
    if game_type is GameType.MEXICO:
        game = MexicoGame("SIM", config=config, seed=seed)
    else:
        game = LorumGame("SIM", contract_mode=contract_mode, config=config, seed=seed)
    for idx in range(game.seats_required):
        game.join(f"Bot {idx + 1}", is_bot=True)

    rng = random.Random(seed)
    for _ in range(MAX_STEPS):
        if game.is_finished():
            return game
        if game.phase.value == "trick_complete":
            game.continue_after_trick()
            continue
        actor = game.next_actor()
        if actor is None:
            raise RuntimeError(f"No actor in phase {game.phase.value}")
        action, payload = baseline_strategy(game, actor, rng)
        result = game.apply_action(actor, action, payload)
        if not result.success:
            raise RuntimeError(f"Bot {actor} made an illegal {action.value}: {result.error}")
    raise RuntimeError(f"Game did not finish within {MAX_STEPS} steps")


def summarize(game: Union[MexicoGame, LorumGame]) -> str:
    names = [seat.name for seat in game.players]
    scores = ", ".join(f"{name}={score}" for name, score in zip(names, game.scores))
    if isinstance(game, MexicoGame):
        return f"mexico: {len(game.round_history)} rounds, {scores}"
    return f"lorum: {len(game.contract_scores)} deals, {scores}"


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Simulate bot-only Mexico or Lorum games")
    parser.add_argument("--game", choices=[kind.value for kind in GameType], default=GameType.MEXICO.value)
    parser.add_argument("--games", type=int, default=10)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument(
        "--contract-mode",
        choices=[mode.value for mode in ContractMode],
        default=ContractMode.FIXED.value,
    )
    parser.add_argument("--target-score", type=int, default=101)
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    game_type = GameType(args.game)
    config = GameConfig(target_score=args.target_score)
    base_seed = args.seed if args.seed is not None else random.randrange(1_000_000)
    totals: List[int] = []
    for offset in range(args.games):
        game = play_game(
            game_type,
            seed=base_seed + offset,
            contract_mode=ContractMode(args.contract_mode),
            config=config,
        )
        LOGGER.info("Game %s finished", offset + 1)
        print(f"#{offset + 1:03d} {summarize(game)}")
        if not totals:
            totals = [0] * len(game.scores)
        for seat, score in enumerate(game.scores):
            totals[seat] += score

    print(f"seed={base_seed} cumulative scores={totals}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
