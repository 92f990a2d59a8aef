from __future__ import annotations

import logging
import random
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .cards import SUITS, Card, build_deck, card_payload, cards_payload, next_rank, parse_card
from .models import (
    ActionResult,
    ActionType,
    Contract,
    ContractMode,
    ContractScore,
    GameConfig,
    GameType,
    IllegalAction,
    InvariantViolation,
    LorumPhase,
    PlayerSeat,
    TrickPlay,
)

LOGGER = logging.getLogger("lorum_engine")

PLAYER_COUNT = 4
HAND_SIZE = 8
DEALS_PER_DEALER = len(Contract)
MAXIMUM_MIN_TRICKS = 2
PENALTY = 8
LORA_FINISHER_SCORE = -8

JACK_OF_CLUBS = Card("acorns", "J")
KING_OF_HEARTS = Card("hearts", "K")


def trick_winner(trick: Sequence[TrickPlay]) -> int:
    """Highest card of the led suit takes the trick; there is no trump in Lorum."""
    if not trick:
        raise InvariantViolation("Cannot determine winner of an empty trick")
    led = trick[0].card.suit
    winning = trick[0]
    for play in trick[1:]:
        if play.card.suit == led and play.card.value > winning.card.value:
            winning = play
    return winning.player


def contract_scores(
    contract: Contract,
    *,
    tricks_taken: Sequence[int],
    queens_taken: Sequence[int],
    hearts_taken: Sequence[int],
    jack_of_clubs_taken_by: Optional[int],
    king_of_hearts_taken_by: Optional[int],
) -> List[int]:
    """Per-seat penalty points for the trick contracts (1-6)."""
    seats = len(tricks_taken)
    scores = [0] * seats
    if contract == Contract.MINIMUM:
        scores = list(tricks_taken)
    elif contract == Contract.MAXIMUM:
        scores = [PENALTY if tricks < MAXIMUM_MIN_TRICKS else 0 for tricks in tricks_taken]
    elif contract == Contract.QUEENS:
        scores = [queens * 2 for queens in queens_taken]
    elif contract == Contract.HEARTS:
        # Taking every heart flips the penalty.
        scores = [-PENALTY if hearts == len(SUITS) * 2 else hearts for hearts in hearts_taken]
    elif contract == Contract.JACK_OF_CLUBS:
        if jack_of_clubs_taken_by is not None:
            scores[jack_of_clubs_taken_by] = PENALTY
    elif contract == Contract.KING_OF_HEARTS:
        if king_of_hearts_taken_by is not None:
            scores[king_of_hearts_taken_by] = PENALTY
    else:
        raise InvariantViolation(f"Contract {contract} is not a trick contract")
    return scores


def lora_scores(hand_sizes: Sequence[int], passes: Sequence[int], finisher: int) -> List[int]:
    return [
        LORA_FINISHER_SCORE if seat == finisher else hand_sizes[seat] + passes[seat]
        for seat in range(len(hand_sizes))
    ]


class LorumGame:
    """Four-player Lorum: 28 deals rotating through seven contracts, lowest total wins."""

    game_type = GameType.LORUM
    seats_required = PLAYER_COUNT

    def __init__(
        self,
        game_id: str,
        contract_mode: Union[ContractMode, str] = ContractMode.FIXED,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.game_id = game_id
        self.contract_mode = ContractMode(contract_mode)
        self.config = config or GameConfig()
        self.rng = random.Random(seed)
        self.players: List[PlayerSeat] = []
        self.phase = LorumPhase.WAITING

        self.current_deal = 0
        self.dealer = 0
        self.current_contract = Contract.MINIMUM
        self.contract_selector: Optional[int] = None
        self.used_contracts: List[bool] = [False] * len(Contract)

        self.hands: List[List[Card]] = [[] for _ in range(PLAYER_COUNT)]
        self.current_player = 0

        self.current_trick: List[TrickPlay] = []
        self.tricks_taken: List[int] = [0] * PLAYER_COUNT
        self.queens_taken: List[int] = [0] * PLAYER_COUNT
        self.hearts_taken: List[int] = [0] * PLAYER_COUNT
        self.jack_of_clubs_taken_by: Optional[int] = None
        self.king_of_hearts_taken_by: Optional[int] = None
        self.last_trick_winner: Optional[int] = None
        self.running_scores: List[int] = [0] * PLAYER_COUNT

        self.lora_layout: Dict[str, List[Card]] = {suit: [] for suit in SUITS}
        self.lora_start_rank: Optional[str] = None
        self.lora_passes: List[int] = [0] * PLAYER_COUNT

        self.scores: List[int] = [0] * PLAYER_COUNT
        self.contract_scores: List[ContractScore] = []

    # Seat management -------------------------------------------------

    def join(self, name: str, *, is_bot: bool = False) -> PlayerSeat:
        display = name.strip() if isinstance(name, str) else ""
        if not display:
            raise IllegalAction("Player name required")
        if self.is_full():
            raise IllegalAction("Game is full")

        seat = PlayerSeat(seat=len(self.players), name=display, is_bot=is_bot)
        self.players.append(seat)
        if self.is_full():
            self.start_deal()
        return seat

    def is_full(self) -> bool:
        return len(self.players) >= PLAYER_COUNT

    def set_connected(self, seat_idx: int, connected: bool) -> None:
        if 0 <= seat_idx < len(self.players):
            self.players[seat_idx].connected = connected

    # Deal lifecycle --------------------------------------------------

    def start_deal(self) -> None:
        if not self.is_full():
            raise IllegalAction("Not enough players to start a deal")

        deck = build_deck(rng=self.rng)
        hands: List[List[Card]] = [[] for _ in range(PLAYER_COUNT)]
        for idx, card in enumerate(deck):
            hands[idx % PLAYER_COUNT].append(card)
        self.hands = hands

        self.current_trick = []
        self.tricks_taken = [0] * PLAYER_COUNT
        self.queens_taken = [0] * PLAYER_COUNT
        self.hearts_taken = [0] * PLAYER_COUNT
        self.jack_of_clubs_taken_by = None
        self.king_of_hearts_taken_by = None
        self.last_trick_winner = None
        self.running_scores = [0] * PLAYER_COUNT
        self.lora_layout = {suit: [] for suit in SUITS}
        self.lora_start_rank = None
        self.lora_passes = [0] * PLAYER_COUNT

        # Seat to the dealer's right leads and, in choice mode, picks the contract.
        self.current_player = (self.dealer + 1) % PLAYER_COUNT
        self.contract_selector = self.current_player

        if self.contract_mode is ContractMode.FIXED:
            self.current_contract = Contract((self.current_deal % DEALS_PER_DEALER) + 1)
            self.phase = LorumPhase.LORA_PLAYING if self.current_contract == Contract.LORA else LorumPhase.PLAYING
        else:
            self.phase = LorumPhase.CONTRACT_SELECTION
        LOGGER.info(
            "Game %s: deal %s dealt, dealer=%s mode=%s",
            self.game_id,
            self.current_deal,
            self.dealer,
            self.contract_mode.value,
        )

    def select_contract(self, player: int, contract_id: object) -> List[Dict[str, object]]:
        if self.phase is not LorumPhase.CONTRACT_SELECTION:
            raise IllegalAction("Not in contract selection")
        if player != self.contract_selector:
            raise IllegalAction("Only the first player may select the contract")
        contract = _contract(contract_id)
        if self.used_contracts[contract - 1]:
            raise IllegalAction("Contract already used")

        self.current_contract = contract
        self.used_contracts[contract - 1] = True
        self.phase = LorumPhase.LORA_PLAYING if contract == Contract.LORA else LorumPhase.PLAYING
        return [{"ev": "CONTRACT_SELECTED", "player": player, "contract": int(contract)}]

    def advance_deal(self) -> List[Dict[str, object]]:
        self.current_deal += 1
        if self.current_deal >= self.config.total_deals:
            self.phase = LorumPhase.FINISHED
            self.current_trick = []
            LOGGER.info("Game %s: finished, scores %s", self.game_id, self.scores)
            return [{"ev": "GAME_OVER", "scores": list(self.scores)}]

        if self.current_deal % DEALS_PER_DEALER == 0:
            self.dealer = (self.dealer + 1) % PLAYER_COUNT
            if self.contract_mode is ContractMode.CHOICE:
                self.used_contracts = [False] * len(Contract)

        self.start_deal()
        return [{"ev": "DEAL_STARTED", "deal": self.current_deal, "dealer": self.dealer}]

    def reset(self) -> None:
        self.scores = [0] * PLAYER_COUNT
        self.contract_scores = []
        self.current_deal = 0
        self.dealer = 0
        self.used_contracts = [False] * len(Contract)
        self.start_deal()

    # Trick play (contracts 1-6) --------------------------------------

    def can_play_card(self, player: int, card: Card) -> bool:
        if not self.current_trick:
            return True
        led = self.current_trick[0].card.suit
        if card.suit == led:
            return True
        return not any(held.suit == led for held in self.hands[player])

    def play_card(self, player: int, card: Card) -> List[Dict[str, object]]:
        if self.phase is not LorumPhase.PLAYING:
            raise IllegalAction("Not in playing state")
        self._require_turn(player)
        hand = self.hands[player]
        if card not in hand:
            raise IllegalAction("Card not in hand")
        if not self.can_play_card(player, card):
            raise IllegalAction("Must follow suit")

        hand.remove(card)
        self.current_trick.append(TrickPlay(player, card))
        events: List[Dict[str, object]] = [{"ev": "PLAY", "player": player, "card": card_payload(card)}]
        if len(self.current_trick) == PLAYER_COUNT:
            events.extend(self._complete_trick())
        else:
            self.current_player = (player + 1) % PLAYER_COUNT
        return events

    def _complete_trick(self) -> List[Dict[str, object]]:
        winner = trick_winner(self.current_trick)
        self.tricks_taken[winner] += 1
        self.last_trick_winner = winner
        for play in self.current_trick:
            if play.card.rank == "Q":
                self.queens_taken[winner] += 1
            if play.card.suit == "hearts":
                self.hearts_taken[winner] += 1
            if play.card == JACK_OF_CLUBS:
                self.jack_of_clubs_taken_by = winner
            if play.card == KING_OF_HEARTS:
                self.king_of_hearts_taken_by = winner

        self.running_scores = self._trick_contract_scores()
        self.phase = LorumPhase.TRICK_COMPLETE
        LOGGER.debug(
            "Game %s: trick %s won by %s",
            self.game_id,
            [play.card.label for play in self.current_trick],
            winner,
        )
        return [{"ev": "TRICK_WON", "player": winner, "runningScores": list(self.running_scores)}]

    def continue_after_trick(self) -> List[Dict[str, object]]:
        if self.phase is not LorumPhase.TRICK_COMPLETE:
            raise IllegalAction("No completed trick to continue")
        if all(not hand for hand in self.hands):
            events = self.score_contract()
            events.extend(self.advance_deal())
            return events

        winner = self.last_trick_winner
        assert winner is not None
        self.current_trick = []
        self.current_player = winner
        self.last_trick_winner = None
        self.phase = LorumPhase.PLAYING
        return []

    def score_contract(self) -> List[Dict[str, object]]:
        scores = self._trick_contract_scores()
        return self._record_deal(scores)

    def _trick_contract_scores(self) -> List[int]:
        return contract_scores(
            self.current_contract,
            tricks_taken=self.tricks_taken,
            queens_taken=self.queens_taken,
            hearts_taken=self.hearts_taken,
            jack_of_clubs_taken_by=self.jack_of_clubs_taken_by,
            king_of_hearts_taken_by=self.king_of_hearts_taken_by,
        )

    # Lora (contract 7) -----------------------------------------------

    def can_play_lora_card(self, card: Card) -> bool:
        if self.lora_start_rank is None:
            return True
        pile = self.lora_layout[card.suit]
        if not pile:
            return card.rank == self.lora_start_rank
        return card.rank == next_rank(pile[-1].rank)

    def play_lora_card(self, player: int, card: Card) -> List[Dict[str, object]]:
        if self.phase is not LorumPhase.LORA_PLAYING:
            raise IllegalAction("Not in Lora state")
        self._require_turn(player)
        hand = self.hands[player]
        if card not in hand:
            raise IllegalAction("Card not in hand")
        if self.lora_start_rank is not None and not self.can_play_lora_card(card):
            if not self.lora_layout[card.suit]:
                raise IllegalAction("Must play starting rank for new suit")
            raise IllegalAction("Must play next card in sequence")

        if self.lora_start_rank is None:
            self.lora_start_rank = card.rank
        self.lora_layout[card.suit].append(card)
        hand.remove(card)
        events: List[Dict[str, object]] = [{"ev": "LORA_PLAY", "player": player, "card": card_payload(card)}]

        if not hand:
            events.extend(self.score_lora(player))
            events.extend(self.advance_deal())
        else:
            self.current_player = (player + 1) % PLAYER_COUNT
        return events

    def pass_lora(self, player: int) -> List[Dict[str, object]]:
        if self.phase is not LorumPhase.LORA_PLAYING:
            raise IllegalAction("Not in Lora state")
        self._require_turn(player)
        self.lora_passes[player] += 1
        self.current_player = (player + 1) % PLAYER_COUNT
        return [{"ev": "LORA_PASS", "player": player}]

    def score_lora(self, finisher: int) -> List[Dict[str, object]]:
        if self.hands[finisher]:
            raise InvariantViolation("Lora finisher still holds cards")
        scores = lora_scores([len(hand) for hand in self.hands], self.lora_passes, finisher)
        return self._record_deal(scores, passes=tuple(self.lora_passes))

    def _record_deal(self, scores: List[int], passes: Optional[tuple] = None) -> List[Dict[str, object]]:
        for seat, delta in enumerate(scores):
            self.scores[seat] += delta
        entry = ContractScore(
            deal=self.current_deal,
            contract=self.current_contract,
            scores=tuple(scores),
            total_scores=tuple(self.scores),
            passes=passes,
        )
        self.contract_scores.append(entry)
        LOGGER.info(
            "Game %s: deal %s (%s) scored %s, totals %s",
            self.game_id,
            self.current_deal,
            self.current_contract.title,
            scores,
            self.scores,
        )
        return [{"ev": "DEAL_SCORED", **entry.payload()}]

    # Entry point -----------------------------------------------------

    def apply_action(self, player: int, action: Union[ActionType, str], payload: Optional[Mapping[str, object]] = None) -> ActionResult:
        payload = payload or {}
        try:
            action = ActionType(action)
        except ValueError:
            return ActionResult.fail(f"Unknown action {action}")

        try:
            if action == ActionType.SELECT_CONTRACT:
                events = self.select_contract(player, payload.get("contractId"))
            elif action == ActionType.PLAY_LORUM_CARD:
                events = self.play_card(player, _card(payload.get("card")))
            elif action == ActionType.PLAY_LORA_CARD:
                events = self.play_lora_card(player, _card(payload.get("card")))
            elif action == ActionType.PASS_LORA:
                events = self.pass_lora(player)
            else:
                raise IllegalAction(f"Action {action.value} is not part of Lorum")
        except IllegalAction as exc:
            return ActionResult.fail(str(exc))
        except InvariantViolation as exc:
            LOGGER.error("Game %s: invariant violated on %s by player %s: %s", self.game_id, action.value, player, exc)
            return ActionResult.fail(f"Error: {exc}")

        return ActionResult.ok(events, needs_delay=self.phase is LorumPhase.TRICK_COMPLETE)

    # Public/Snapshot helpers -----------------------------------------

    def next_actor(self) -> Optional[int]:
        if self.phase is LorumPhase.CONTRACT_SELECTION:
            return self.contract_selector
        if self.phase in (LorumPhase.PLAYING, LorumPhase.LORA_PLAYING):
            return self.current_player
        return None

    def is_finished(self) -> bool:
        return self.phase is LorumPhase.FINISHED

    def legal_cards(self, player: int) -> List[Card]:
        hand = self.hands[player]
        if self.phase is LorumPhase.LORA_PLAYING:
            return [card for card in hand if self.can_play_lora_card(card)]
        return [card for card in hand if self.can_play_card(player, card)]

    def available_contracts(self) -> List[Contract]:
        if self.contract_mode is ContractMode.FIXED:
            return []
        return [contract for contract in Contract if not self.used_contracts[contract - 1]]

    def snapshot(self, player: int) -> Dict[str, object]:
        hand = list(self.hands[player]) if 0 <= player < PLAYER_COUNT else []
        payload: Dict[str, object] = {
            "gameId": self.game_id,
            "gameType": self.game_type.value,
            "players": [seat.payload() for seat in self.players],
            "playerIndex": player,
            "state": self.phase.value,
            "contractMode": self.contract_mode.value,
            "currentDeal": self.current_deal,
            "totalDeals": self.config.total_deals,
            "currentDealer": self.dealer,
            "currentContract": int(self.current_contract),
            "contractName": self.current_contract.title,
            "contractLocalName": self.current_contract.local_name,
            "contractSelector": self.contract_selector,
            "usedContracts": list(self.used_contracts),
            "currentPlayer": self.current_player,
            "hand": cards_payload(hand),
            "handSizes": [len(cards) for cards in self.hands],
            "currentTrick": [play.payload() for play in self.current_trick],
            "tricksTaken": list(self.tricks_taken),
            "queensTaken": list(self.queens_taken),
            "heartsTaken": list(self.hearts_taken),
            "hasJackOfClubs": self.jack_of_clubs_taken_by,
            "hasKingOfHearts": self.king_of_hearts_taken_by,
            "lastTrickWinner": self.last_trick_winner,
            "runningScores": list(self.running_scores),
            "loraLayout": {suit: cards_payload(pile) for suit, pile in self.lora_layout.items()},
            "loraStartRank": self.lora_start_rank,
            "loraPasses": list(self.lora_passes),
            "scores": list(self.scores),
            "contractScores": [entry.payload() for entry in self.contract_scores],
        }
        if self.next_actor() == player:
            if self.phase is LorumPhase.CONTRACT_SELECTION:
                payload["legalContracts"] = [int(contract) for contract in self.available_contracts()]
            else:
                payload["legal"] = cards_payload(self.legal_cards(player))
        return payload

    def _require_turn(self, player: int) -> None:
        if player != self.current_player:
            raise IllegalAction("Not your turn")


def _contract(raw: object) -> Contract:
    try:
        return Contract(int(raw))  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise IllegalAction("Invalid contract") from exc


def _card(raw: object) -> Card:
    try:
        return parse_card(raw)
    except ValueError as exc:
        raise IllegalAction(str(exc)) from exc
