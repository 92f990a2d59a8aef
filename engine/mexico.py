from __future__ import annotations

import logging
import random
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .cards import SUITS, Card, build_deck, card_payload, cards_payload, deal, parse_card
from .models import (
    BETL_OVERRIDE_BID,
    BETL,
    BETL_POINTS,
    MAX_BID,
    MEXICO,
    MIN_BID,
    PASS,
    ActionResult,
    ActionType,
    Bid,
    BidKind,
    GameConfig,
    GameType,
    IllegalAction,
    InvariantViolation,
    MexicoPhase,
    PlayerSeat,
    RoundRecord,
    TrickPlay,
)

LOGGER = logging.getLogger("mexico_engine")

PLAYER_COUNT = 3
HAND_SIZE = 10
TALON_SIZE = 2
DEAL_PACKET = 5

# MexicoGame keeps one table in memory. No networking lives here, only
# bidding, talon exchange, trick rules and scoring.


def determine_winner(trick: Sequence[TrickPlay], trump: Optional[str]) -> int:
    """Return the seat that wins a full trick: trump beats everything, else highest of the led suit."""
    if not trick:
        raise InvariantViolation("Cannot determine winner of an empty trick")
    winning = trick[0]
    for play in trick[1:]:
        card, best = play.card, winning.card
        if trump and card.suit == trump and best.suit != trump:
            winning = play
        elif card.suit == best.suit and card.value > best.value:
            winning = play
    return winning.player


def score_round(winning_bid: Bid, caller: int, tricks_taken: Sequence[int]) -> List[int]:
    scores = [0] * len(tricks_taken)
    made = tricks_taken[caller]
    if winning_bid.is_betl:
        if made == 0:
            scores[caller] = BETL_POINTS
            return scores
        scores[caller] = -BETL_POINTS
    else:
        needed = winning_bid.threshold
        scores[caller] = made if made >= needed else -needed

    # Defenders always keep their own tricks unless a betl was made.
    for seat, tricks in enumerate(tricks_taken):
        if seat != caller:
            scores[seat] = tricks
    return scores


class MexicoGame:
    """Three-player Mexico table: bidding, talon, trump and ten tricks per round."""

    game_type = GameType.MEXICO
    seats_required = PLAYER_COUNT

    def __init__(self, game_id: str, config: Optional[GameConfig] = None, seed: Optional[int] = None) -> None:
        self.game_id = game_id
        self.config = config or GameConfig()
        self.rng = random.Random(seed)
        self.players: List[PlayerSeat] = []
        self.phase = MexicoPhase.WAITING
        self.dealer = 0
        self.current_player = 0
        self.hands: List[List[Card]] = [[] for _ in range(PLAYER_COUNT)]
        self.talon: List[Card] = []
        self.discards: List[Card] = []
        self.bids: List[Optional[Bid]] = [None] * PLAYER_COUNT
        self.bid_order: List[int] = [-1] * PLAYER_COUNT
        self.bid_counter = 0
        self.passed: List[bool] = [False] * PLAYER_COUNT
        self.bid_winner: Optional[int] = None
        self.is_betl = False
        self.trump: Optional[str] = None
        self.current_trick: List[TrickPlay] = []
        self.tricks_taken: List[int] = [0] * PLAYER_COUNT
        self.last_trick_winner: Optional[int] = None
        self.scores: List[int] = [0] * PLAYER_COUNT
        self.trick_history: List[Tuple[Tuple[TrickPlay, ...], int]] = []
        self.round_history: List[RoundRecord] = []

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
            self.start_round()
        return seat

    def is_full(self) -> bool:
        return len(self.players) >= PLAYER_COUNT

    def set_connected(self, seat_idx: int, connected: bool) -> None:
        if 0 <= seat_idx < len(self.players):
            self.players[seat_idx].connected = connected

    def first_to_act(self) -> int:
        return (self.dealer + 1) % PLAYER_COUNT

    # Round lifecycle -------------------------------------------------

    def start_round(self) -> None:
        if not self.is_full():
            raise IllegalAction("Not enough players to start a round")

        deck = build_deck(rng=self.rng)
        hands: List[List[Card]] = [[] for _ in range(PLAYER_COUNT)]
        for _ in range(DEAL_PACKET):
            for hand in hands:
                hand.extend(deal(deck, 1))
        talon = deal(deck, TALON_SIZE)
        for _ in range(DEAL_PACKET):
            for hand in hands:
                hand.extend(deal(deck, 1))

        self.hands = hands
        self.talon = talon
        self.discards = []
        self.bids = [None] * PLAYER_COUNT
        self.bid_order = [-1] * PLAYER_COUNT
        self.bid_counter = 0
        self.passed = [False] * PLAYER_COUNT
        self.bid_winner = None
        self.is_betl = False
        self.trump = None
        self.current_trick = []
        self.tricks_taken = [0] * PLAYER_COUNT
        self.last_trick_winner = None
        self.trick_history = []
        self.phase = MexicoPhase.BIDDING
        self.current_player = self.first_to_act()
        LOGGER.info("Game %s: round dealt, dealer=%s first=%s", self.game_id, self.dealer, self.current_player)

    def reset(self) -> None:
        self.scores = [0] * PLAYER_COUNT
        self.round_history = []
        self.dealer = 0
        self.start_round()

    # Bidding ---------------------------------------------------------

    def is_first_bid(self) -> bool:
        return all(bid is None for bid in self.bids)

    def highest_numeric_bid(self) -> Optional[int]:
        ranks = [bid.numeric_rank for bid in self.bids if bid is not None and bid.numeric_rank is not None]
        return max(ranks) if ranks else None

    def has_betl_on_table(self) -> bool:
        return any(bid is not None and bid.is_betl for bid in self.bids)

    @property
    def winning_bid(self) -> Optional[Bid]:
        if self.bid_winner is None:
            return None
        return self.bids[self.bid_winner]

    def bid(self, player: int, raw_bid: Union[Bid, str, int, None]) -> List[Dict[str, object]]:
        bid = raw_bid if isinstance(raw_bid, Bid) else Bid.parse(raw_bid)
        self._require_phase(MexicoPhase.BIDDING, "Not in bidding phase")
        self._require_turn(player)
        if self.passed[player]:
            raise IllegalAction("Already passed")
        self._check_bid(player, bid)

        self.bids[player] = bid
        self.bid_order[player] = self.bid_counter
        self.bid_counter += 1
        if bid.is_pass:
            self.passed[player] = True
        events: List[Dict[str, object]] = [{"ev": "BID", "player": player, "bid": bid.wire()}]

        if self.passed.count(True) == PLAYER_COUNT - 1 or bid.is_mexico:
            events.extend(self._resolve_bidding())
        else:
            self.current_player = self._next_bidder(player)
        return events

    def _check_bid(self, player: int, bid: Bid) -> None:
        first_bid = self.is_first_bid()
        highest = self.highest_numeric_bid()

        if bid.is_pass:
            if first_bid and player == self.first_to_act():
                raise IllegalAction("First player cannot pass - must bid 5 or higher")
            return

        if bid.is_betl:
            if highest is not None and highest >= BETL_OVERRIDE_BID:
                raise IllegalAction("Betl can only be bid if no one has bid 7 or higher")
            return

        rank = bid.numeric_rank
        assert rank is not None
        if first_bid:
            if rank < MIN_BID:
                raise IllegalAction("First bid must be at least 5")
            return
        if rank == MIN_BID:
            raise IllegalAction("Cannot bid 5 after the first bid - must bid 6 or higher")
        if self.has_betl_on_table() and rank < BETL_OVERRIDE_BID:
            raise IllegalAction("Must bid 7 or higher to outbid Betl")
        if highest is not None and rank <= highest:
            raise IllegalAction("Bid must be higher than current bid")

    def legal_bids(self, player: int) -> List[Bid]:
        if self.phase is not MexicoPhase.BIDDING or player != self.current_player or self.passed[player]:
            return []
        options = [PASS, BETL, MEXICO] + [Bid(BidKind.NUMERIC, value) for value in range(MIN_BID, MAX_BID + 1)]
        legal: List[Bid] = []
        for option in options:
            try:
                self._check_bid(player, option)
            except IllegalAction:
                continue
            legal.append(option)
        return legal

    def _next_bidder(self, player: int) -> int:
        for offset in range(1, PLAYER_COUNT + 1):
            candidate = (player + offset) % PLAYER_COUNT
            if not self.passed[candidate]:
                return candidate
        raise InvariantViolation("No player left to bid")

    def _resolve_bidding(self) -> List[Dict[str, object]]:
        live = [(seat, bid) for seat, bid in enumerate(self.bids) if bid is not None and not bid.is_pass]
        if not live:
            raise InvariantViolation("Bidding ended without a live bid")

        # Highest ranked bid wins; on equal rank the earlier bid stands.
        winner, winning_bid = max(live, key=lambda item: (item[1].sort_key(), -self.bid_order[item[0]]))
        self.bid_winner = winner
        self.is_betl = winning_bid.is_betl
        LOGGER.debug("Game %s: bidding won by %s with %s", self.game_id, winner, winning_bid.wire())

        events: List[Dict[str, object]] = [{"ev": "BIDDING_WON", "player": winner, "bid": winning_bid.wire()}]
        if winning_bid.is_betl or winning_bid.is_mexico:
            self.trump = None
            self._start_play()
        else:
            self.phase = MexicoPhase.TALON_REVEAL
            self.current_player = winner
        return events

    # Talon & trump ---------------------------------------------------

    def take_talon(self, player: int, discards: Sequence[Card]) -> List[Dict[str, object]]:
        self._require_phase(MexicoPhase.TALON_REVEAL, "Not in talon phase")
        if player != self.bid_winner:
            raise IllegalAction("Only bid winner can take talon")
        chosen = list(discards)
        if len(chosen) != TALON_SIZE:
            raise IllegalAction("Must discard exactly 2 cards")
        if chosen[0] == chosen[1]:
            raise IllegalAction("Must discard two different cards")

        pool = self.hands[player] + self.talon
        for card in chosen:
            if card not in pool:
                raise IllegalAction("Invalid discard - card not in hand")

        new_hand = [card for card in pool if card not in chosen]
        if len(new_hand) != HAND_SIZE:
            LOGGER.error(
                "Game %s: player %s would hold %s cards after talon, expected %s",
                self.game_id,
                player,
                len(new_hand),
                HAND_SIZE,
            )
            raise InvariantViolation("Incorrect number of cards after discard")

        self.hands[player] = new_hand
        self.discards = chosen
        self.phase = MexicoPhase.TRUMP_SELECTION
        return [{"ev": "TALON_TAKEN", "player": player}]

    def select_trump(self, player: int, trump: object) -> List[Dict[str, object]]:
        self._require_phase(MexicoPhase.TRUMP_SELECTION, "Not in trump selection phase")
        if player != self.bid_winner:
            raise IllegalAction("Only bid winner can select trump")
        suit = trump.strip().lower() if isinstance(trump, str) else None
        if suit not in SUITS:
            raise IllegalAction("Invalid trump suit")

        self.trump = suit
        self._start_play()
        return [{"ev": "TRUMP_SELECTED", "player": player, "trump": suit}]

    def _start_play(self) -> None:
        self.phase = MexicoPhase.PLAYING
        self.current_player = self.first_to_act()
        self.current_trick = []
        self.tricks_taken = [0] * PLAYER_COUNT
        self.last_trick_winner = None

    # Trick play ------------------------------------------------------

    def can_play_card(self, player: int, card: Card) -> bool:
        if not self.current_trick:
            return True
        led = self.current_trick[0].card.suit
        if card.suit == led:
            return True
        hand = self.hands[player]
        if any(held.suit == led for held in hand):
            return False
        if self.trump:
            if card.suit == self.trump:
                return True
            if any(held.suit == self.trump for held in hand):
                return False
        return True

    def legal_cards(self, player: int) -> List[Card]:
        return [card for card in self.hands[player] if self.can_play_card(player, card)]

    def play_card(self, player: int, card: Card) -> List[Dict[str, object]]:
        self._require_phase(MexicoPhase.PLAYING, "Not in playing phase")
        self._require_turn(player)
        hand = self.hands[player]
        if card not in hand:
            raise IllegalAction("Card not in hand")
        if not self.can_play_card(player, card):
            raise IllegalAction("Cannot play this card (must follow suit or play trump)")

        hand.remove(card)
        self.current_trick.append(TrickPlay(player, card))
        events: List[Dict[str, object]] = [{"ev": "PLAY", "player": player, "card": card_payload(card)}]

        if len(self.current_trick) == PLAYER_COUNT:
            winner = determine_winner(self.current_trick, self.trump)
            LOGGER.debug(
                "Game %s: trick %s won by %s (trump=%s)",
                self.game_id,
                [play.card.label for play in self.current_trick],
                winner,
                self.trump,
            )
            self.tricks_taken[winner] += 1
            self.trick_history.append((tuple(self.current_trick), winner))
            self.last_trick_winner = winner
            self.phase = MexicoPhase.TRICK_COMPLETE
            events.append({"ev": "TRICK_WON", "player": winner})
        else:
            self.current_player = (player + 1) % PLAYER_COUNT
        return events

    def continue_after_trick(self) -> List[Dict[str, object]]:
        self._require_phase(MexicoPhase.TRICK_COMPLETE, "No completed trick to continue")
        if all(not hand for hand in self.hands):
            return self.end_round()

        winner = self.last_trick_winner
        assert winner is not None
        self.phase = MexicoPhase.PLAYING
        self.current_trick = []
        self.current_player = winner
        self.last_trick_winner = None
        return []

    def end_round(self) -> List[Dict[str, object]]:
        if any(self.hands):
            raise IllegalAction("Round still in progress")
        winning_bid = self.winning_bid
        if self.bid_winner is None or winning_bid is None:
            raise InvariantViolation("Round ended without a bid winner")

        round_scores = score_round(winning_bid, self.bid_winner, self.tricks_taken)
        for seat, delta in enumerate(round_scores):
            self.scores[seat] += delta

        record = RoundRecord(
            dealer=self.dealer,
            bids=tuple(bid.wire() if bid else None for bid in self.bids),
            bid_winner=self.bid_winner,
            trump=self.trump,
            is_betl=self.is_betl,
            tricks_taken=tuple(self.tricks_taken),
            round_scores=tuple(round_scores),
            total_scores=tuple(self.scores),
        )
        self.round_history.append(record)
        LOGGER.info("Game %s: round scored %s, totals %s", self.game_id, round_scores, self.scores)
        events: List[Dict[str, object]] = [{"ev": "ROUND_SCORED", **record.payload()}]

        if max(self.scores) >= self.config.target_score:
            self.phase = MexicoPhase.FINISHED
            self.current_trick = []
            events.append({"ev": "GAME_OVER", "scores": list(self.scores)})
            return events

        self.dealer = (self.dealer + 1) % PLAYER_COUNT
        self.start_round()
        return events

    # Entry point -----------------------------------------------------

    def apply_action(self, player: int, action: Union[ActionType, str], payload: Optional[Mapping[str, object]] = None) -> ActionResult:
        payload = payload or {}
        try:
            action = ActionType(action)
        except ValueError:
            return ActionResult.fail(f"Unknown action {action}")

        try:
            if action == ActionType.BID:
                events = self.bid(player, payload.get("bid"))  # type: ignore[arg-type]
            elif action == ActionType.TAKE_TALON:
                raw = payload.get("discards")
                if not isinstance(raw, (list, tuple)):
                    raise IllegalAction("Must discard exactly 2 cards")
                events = self.take_talon(player, [_card(item) for item in raw])
            elif action == ActionType.SELECT_TRUMP:
                events = self.select_trump(player, payload.get("trump"))
            elif action == ActionType.PLAY_CARD:
                events = self.play_card(player, _card(payload.get("card")))
            else:
                raise IllegalAction(f"Action {action.value} is not part of Mexico")
        except IllegalAction as exc:
            return ActionResult.fail(str(exc))
        except InvariantViolation as exc:
            LOGGER.error("Game %s: invariant violated on %s by player %s: %s", self.game_id, action.value, player, exc)
            return ActionResult.fail(f"Error: {exc}")

        return ActionResult.ok(events, needs_delay=self.phase is MexicoPhase.TRICK_COMPLETE)

    # Public/Snapshot helpers -----------------------------------------

    def next_actor(self) -> Optional[int]:
        if self.phase in (MexicoPhase.BIDDING, MexicoPhase.PLAYING):
            return self.current_player
        if self.phase in (MexicoPhase.TALON_REVEAL, MexicoPhase.TRUMP_SELECTION):
            return self.bid_winner
        return None

    def is_finished(self) -> bool:
        return self.phase is MexicoPhase.FINISHED

    def snapshot(self, player: int) -> Dict[str, object]:
        is_winner = player == self.bid_winner
        hand = list(self.hands[player]) if 0 <= player < PLAYER_COUNT else []
        if self.phase is MexicoPhase.TALON_REVEAL and is_winner:
            hand.extend(self.talon)
        talon_visible = is_winner and self.phase in (MexicoPhase.TALON_REVEAL, MexicoPhase.TRUMP_SELECTION)

        payload: Dict[str, object] = {
            "gameId": self.game_id,
            "gameType": self.game_type.value,
            "players": [seat.payload() for seat in self.players],
            "playerIndex": player,
            "state": self.phase.value,
            "currentDealer": self.dealer,
            "currentPlayer": self.current_player,
            "hand": cards_payload(hand),
            "handSizes": [len(cards) for cards in self.hands],
            "talon": cards_payload(self.talon) if talon_visible else None,
            "bids": [bid.wire() if bid else None for bid in self.bids],
            "passedPlayers": list(self.passed),
            "bidWinner": self.bid_winner,
            "isBetl": self.is_betl,
            "trump": self.trump,
            "currentTrick": [play.payload() for play in self.current_trick],
            "tricksTaken": list(self.tricks_taken),
            "scores": list(self.scores),
            "targetScore": self.config.target_score,
            "lastTrickWinner": self.last_trick_winner,
            "trickHistory": [
                {"trick": [play.payload() for play in plays], "winner": winner}
                for plays, winner in self.trick_history
            ],
            "gameHistory": [record.payload() for record in self.round_history],
        }
        if self.phase is MexicoPhase.PLAYING and self.current_player == player:
            payload["legal"] = cards_payload(self.legal_cards(player))
        elif self.phase is MexicoPhase.BIDDING and self.current_player == player:
            payload["legalBids"] = [bid.wire() for bid in self.legal_bids(player)]
        return payload

    # Guards ----------------------------------------------------------

    def _require_phase(self, phase: MexicoPhase, message: str) -> None:
        if self.phase is not phase:
            raise IllegalAction(message)

    def _require_turn(self, player: int) -> None:
        if player != self.current_player:
            raise IllegalAction("Not your turn")


def _card(raw: object) -> Card:
    try:
        return parse_card(raw)
    except ValueError as exc:
        raise IllegalAction(str(exc)) from exc
