"""Game logic: turn order, seat/color rotation, scoring, and termination."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable

from explosive_gomoku.rules import (
    Move,
    Stone,
    board_is_full,
    detect_completed_lines,
    in_bounds,
    new_board,
    opponent,
    tally_stones,
)

logger = logging.getLogger(__name__)

SWAP_INTERVAL = 30  # turns between seat/color flips
DOMINANT_SCORE = 200
DOMINANT_MARGIN = 100


class Seat(StrEnum):
    SEAT1 = "seat1"
    SEAT2 = "seat2"

    @property
    def other(self) -> Seat:
        return Seat.SEAT2 if self is Seat.SEAT1 else Seat.SEAT1


class Phase(StrEnum):
    AWAITING_MOVE = "awaiting_move"
    APPLYING_AUTOMATED_MOVE = "applying_automated_move"
    TERMINAL = "terminal"


class Winner(StrEnum):
    SEAT1 = "seat1"
    SEAT2 = "seat2"
    TIE = "tie"


class ReasonCode(StrEnum):
    DOMINANT_WIN = "dominant_win"
    HIGHER_SCORE = "higher_score"
    TIE_BROKEN_BY_STONE_COUNT = "tie_broken_by_stone_count"
    FULL_TIE = "full_tie"


@dataclass(frozen=True)
class Verdict:
    winner: Winner
    reason: ReasonCode


@dataclass(frozen=True)
class MoveOutcome:
    move: Move
    color: Stone
    exploded: frozenset[Move]
    scored_seat: Seat | None
    swapped: bool
    verdict: Verdict | None


class GameState:
    def __init__(self, automated_seats: Iterable[Seat] = ()):
        self.board = new_board()
        self.scores: dict[Seat, int] = {Seat.SEAT1: 0, Seat.SEAT2: 0}
        self.turn_count: int = 0
        self.current_turn: Stone = Stone.BLACK
        self.phase: Phase = Phase.AWAITING_MOVE
        self.verdict: Verdict | None = None
        self.last_move: Move | None = None
        self.exploded: frozenset[Move] = frozenset()
        self.swap_notice: bool = False
        self.automated_seats: frozenset[Seat] = frozenset(automated_seats)
        self._update_phase()

    @property
    def is_game_over(self) -> bool:
        return self.phase is Phase.TERMINAL

    @property
    def is_swapped(self) -> bool:
        return (self.turn_count // SWAP_INTERVAL) % 2 == 1

    @property
    def moves_until_swap(self) -> int:
        return SWAP_INTERVAL - self.turn_count % SWAP_INTERVAL

    @property
    def seat_to_move(self) -> Seat:
        return self.seat_for_color(self.current_turn)

    def color_for_seat(self, seat: Seat) -> Stone:
        starting = Stone.BLACK if seat is Seat.SEAT1 else Stone.WHITE
        return opponent(starting) if self.is_swapped else starting

    def seat_for_color(self, color: Stone) -> Seat:
        return Seat.SEAT1 if self.color_for_seat(Seat.SEAT1) == color else Seat.SEAT2

    def stone_counts(self) -> dict[Seat, int]:
        tally = tally_stones(self.board)
        return {seat: tally[self.color_for_seat(seat)] for seat in Seat}

    def set_automated_seats(self, seats: Iterable[Seat]) -> None:
        self.automated_seats = frozenset(seats)
        self._update_phase()

    def validate_move(self, row: int, col: int, color: Stone, automated: bool = False) -> str | None:
        """Return an error message if the move is invalid, or None if valid."""
        if self.is_game_over:
            return "Game is already over"
        if self.phase is Phase.APPLYING_AUTOMATED_MOVE and not automated:
            return "Automated move pending"
        if automated and self.phase is not Phase.APPLYING_AUTOMATED_MOVE:
            return "No automated move pending"
        if color != self.current_turn:
            return "Not your turn"
        if not in_bounds(row, col):
            return "Coordinates out of bounds"
        if self.board[row][col] != Stone.EMPTY:
            return "Cell is already occupied"
        return None

    def apply_move(self, row: int, col: int, color: Stone, automated: bool = False) -> MoveOutcome | None:
        """Place a stone and resolve explosions, termination and rotation.

        Returns None, leaving the state untouched, when the move is illegal.
        """
        error = self.validate_move(row, col, color, automated)
        if error:
            logger.debug("Rejected move (%d, %d) for %s: %s", row, col, color.name, error)
            return None

        move = Move(row, col)
        self.board[row][col] = color
        self.last_move = move

        scored_seat = None
        stones = detect_completed_lines(self.board, row, col, color)
        if stones:
            # Mapping is read before this turn's flip
            scored_seat = self.seat_for_color(color).other
            self.scores[scored_seat] += len(stones)
            for r, c in stones:
                self.board[r][c] = Stone.EMPTY
            self.exploded = stones
            logger.info(
                "%s completed a line of %d stones; %s scores", color.name, len(stones), scored_seat
            )

        verdict = self._dominant_verdict()
        if verdict is None and board_is_full(self.board):
            verdict = self._full_board_verdict()
        if verdict is not None:
            self._finish(verdict)
            return MoveOutcome(move, color, stones or frozenset(), scored_seat, False, verdict)

        self.turn_count += 1
        swapped = self.turn_count % SWAP_INTERVAL == 0
        if swapped:
            self.swap_notice = True
            logger.info("Sides swapped at turn %d", self.turn_count)

        self.current_turn = opponent(color)
        self._update_phase()
        return MoveOutcome(move, color, stones or frozenset(), scored_seat, swapped, None)

    def declare_exhausted(self) -> None:
        """End the game as a tie when no strategy can find a move."""
        if not self.is_game_over:
            self._finish(Verdict(Winner.TIE, ReasonCode.FULL_TIE))

    def clear_exploded(self) -> None:
        self.exploded = frozenset()

    def clear_swap_notice(self) -> None:
        self.swap_notice = False

    def _dominant_verdict(self) -> Verdict | None:
        for seat in Seat:
            own, other = self.scores[seat], self.scores[seat.other]
            if own >= DOMINANT_SCORE and own - other >= DOMINANT_MARGIN:
                return Verdict(Winner(seat.value), ReasonCode.DOMINANT_WIN)
        return None

    def _full_board_verdict(self) -> Verdict:
        s1, s2 = self.scores[Seat.SEAT1], self.scores[Seat.SEAT2]
        if s1 != s2:
            leader = Seat.SEAT1 if s1 > s2 else Seat.SEAT2
            return Verdict(Winner(leader.value), ReasonCode.HIGHER_SCORE)

        # Equal scores: the seat left holding more stones is penalized
        counts = self.stone_counts()
        if counts[Seat.SEAT1] != counts[Seat.SEAT2]:
            fewer = Seat.SEAT1 if counts[Seat.SEAT1] < counts[Seat.SEAT2] else Seat.SEAT2
            return Verdict(Winner(fewer.value), ReasonCode.TIE_BROKEN_BY_STONE_COUNT)
        return Verdict(Winner.TIE, ReasonCode.FULL_TIE)

    def _finish(self, verdict: Verdict) -> None:
        self.verdict = verdict
        self.phase = Phase.TERMINAL
        logger.info("Game over: %s (%s)", verdict.winner, verdict.reason)

    def _update_phase(self) -> None:
        if self.is_game_over:
            return
        if self.seat_to_move in self.automated_seats:
            self.phase = Phase.APPLYING_AUTOMATED_MOVE
        else:
            self.phase = Phase.AWAITING_MOVE
