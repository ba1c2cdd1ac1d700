"""Move-selection tiers for automated seats.

Four interchangeable strategies of increasing strength share one entry
point, :meth:`MoveStrategy.select_move`. Every strategy only considers
empty cells next to existing stones (or the center on an empty board) and
returns ``None`` when no such cell exists.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from enum import StrEnum

from explosive_gomoku.oracle import MoveOracle, Scores
from explosive_gomoku.rules import (
    BOARD_SIZE,
    DIRECTIONS,
    Board,
    Move,
    Stone,
    copy_board,
    detect_completed_lines,
    in_bounds,
)

logger = logging.getLogger(__name__)

CENTER = Move(BOARD_SIZE // 2, BOARD_SIZE // 2)

# Heuristic tier weights
HEURISTIC_EXPLOSION_PENALTY = 1000
HEURISTIC_THREE_BONUS = 50
HEURISTIC_TWO_BONUS = 10
HEURISTIC_JITTER = 5.0

# Strong tier weights
STRONG_EXPLOSION_PENALTY = 10000
STRONG_RUN_SCORES = {2: 10, 3: -50, 4: -200}
STRONG_LIBERTY_BONUS = 5
STRONG_JITTER = 2.0


class StrategyKind(StrEnum):
    RANDOM = "random"
    HEURISTIC = "heuristic"
    STRONG = "strong"
    ORACLE = "oracle"


def parse_strategy(value: str | None) -> StrategyKind:
    """Map a configuration value onto a tier, defaulting to random."""
    try:
        return StrategyKind(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown strategy %r, falling back to %s", value, StrategyKind.RANDOM)
        return StrategyKind.RANDOM


def candidate_moves(board: Board, radius: int = 1) -> list[Move]:
    """Empty cells within ``radius`` of any stone, in row-major order."""
    seen: set[Move] = set()
    moves: list[Move] = []
    occupied = False

    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            if board[r][c] == Stone.EMPTY:
                continue
            occupied = True
            for dr in range(-radius, radius + 1):
                for dc in range(-radius, radius + 1):
                    nr, nc = r + dr, c + dc
                    if not in_bounds(nr, nc) or board[nr][nc] != Stone.EMPTY:
                        continue
                    move = Move(nr, nc)
                    if move not in seen:
                        seen.add(move)
                        moves.append(move)

    if not occupied:
        return [CENTER]
    return moves


class MoveStrategy(ABC):
    kind: StrategyKind

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def select_move(self, board: Board, color: Stone, scores: Scores | None = None) -> Move | None:
        """Return an empty cell for ``color`` to play, or None if there is none."""


class RandomStrategy(MoveStrategy):
    kind = StrategyKind.RANDOM

    def select_move(self, board: Board, color: Stone, scores: Scores | None = None) -> Move | None:
        moves = candidate_moves(board)
        if not moves:
            return None
        return self.rng.choice(moves)


class HeuristicStrategy(MoveStrategy):
    kind = StrategyKind.HEURISTIC

    def select_move(self, board: Board, color: Stone, scores: Scores | None = None) -> Move | None:
        best_move = None
        best_score = float("-inf")

        for move in candidate_moves(board):
            trial = copy_board(board)
            trial[move.row][move.col] = color
            score = self.evaluate(trial, move, color)
            if score > best_score:
                best_score = score
                best_move = move

        return best_move

    def evaluate(self, board: Board, move: Move, color: Stone) -> float:
        exploded = detect_completed_lines(board, move.row, move.col, color)
        if exploded:
            return -HEURISTIC_EXPLOSION_PENALTY * len(exploded)

        score = 0.0
        for dr, dc in DIRECTIONS:
            own = 0
            open_ends = 0
            for sign in (1, -1):
                for step in range(1, 5):
                    r, c = move.row + dr * step * sign, move.col + dc * step * sign
                    if not in_bounds(r, c):
                        break
                    if board[r][c] == color:
                        own += 1
                    elif board[r][c] == Stone.EMPTY:
                        open_ends += 1
                        break
                    else:
                        break

            if open_ends > 0:
                if own == 3:
                    score += HEURISTIC_THREE_BONUS
                elif own == 2:
                    score += HEURISTIC_TWO_BONUS

        return score + self.rng.uniform(0, HEURISTIC_JITTER)


class StrongStrategy(MoveStrategy):
    """Avoids building long runs, since a run of five explodes in the mover's face."""

    kind = StrategyKind.STRONG

    def select_move(self, board: Board, color: Stone, scores: Scores | None = None) -> Move | None:
        ranked = self.rank_moves(board, color)
        if not ranked:
            return None
        return ranked[0][0]

    def rank_moves(self, board: Board, color: Stone) -> list[tuple[Move, float]]:
        candidates = []
        for move in candidate_moves(board):
            trial = copy_board(board)
            trial[move.row][move.col] = color
            candidates.append((move, self.evaluate(trial, move, color)))

        candidates.sort(key=lambda item: item[1], reverse=True)
        return candidates

    def evaluate(self, board: Board, move: Move, color: Stone) -> float:
        exploded = detect_completed_lines(board, move.row, move.col, color)
        if exploded:
            return -STRONG_EXPLOSION_PENALTY * len(exploded)

        score = 0.0
        for dr, dc in DIRECTIONS:
            run = 1
            for sign in (1, -1):
                r, c = move.row + dr * sign, move.col + dc * sign
                while in_bounds(r, c) and board[r][c] == color:
                    run += 1
                    r += dr * sign
                    c += dc * sign
            score += STRONG_RUN_SCORES.get(run, 0)

        liberties = 0
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                r, c = move.row + dr, move.col + dc
                if (dr or dc) and in_bounds(r, c) and board[r][c] == Stone.EMPTY:
                    liberties += 1
        score += liberties * STRONG_LIBERTY_BONUS

        return score + self.rng.uniform(0, STRONG_JITTER)


class OracleStrategy(MoveStrategy):
    """Delegates to an external oracle, falling back to :class:`StrongStrategy`."""

    kind = StrategyKind.ORACLE

    def __init__(self, oracle: MoveOracle | None, rng: random.Random | None = None):
        super().__init__(rng)
        self.oracle = oracle
        self.fallback = StrongStrategy(self.rng)

    def select_move(self, board: Board, color: Stone, scores: Scores | None = None) -> Move | None:
        move = self._ask_oracle(board, color, scores or Scores(0, 0))
        if move is not None:
            return move
        return self.fallback.select_move(board, color, scores)

    def _ask_oracle(self, board: Board, color: Stone, scores: Scores) -> Move | None:
        if self.oracle is None:
            return None
        try:
            move = self.oracle.propose_move(copy_board(board), color, scores)
        except Exception:
            logger.warning("Oracle call failed, using local strategy", exc_info=True)
            return None

        if move is None:
            logger.info("Oracle returned no move, using local strategy")
            return None
        if (
            not isinstance(move, (tuple, list))
            or len(move) != 2
            or not all(isinstance(v, int) and not isinstance(v, bool) for v in move)
        ):
            logger.warning("Oracle reply %r is not a cell, using local strategy", move)
            return None
        row, col = move
        if not in_bounds(row, col) or board[row][col] != Stone.EMPTY:
            logger.warning("Oracle proposed illegal cell (%s, %s), using local strategy", row, col)
            return None
        return Move(row, col)


def create_strategy(
    kind: StrategyKind | str,
    oracle: MoveOracle | None = None,
    rng: random.Random | None = None,
) -> MoveStrategy:
    kind = parse_strategy(kind)
    if kind is StrategyKind.HEURISTIC:
        return HeuristicStrategy(rng)
    if kind is StrategyKind.STRONG:
        return StrongStrategy(rng)
    if kind is StrategyKind.ORACLE:
        return OracleStrategy(oracle, rng)
    return RandomStrategy(rng)
