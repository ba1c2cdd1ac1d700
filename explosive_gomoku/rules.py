"""Rule engine: board representation, line detection, and stone tallies."""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple

BOARD_SIZE = 15
LINE_LENGTH = 5

# Four directions: horizontal, vertical, diagonal ↘, diagonal ↗
DIRECTIONS = [
    (0, 1),
    (1, 0),
    (1, 1),
    (-1, 1),
]


class Stone(IntEnum):
    EMPTY = 0
    BLACK = 1
    WHITE = 2


class Move(NamedTuple):
    row: int
    col: int


Board = list[list[int]]


def new_board() -> Board:
    return [[Stone.EMPTY] * BOARD_SIZE for _ in range(BOARD_SIZE)]


def copy_board(board: Board) -> Board:
    return [list(row) for row in board]


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


def opponent(color: Stone) -> Stone:
    return Stone.WHITE if color == Stone.BLACK else Stone.BLACK


def detect_completed_lines(board: Board, row: int, col: int, color: Stone) -> frozenset[Move] | None:
    """Return every stone on a line of five or more through (row, col).

    Lines longer than five are returned whole. A stone sitting on two
    qualifying lines appears once. Returns None when no line qualifies.
    """
    removal: set[Move] = set()

    for dr, dc in DIRECTIONS:
        line = [Move(row, col)]

        for sign in (1, -1):
            r, c = row + dr * sign, col + dc * sign
            while in_bounds(r, c) and board[r][c] == color:
                line.append(Move(r, c))
                r += dr * sign
                c += dc * sign

        if len(line) >= LINE_LENGTH:
            removal.update(line)

    if not removal:
        return None
    return frozenset(removal)


def board_is_full(board: Board) -> bool:
    return all(cell != Stone.EMPTY for row in board for cell in row)


def tally_stones(board: Board) -> dict[Stone, int]:
    counts = {Stone.BLACK: 0, Stone.WHITE: 0}
    for row in board:
        for cell in row:
            if cell != Stone.EMPTY:
                counts[Stone(cell)] += 1
    return counts
