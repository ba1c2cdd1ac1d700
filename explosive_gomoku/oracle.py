"""External move oracle: the contract and an HTTP adapter."""

from __future__ import annotations

import logging
from typing import NamedTuple, Protocol

import requests
from pydantic import ValidationError

from explosive_gomoku.models import OracleReply, OracleRequest, OracleScores
from explosive_gomoku.rules import Board, Move, Stone

logger = logging.getLogger(__name__)


class Scores(NamedTuple):
    own: int
    opponent: int


class MoveOracle(Protocol):
    def propose_move(self, board: Board, color: Stone, scores: Scores) -> Move | None:
        """Recommend a cell for ``color``, or None if there is no recommendation."""
        ...


class HttpMoveOracle:
    """Asks a remote service for a move by POSTing the board as JSON.

    The reply is trusted only as far as its shape: legality of the cell is
    checked by the caller. Any transport or decoding problem yields None.
    """

    def __init__(self, url: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def propose_move(self, board: Board, color: Stone, scores: Scores) -> Move | None:
        payload = OracleRequest(
            board=[[int(cell) for cell in row] for row in board],
            color=int(color),
            scores=OracleScores(own=scores.own, opponent=scores.opponent),
        )
        try:
            resp = self.session.post(self.url, json=payload.model_dump(), timeout=self.timeout)
            resp.raise_for_status()
            reply = OracleReply.model_validate(resp.json())
        except requests.RequestException as exc:
            logger.warning("Oracle request to %s failed: %s", self.url, exc)
            return None
        except (ValueError, ValidationError) as exc:
            logger.warning("Oracle reply could not be decoded: %s", exc)
            return None

        if reply.reasoning:
            logger.debug("Oracle reasoning: %s", reply.reasoning)
        return Move(reply.row, reply.col)
