"""Tests for the HTTP move oracle adapter."""

from unittest.mock import MagicMock

import pytest
import requests

from explosive_gomoku.oracle import HttpMoveOracle, Scores
from explosive_gomoku.rules import Move, Stone, new_board


def make_oracle(payload=None, *, post_error=None, status_error=None, json_error=None):
    resp = MagicMock()
    resp.json.return_value = payload
    if json_error is not None:
        resp.json.side_effect = json_error
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error

    http = MagicMock(spec=requests.Session)
    http.post.return_value = resp
    if post_error is not None:
        http.post.side_effect = post_error
    return HttpMoveOracle("http://oracle.test/move", timeout=2.5, session=http), http


class TestHttpMoveOracle:
    def test_returns_recommended_move(self):
        oracle, http = make_oracle({"row": 3, "col": 4, "reasoning": "keep lines short"})
        board = new_board()
        board[7][7] = Stone.BLACK

        move = oracle.propose_move(board, Stone.WHITE, Scores(own=12, opponent=5))

        assert move == Move(3, 4)
        args, kwargs = http.post.call_args
        assert args == ("http://oracle.test/move",)
        assert kwargs["timeout"] == 2.5
        body = kwargs["json"]
        assert body["color"] == 2
        assert body["scores"] == {"own": 12, "opponent": 5}
        assert body["board"][7][7] == 1
        assert body["board"][0][0] == 0

    def test_connection_error(self):
        oracle, _ = make_oracle(post_error=requests.ConnectionError("refused"))
        assert oracle.propose_move(new_board(), Stone.BLACK, Scores(0, 0)) is None

    def test_http_error_status(self):
        oracle, _ = make_oracle({"row": 1, "col": 1}, status_error=requests.HTTPError("503"))
        assert oracle.propose_move(new_board(), Stone.BLACK, Scores(0, 0)) is None

    def test_body_not_json(self):
        oracle, _ = make_oracle(json_error=ValueError("no json"))
        assert oracle.propose_move(new_board(), Stone.BLACK, Scores(0, 0)) is None

    @pytest.mark.parametrize("payload", [{"row": "middle", "col": 2}, {"col": 2}, ["row", 1], None])
    def test_malformed_reply(self, payload):
        oracle, _ = make_oracle(payload)
        assert oracle.propose_move(new_board(), Stone.BLACK, Scores(0, 0)) is None

    def test_out_of_range_reply_is_passed_through(self):
        # Legality is the caller's concern
        oracle, _ = make_oracle({"row": 40, "col": 2})
        assert oracle.propose_move(new_board(), Stone.BLACK, Scores(0, 0)) == Move(40, 2)
