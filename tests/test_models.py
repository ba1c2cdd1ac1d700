"""Tests for wire message parsing."""

import pytest

from explosive_gomoku.models import (
    JoinGameMsg,
    MoveMsg,
    NewGameMsg,
    PlaceStoneMsg,
    ResetMsg,
    parse_client_message,
    parse_relay_message,
)


class TestRelayMessages:
    def test_move(self):
        msg = parse_relay_message({"type": "MOVE", "r": 4, "c": 11})
        assert isinstance(msg, MoveMsg)
        assert (msg.r, msg.c) == (4, 11)

    def test_reset(self):
        assert isinstance(parse_relay_message({"type": "RESET"}), ResetMsg)

    def test_move_dump_matches_wire_format(self):
        assert MoveMsg(r=1, c=2).model_dump() == {"type": "MOVE", "r": 1, "c": 2}

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "CHAT", "text": "gg"},
            {"type": "MOVE", "r": 1},
            {"type": "MOVE", "r": "one", "c": 2},
            {"r": 1, "c": 2},
            ["MOVE", 1, 2],
            None,
        ],
    )
    def test_unrecognised(self, data):
        assert parse_relay_message(data) is None


class TestClientMessages:
    def test_place_stone(self):
        msg = parse_client_message({"type": "place_stone", "row": 3, "col": 5})
        assert isinstance(msg, PlaceStoneMsg)

    def test_new_game_defaults(self):
        msg = parse_client_message({"type": "new_game"})
        assert isinstance(msg, NewGameMsg)
        assert msg.mode == "pve"
        assert msg.strategy is None

    def test_new_game_keeps_unknown_strategy(self):
        msg = parse_client_message({"type": "new_game", "mode": "pvp", "strategy": "grandmaster"})
        assert msg.strategy == "grandmaster"

    def test_new_game_rejects_network_mode(self):
        assert parse_client_message({"type": "new_game", "mode": "network"}) is None

    def test_join_game_requires_url(self):
        assert parse_client_message({"type": "join_game"}) is None
        assert isinstance(parse_client_message({"type": "join_game", "url": "ws://a/relay"}), JoinGameMsg)

    def test_unknown_type(self):
        assert parse_client_message({"type": "resign"}) is None
