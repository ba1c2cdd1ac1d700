"""Pydantic models for the WebSocket and oracle message protocols."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Peer ↔ Peer (relay)
# ---------------------------------------------------------------------------

class MoveMsg(BaseModel):
    type: Literal["MOVE"] = "MOVE"
    r: int
    c: int


class ResetMsg(BaseModel):
    type: Literal["RESET"] = "RESET"


RelayMessage = MoveMsg | ResetMsg


# ---------------------------------------------------------------------------
# Client → Server (local front end)
# ---------------------------------------------------------------------------

class PlaceStoneMsg(BaseModel):
    type: Literal["place_stone"] = "place_stone"
    row: int
    col: int


class NewGameMsg(BaseModel):
    type: Literal["new_game"] = "new_game"
    mode: Literal["pve", "pvp"] = "pve"
    strategy: str | None = None


class ResetGameMsg(BaseModel):
    type: Literal["reset"] = "reset"


class HostGameMsg(BaseModel):
    type: Literal["host_game"] = "host_game"


class JoinGameMsg(BaseModel):
    type: Literal["join_game"] = "join_game"
    url: str


class LeaveGameMsg(BaseModel):
    type: Literal["leave_game"] = "leave_game"


ClientMessage = PlaceStoneMsg | NewGameMsg | ResetGameMsg | HostGameMsg | JoinGameMsg | LeaveGameMsg


# ---------------------------------------------------------------------------
# Server → Client
# ---------------------------------------------------------------------------

class VerdictModel(BaseModel):
    winner: str  # "seat1" | "seat2" | "tie"
    reason: str  # "dominant_win" | "higher_score" | "tie_broken_by_stone_count" | "full_tie"


class StateMsg(BaseModel):
    type: Literal["state"] = "state"
    board: list[list[int]]
    scores: dict[str, int]
    stone_counts: dict[str, int]
    turn_count: int
    current_turn: int
    seat_to_move: str
    seat_colors: dict[str, int]
    seat_controls: dict[str, str]
    phase: str
    mode: str
    strategy: str
    moves_until_swap: int
    exploded: list[list[int]]
    swap_notice: bool
    last_move: list[int] | None
    verdict: VerdictModel | None
    connection: str
    local_seat: str
    consistency_warnings: int
    notice: str | None


class ErrorMsg(BaseModel):
    type: Literal["error"] = "error"
    message: str


# ---------------------------------------------------------------------------
# Oracle request / reply
# ---------------------------------------------------------------------------

class OracleScores(BaseModel):
    own: int
    opponent: int


class OracleRequest(BaseModel):
    board: list[list[int]]
    color: int
    scores: OracleScores


class OracleReply(BaseModel):
    row: int
    col: int
    reasoning: str | None = None


def _parse(data: object, mapping: dict[str, type[BaseModel]]) -> BaseModel | None:
    if not isinstance(data, dict):
        return None
    model = mapping.get(data.get("type"))  # type: ignore[arg-type]
    if model is None:
        return None
    try:
        return model.model_validate(data)
    except Exception:
        return None


def parse_relay_message(data: object) -> RelayMessage | None:
    """Parse a raw peer message, or None if it is unknown or malformed."""
    return _parse(data, {"MOVE": MoveMsg, "RESET": ResetMsg})  # type: ignore[return-value]


def parse_client_message(data: object) -> ClientMessage | None:
    """Parse a raw dict into a typed client message, or None if invalid."""
    mapping: dict[str, type[BaseModel]] = {
        "place_stone": PlaceStoneMsg,
        "new_game": NewGameMsg,
        "reset": ResetGameMsg,
        "host_game": HostGameMsg,
        "join_game": JoinGameMsg,
        "leave_game": LeaveGameMsg,
    }
    return _parse(data, mapping)  # type: ignore[return-value]
