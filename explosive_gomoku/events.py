"""Events drained one at a time by the session controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from explosive_gomoku.game import Seat
from explosive_gomoku.rules import Move
from explosive_gomoku.strategy import StrategyKind

if TYPE_CHECKING:
    from explosive_gomoku.relay import Relay


class GameMode(StrEnum):
    PVE = "pve"  # local human against an automated seat
    PVP = "pvp"  # two humans sharing this process
    NETWORK = "network"  # local human against a relayed peer


class SeatControl(StrEnum):
    HUMAN = "human"
    AUTOMATED = "automated"
    REMOTE = "remote"


@dataclass(frozen=True)
class LocalMove:
    row: int
    col: int


@dataclass(frozen=True)
class RemoteMove:
    row: int
    col: int
    relay: Relay | None = field(default=None, compare=False)


@dataclass(frozen=True)
class AutomatedMove:
    move: Move | None
    generation: int


@dataclass(frozen=True)
class ResetGame:
    propagate: bool = True


@dataclass(frozen=True)
class NewGame:
    mode: GameMode = GameMode.PVE
    strategy: StrategyKind | None = None


@dataclass(frozen=True)
class HostGame:
    pass


@dataclass(frozen=True)
class JoinGame:
    url: str


@dataclass(frozen=True)
class LeaveGame:
    pass


@dataclass(frozen=True)
class PeerConnected:
    relay: Relay = field(compare=False)
    local_seat: Seat


@dataclass(frozen=True)
class PeerClosed:
    relay: Relay = field(compare=False)
    reason: str


@dataclass(frozen=True)
class JoinFailed:
    relay: Relay = field(compare=False)
    url: str
    reason: str


@dataclass(frozen=True)
class ClearExplosion:
    generation: int
    stones: frozenset[Move]


@dataclass(frozen=True)
class ClearSwapNotice:
    generation: int


Event = (
    LocalMove
    | RemoteMove
    | AutomatedMove
    | ResetGame
    | NewGame
    | HostGame
    | JoinGame
    | LeaveGame
    | PeerConnected
    | PeerClosed
    | JoinFailed
    | ClearExplosion
    | ClearSwapNotice
)
