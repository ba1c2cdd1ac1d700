"""Session controller: the single writer for one game's state.

Every externally triggered event (a local click, a peer message, a fired
timer, an automated seat's chosen move) is queued and handled one at a time
by a worker task, so each handler sees the latest committed state.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

from explosive_gomoku.config import Settings, load_settings
from explosive_gomoku.events import (
    AutomatedMove,
    ClearExplosion,
    ClearSwapNotice,
    Event,
    GameMode,
    HostGame,
    JoinFailed,
    JoinGame,
    LeaveGame,
    LocalMove,
    NewGame,
    PeerClosed,
    PeerConnected,
    RemoteMove,
    ResetGame,
    SeatControl,
)
from explosive_gomoku.game import GameState, MoveOutcome, Phase, Seat
from explosive_gomoku.models import StateMsg, VerdictModel
from explosive_gomoku.oracle import HttpMoveOracle, MoveOracle, Scores
from explosive_gomoku.relay import AiohttpPeerSocket, ConnectionState, Connector, Relay
from explosive_gomoku.rules import Board, Stone, copy_board, in_bounds
from explosive_gomoku.strategy import StrongStrategy, create_strategy

logger = logging.getLogger(__name__)

Listener = Callable[[dict], Awaitable[None]]


class Session:
    def __init__(
        self,
        settings: Settings | None = None,
        oracle: MoveOracle | None = None,
        rng: random.Random | None = None,
        connector: Connector = AiohttpPeerSocket.connect,
    ):
        self.settings = settings or Settings()
        if oracle is None and self.settings.oracle_url:
            oracle = HttpMoveOracle(self.settings.oracle_url, timeout=self.settings.oracle_timeout)
        self.oracle = oracle
        self.rng = rng
        self.connector = connector

        self.mode = GameMode.PVE
        self.local_seat = Seat.SEAT1
        self.strategy_kind = self.settings.strategy
        self.strategy = create_strategy(self.strategy_kind, oracle, rng)
        self._fallback = StrongStrategy(rng)
        self.relay: Relay | None = None
        self.notice: str | None = None
        self.consistency_warnings = 0
        self.game = GameState(self._automated_seats())

        self._generation = 0
        self._listeners: list[Listener] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Event] | None = None
        self._worker: asyncio.Task | None = None
        self._think_task: asyncio.Task | None = None

    # -- public API ---

    @property
    def seat_controls(self) -> dict[Seat, SeatControl]:
        if self.mode is GameMode.PVP:
            return {seat: SeatControl.HUMAN for seat in Seat}
        other = SeatControl.REMOTE if self.mode is GameMode.NETWORK else SeatControl.AUTOMATED
        return {self.local_seat: SeatControl.HUMAN, self.local_seat.other: other}

    async def submit(self, event: Event) -> None:
        self._ensure_worker()
        await self._queue.put(event)  # type: ignore[union-attr]

    async def play(self, row: int, col: int) -> None:
        await self.submit(LocalMove(row, col))

    async def settle(self) -> None:
        """Wait until queued events and any pending automated move are handled."""
        while True:
            if self._queue is not None:
                await self._queue.join()
            task = self._think_task
            if task is not None and not task.done():
                await asyncio.wait([task])
                continue
            if self._queue is None or self._queue.empty():
                return

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def snapshot(self) -> dict:
        game = self.game
        verdict = game.verdict
        return StateMsg(
            board=[[int(cell) for cell in row] for row in game.board],
            scores={seat.value: game.scores[seat] for seat in Seat},
            stone_counts={seat.value: count for seat, count in game.stone_counts().items()},
            turn_count=game.turn_count,
            current_turn=int(game.current_turn),
            seat_to_move=game.seat_to_move.value,
            seat_colors={seat.value: int(game.color_for_seat(seat)) for seat in Seat},
            seat_controls={seat.value: control.value for seat, control in self.seat_controls.items()},
            phase=game.phase.value,
            mode=self.mode.value,
            strategy=self.strategy_kind.value,
            moves_until_swap=game.moves_until_swap,
            exploded=sorted([r, c] for r, c in game.exploded),
            swap_notice=game.swap_notice,
            last_move=list(game.last_move) if game.last_move else None,
            verdict=VerdictModel(winner=verdict.winner.value, reason=verdict.reason.value) if verdict else None,
            connection=self.relay.state.value if self.relay else ConnectionState.IDLE.value,
            local_seat=self.local_seat.value,
            consistency_warnings=self.consistency_warnings,
            notice=self.notice,
        ).model_dump()

    # -- worker ---

    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            # A new event loop (e.g. a new test client) gets a fresh queue
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = None
            self._think_task = None
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()  # type: ignore[union-attr]
            try:
                await self._dispatch(event)
            except Exception:
                logger.exception("Failed to handle %r", event)
            finally:
                self._queue.task_done()  # type: ignore[union-attr]

    async def _dispatch(self, event: Event) -> None:
        if isinstance(event, LocalMove):
            await self._handle_local_move(event)
        elif isinstance(event, RemoteMove):
            await self._handle_remote_move(event)
        elif isinstance(event, AutomatedMove):
            await self._handle_automated_move(event)
        elif isinstance(event, ResetGame):
            await self._handle_reset(event)
        elif isinstance(event, NewGame):
            await self._handle_new_game(event)
        elif isinstance(event, HostGame):
            await self._handle_host_game()
        elif isinstance(event, JoinGame):
            await self._handle_join_game(event)
        elif isinstance(event, LeaveGame):
            await self._handle_leave_game()
        elif isinstance(event, PeerConnected):
            await self._handle_peer_connected(event)
        elif isinstance(event, PeerClosed):
            await self._handle_peer_closed(event)
        elif isinstance(event, JoinFailed):
            await self._handle_join_failed(event)
        elif isinstance(event, ClearExplosion):
            if event.generation == self._generation and self.game.exploded == event.stones:
                self.game.clear_exploded()
                await self._publish()
        elif isinstance(event, ClearSwapNotice):
            if event.generation == self._generation and self.game.swap_notice:
                self.game.clear_swap_notice()
                await self._publish()

    # -- moves ---

    async def _handle_local_move(self, event: LocalMove) -> None:
        game = self.game
        if game.phase is not Phase.AWAITING_MOVE:
            logger.debug("Ignoring local move while %s", game.phase)
            return
        if self.seat_controls[game.seat_to_move] is not SeatControl.HUMAN:
            logger.debug("Ignoring local move: %s is not played here", game.seat_to_move)
            return

        outcome = game.apply_move(event.row, event.col, game.current_turn)
        if outcome is not None:
            await self._after_move(outcome, forward=True)

    async def _handle_remote_move(self, event: RemoteMove) -> None:
        if event.relay is not self.relay or self.mode is not GameMode.NETWORK:
            logger.debug("Ignoring move from an inactive relay")
            return

        game = self.game
        if not in_bounds(event.row, event.col) or game.board[event.row][event.col] != Stone.EMPTY:
            error = "cell is not empty"
        else:
            error = game.validate_move(event.row, event.col, game.current_turn)
        if error:
            self.consistency_warnings += 1
            self.notice = f"Ignored peer move at ({event.row}, {event.col}): {error.lower()}"
            logger.warning(
                "Dropping peer move (%d, %d): %s, boards may have diverged",
                event.row,
                event.col,
                error,
            )
            await self._publish()
            return

        outcome = game.apply_move(event.row, event.col, game.current_turn)
        if outcome is not None:
            await self._after_move(outcome, forward=False)

    async def _handle_automated_move(self, event: AutomatedMove) -> None:
        if event.generation != self._generation:
            return
        game = self.game
        if game.phase is not Phase.APPLYING_AUTOMATED_MOVE:
            return
        self._think_task = None

        if event.move is None:
            logger.info("No move available for %s, ending the game", game.current_turn.name)
            game.declare_exhausted()
            await self._publish()
            return

        outcome = game.apply_move(event.move.row, event.move.col, game.current_turn, automated=True)
        if outcome is None:
            logger.warning("Automated move %s was rejected, thinking again", event.move)
            self._start_thinking()
            return
        await self._after_move(outcome, forward=True)

    async def _after_move(self, outcome: MoveOutcome, forward: bool) -> None:
        if outcome.exploded:
            self._schedule(
                self.settings.explosion_display,
                ClearExplosion(self._generation, outcome.exploded),
            )
        if outcome.swapped:
            self._schedule(self.settings.swap_notice_display, ClearSwapNotice(self._generation))
        if forward and self.relay is not None:
            await self.relay.send_move(outcome.move)
        await self._publish()
        self._start_thinking()

    def _start_thinking(self) -> None:
        game = self.game
        if game.phase is not Phase.APPLYING_AUTOMATED_MOVE:
            return
        if self._think_task is not None and not self._think_task.done():
            return
        seat = game.seat_to_move
        scores = Scores(game.scores[seat], game.scores[seat.other])
        self._think_task = asyncio.create_task(
            self._think(copy_board(game.board), game.current_turn, scores, self._generation)
        )

    async def _think(self, board: Board, color: Stone, scores: Scores, generation: int) -> None:
        if self.settings.think_delay > 0:
            await asyncio.sleep(self.settings.think_delay)
        try:
            move = await asyncio.to_thread(self.strategy.select_move, board, color, scores)
        except Exception:
            logger.exception("%s strategy failed, using the strong tier", self.strategy_kind)
            move = await asyncio.to_thread(self._fallback.select_move, board, color, scores)
        await self.submit(AutomatedMove(move, generation))

    def _schedule(self, delay: float, event: Event) -> None:
        queue = self._queue
        if queue is None:
            return
        asyncio.get_running_loop().call_later(max(delay, 0), queue.put_nowait, event)

    # -- game lifecycle ---

    def _automated_seats(self) -> list[Seat]:
        return [seat for seat, control in self.seat_controls.items() if control is SeatControl.AUTOMATED]

    async def _restart(self) -> None:
        self._generation += 1
        if self._think_task is not None and not self._think_task.done():
            self._think_task.cancel()
        self._think_task = None
        self.game = GameState(self._automated_seats())
        await self._publish()
        self._start_thinking()

    async def _handle_reset(self, event: ResetGame) -> None:
        logger.info("Resetting game%s", "" if event.propagate else " at peer's request")
        if event.propagate and self.relay is not None:
            await self.relay.send_reset()
        self.notice = None
        await self._restart()

    async def _handle_new_game(self, event: NewGame) -> None:
        await self._drop_relay()
        self.mode = event.mode if event.mode is not GameMode.NETWORK else GameMode.PVE
        self.local_seat = Seat.SEAT1
        if event.strategy is not None:
            self.strategy_kind = event.strategy
            self.strategy = create_strategy(event.strategy, self.oracle, self.rng)
        self.notice = None
        logger.info("New %s game, strategy %s", self.mode, self.strategy_kind)
        await self._restart()

    # -- relay lifecycle ---

    async def _handle_host_game(self) -> None:
        await self._drop_relay()
        self.relay = Relay(self)
        self.relay.host()
        self.notice = "Waiting for a peer to join"
        await self._publish()

    async def _handle_join_game(self, event: JoinGame) -> None:
        await self._drop_relay()
        self.relay = Relay(self)
        self.relay.join(event.url, self.connector)
        self.notice = f"Joining {event.url}"
        await self._publish()

    async def _handle_join_failed(self, event: JoinFailed) -> None:
        if event.relay is not self.relay:
            return
        self.relay = None
        self.notice = f"Could not join {event.url}"
        await self._publish()

    async def _handle_leave_game(self) -> None:
        relay = self.relay
        self.relay = None
        if relay is not None:
            await relay.close()
        if self.mode is GameMode.NETWORK:
            self._retire_to_local("Left the networked game; continuing against the computer")
        else:
            self.notice = None
        await self._publish()
        self._start_thinking()

    async def _handle_peer_connected(self, event: PeerConnected) -> None:
        if event.relay is not self.relay:
            return
        self.mode = GameMode.NETWORK
        self.local_seat = event.local_seat
        self.notice = "Peer connected"
        await self._restart()

    async def _handle_peer_closed(self, event: PeerClosed) -> None:
        if event.relay is not self.relay:
            return
        self.relay = None
        if self.mode is GameMode.NETWORK:
            logger.warning("Peer connection closed (%s), continuing locally", event.reason)
            self._retire_to_local("Peer disconnected; continuing against the computer")
        await self._publish()
        self._start_thinking()

    def _retire_to_local(self, notice: str) -> None:
        self.mode = GameMode.PVE
        self.game.set_automated_seats(self._automated_seats())
        self.notice = notice

    async def _drop_relay(self) -> None:
        relay = self.relay
        self.relay = None
        if relay is not None:
            await relay.close()

    async def _publish(self) -> None:
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                await listener(state)
            except Exception:
                logger.debug("Dropping listener that failed to receive state", exc_info=True)
                self.remove_listener(listener)


session = Session(load_settings())
