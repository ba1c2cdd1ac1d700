"""Peer-to-peer move relay: connection lifecycle and socket adapters."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

import aiohttp
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from explosive_gomoku.events import JoinFailed, PeerClosed, PeerConnected, RemoteMove, ResetGame
from explosive_gomoku.game import Seat
from explosive_gomoku.models import MoveMsg, ResetMsg, parse_relay_message
from explosive_gomoku.rules import Move

if TYPE_CHECKING:
    from explosive_gomoku.session import Session

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 10  # seconds


class PeerDisconnected(Exception):
    """The peer went away or the transport failed."""


class ConnectionState(StrEnum):
    IDLE = "idle"
    WAITING = "waiting"
    CONNECTED = "connected"
    CLOSED = "closed"


class PeerSocket(Protocol):
    async def send_json(self, data: dict) -> None: ...

    async def receive_json(self) -> object:
        """Next decoded frame, None if undecodable; raises PeerDisconnected."""
        ...

    async def close(self) -> None: ...


class StarlettePeerSocket:
    """Host side: a peer that attached to our ``/relay`` endpoint."""

    def __init__(self, ws: WebSocket):
        self.ws = ws

    async def send_json(self, data: dict) -> None:
        try:
            await self.ws.send_json(data)
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise PeerDisconnected(str(exc)) from exc

    async def receive_json(self) -> object:
        try:
            message = await self.ws.receive()
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise PeerDisconnected(str(exc)) from exc
        if message["type"] == "websocket.disconnect":
            raise PeerDisconnected(f"peer closed ({message.get('code')})")
        text = message.get("text")
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None

    async def close(self) -> None:
        if (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        ):
            await self.ws.close()


class AiohttpPeerSocket:
    """Join side: our client connection to a hosting peer."""

    def __init__(self, client: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self.client = client
        self.ws = ws

    @classmethod
    async def connect(cls, url: str) -> AiohttpPeerSocket:
        client = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None, connect=JOIN_TIMEOUT))
        try:
            ws = await client.ws_connect(url)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            await client.close()
            raise PeerDisconnected(f"could not connect to {url}: {exc}") from exc
        except asyncio.CancelledError:
            await client.close()
            raise
        return cls(client, ws)

    async def send_json(self, data: dict) -> None:
        try:
            await self.ws.send_json(data)
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise PeerDisconnected(str(exc)) from exc

    async def receive_json(self) -> object:
        msg = await self.ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            try:
                return json.loads(msg.data)
            except ValueError:
                return None
        if msg.type in (
            aiohttp.WSMsgType.CLOSE,
            aiohttp.WSMsgType.CLOSING,
            aiohttp.WSMsgType.CLOSED,
            aiohttp.WSMsgType.ERROR,
        ):
            raise PeerDisconnected(f"connection {msg.type.name.lower()}")
        return None

    async def close(self) -> None:
        await self.ws.close()
        await self.client.close()


Connector = Callable[[str], Awaitable[PeerSocket]]


class Relay:
    """Mirrors locally applied moves to a peer and feeds the peer's moves back.

    The relay owns the transport; the session only calls :meth:`send_move`,
    :meth:`send_reset` and :meth:`close`, and receives events in return.
    """

    def __init__(self, session: Session):
        self.session = session
        self.state = ConnectionState.IDLE
        self.local_seat: Seat | None = None
        self._socket: PeerSocket | None = None
        self._pump_task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def host(self) -> None:
        if self.state is not ConnectionState.IDLE:
            return
        self.state = ConnectionState.WAITING
        self.local_seat = Seat.SEAT1
        logger.info("Waiting for a peer to join")

    async def attach(self, socket: PeerSocket) -> bool:
        """Accept a joining peer and relay its messages until it leaves."""
        if self.state is not ConnectionState.WAITING:
            logger.warning("Refusing peer: relay is %s", self.state)
            return False

        self._socket = socket
        self.state = ConnectionState.CONNECTED
        logger.info("Peer joined")
        await self.session.submit(PeerConnected(self, Seat.SEAT1))
        await self._pump()
        return True

    def join(self, url: str, connector: Connector = AiohttpPeerSocket.connect) -> None:
        """Start connecting to a hosting peer in the background.

        The outcome arrives at the session as :class:`PeerConnected` or
        :class:`JoinFailed`; closing the relay meanwhile abandons the attempt.
        """
        if self.state is not ConnectionState.IDLE or self._pump_task is not None:
            return
        self._pump_task = asyncio.create_task(self._connect(url, connector))

    async def _connect(self, url: str, connector: Connector) -> None:
        try:
            socket = await connector(url)
        except PeerDisconnected as exc:
            logger.warning("Could not join %s: %s", url, exc)
            self.state = ConnectionState.CLOSED
            await self.session.submit(JoinFailed(self, url, str(exc)))
            return

        if self.state is not ConnectionState.IDLE:
            # Closed while connecting
            try:
                await socket.close()
            except PeerDisconnected:
                pass
            return

        self._socket = socket
        self.local_seat = Seat.SEAT2
        self.state = ConnectionState.CONNECTED
        logger.info("Joined peer at %s", url)
        await self.session.submit(PeerConnected(self, Seat.SEAT2))
        await self._pump()

    async def send_move(self, move: Move) -> None:
        await self._send(MoveMsg(r=move.row, c=move.col).model_dump())

    async def send_reset(self) -> None:
        await self._send(ResetMsg().model_dump())

    async def close(self) -> None:
        """Tear the connection down; already applied moves stay applied."""
        await self._mark_closed("closed locally")
        task = self._pump_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _send(self, data: dict) -> None:
        if not self.is_connected or self._socket is None:
            return
        try:
            await self._socket.send_json(data)
        except PeerDisconnected as exc:
            logger.warning("Lost peer while sending: %s", exc)
            await self._mark_closed(str(exc))

    async def _pump(self) -> None:
        reason = "peer left"
        try:
            while self.is_connected and self._socket is not None:
                data = await self._socket.receive_json()
                msg = parse_relay_message(data)
                if msg is None:
                    logger.info("Ignoring unrecognised peer message: %r", data)
                    continue
                if isinstance(msg, MoveMsg):
                    await self.session.submit(RemoteMove(msg.r, msg.c, relay=self))
                elif isinstance(msg, ResetMsg):
                    await self.session.submit(ResetGame(propagate=False))
        except PeerDisconnected as exc:
            reason = str(exc) or reason
            logger.info("Peer disconnected: %s", reason)
        finally:
            await self._mark_closed(reason)

    async def _mark_closed(self, reason: str) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        was_connected = self.is_connected
        self.state = ConnectionState.CLOSED
        socket, self._socket = self._socket, None
        if socket is not None:
            try:
                await socket.close()
            except PeerDisconnected:
                pass
        if was_connected:
            await self.session.submit(PeerClosed(self, reason))
