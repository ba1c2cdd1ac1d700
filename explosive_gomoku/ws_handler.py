"""WebSocket endpoints: the local front-end channel and the peer relay."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from explosive_gomoku.events import GameMode, HostGame, JoinGame, LeaveGame, NewGame, ResetGame
from explosive_gomoku.models import (
    ErrorMsg,
    HostGameMsg,
    JoinGameMsg,
    LeaveGameMsg,
    NewGameMsg,
    PlaceStoneMsg,
    ResetGameMsg,
    parse_client_message,
)
from explosive_gomoku.relay import ConnectionState, StarlettePeerSocket
from explosive_gomoku.session import session
from explosive_gomoku.strategy import parse_strategy

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    session.add_listener(ws.send_json)
    await ws.send_json(session.snapshot())
    try:
        while True:
            data = await ws.receive_json()
            msg = parse_client_message(data)
            if msg is None:
                await ws.send_json(ErrorMsg(message="Unknown or invalid message").model_dump())
                continue

            if isinstance(msg, PlaceStoneMsg):
                await session.play(msg.row, msg.col)

            elif isinstance(msg, NewGameMsg):
                strategy = parse_strategy(msg.strategy) if msg.strategy is not None else None
                await session.submit(NewGame(GameMode(msg.mode), strategy))

            elif isinstance(msg, ResetGameMsg):
                await session.submit(ResetGame())

            elif isinstance(msg, HostGameMsg):
                await session.submit(HostGame())

            elif isinstance(msg, JoinGameMsg):
                await session.submit(JoinGame(msg.url))

            elif isinstance(msg, LeaveGameMsg):
                await session.submit(LeaveGame())
    except WebSocketDisconnect:
        pass
    finally:
        session.remove_listener(ws.send_json)


@router.websocket("/relay")
async def relay_endpoint(ws: WebSocket):
    await ws.accept()
    relay = session.relay
    if relay is None or relay.state is not ConnectionState.WAITING:
        logger.info("Rejecting peer: this process is not hosting")
        await ws.close(code=1008)
        return
    await relay.attach(StarlettePeerSocket(ws))
