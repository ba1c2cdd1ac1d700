"""Tests for the relay lifecycle against a stub session."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from explosive_gomoku.events import JoinFailed, PeerClosed, PeerConnected, RemoteMove, ResetGame
from explosive_gomoku.game import Seat
from explosive_gomoku.relay import ConnectionState, PeerDisconnected, Relay, StarlettePeerSocket
from explosive_gomoku.rules import Move


def make_relay():
    session = MagicMock()
    session.submit = AsyncMock()
    return Relay(session), session


def submitted(session):
    return [call[0][0] for call in session.submit.call_args_list]


class TestHosting:
    def test_host_waits_as_first_seat(self):
        relay, _ = make_relay()
        relay.host()
        assert relay.state is ConnectionState.WAITING
        assert relay.local_seat is Seat.SEAT1

    @pytest.mark.asyncio
    async def test_attach_refused_when_not_hosting(self, peer_socket):
        relay, session = make_relay()
        assert await relay.attach(peer_socket) is False
        session.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_attach_relays_until_peer_leaves(self, peer_socket):
        relay, session = make_relay()
        relay.host()
        await peer_socket.feed({"type": "MOVE", "r": 7, "c": 7})
        await peer_socket.feed({"type": "PING"})
        await peer_socket.feed({"type": "RESET"})
        await peer_socket.hang_up()

        assert await relay.attach(peer_socket) is True

        events = submitted(session)
        assert isinstance(events[0], PeerConnected)
        assert events[0].local_seat is Seat.SEAT1
        assert events[1] == RemoteMove(7, 7)
        assert events[1].relay is relay
        assert events[2] == ResetGame(propagate=False)
        assert isinstance(events[3], PeerClosed)
        assert len(events) == 4
        assert relay.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_second_peer_refused(self, peer_socket):
        relay, _ = make_relay()
        relay.host()
        await peer_socket.hang_up()
        await relay.attach(peer_socket)
        assert await relay.attach(peer_socket) is False


class TestJoining:
    @pytest.mark.asyncio
    async def test_join_takes_second_seat(self, peer_socket, eventually):
        relay, session = make_relay()
        relay.join("ws://host.test/relay", AsyncMock(return_value=peer_socket))
        await eventually(lambda: relay.is_connected)

        assert relay.local_seat is Seat.SEAT2
        assert submitted(session)[0].local_seat is Seat.SEAT2

        await peer_socket.feed({"type": "MOVE", "r": 1, "c": 2})
        await eventually(lambda: len(session.submit.call_args_list) == 2)
        assert submitted(session)[1] == RemoteMove(1, 2)
        await relay.close()

    @pytest.mark.asyncio
    async def test_join_failure_reported(self, eventually):
        relay, session = make_relay()
        relay.join("ws://nowhere.test/relay", AsyncMock(side_effect=PeerDisconnected("refused")))
        await eventually(lambda: session.submit.called)

        event = submitted(session)[0]
        assert isinstance(event, JoinFailed)
        assert event.relay is relay
        assert event.url == "ws://nowhere.test/relay"
        assert relay.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_close_abandons_pending_join(self, peer_socket):
        relay, session = make_relay()
        gate = asyncio.Event()

        async def slow_connector(url):
            await gate.wait()
            return peer_socket

        relay.join("ws://host.test/relay", slow_connector)
        await asyncio.sleep(0)
        await relay.close()
        gate.set()
        await asyncio.sleep(0.05)

        assert relay.state is ConnectionState.CLOSED
        session.submit.assert_not_called()


class TestHostSocket:
    @pytest.mark.asyncio
    async def test_binary_frame_is_skipped(self):
        ws = MagicMock()
        ws.receive = AsyncMock(
            side_effect=[
                {"type": "websocket.receive", "bytes": b"\x00\x01"},
                {"type": "websocket.receive", "text": '{"type": "MOVE", "r": 1, "c": 1}'},
                {"type": "websocket.disconnect", "code": 1000},
            ]
        )
        socket = StarlettePeerSocket(ws)

        assert await socket.receive_json() is None
        assert await socket.receive_json() == {"type": "MOVE", "r": 1, "c": 1}
        with pytest.raises(PeerDisconnected):
            await socket.receive_json()

    @pytest.mark.asyncio
    async def test_binary_frame_keeps_peer_connected(self):
        relay, session = make_relay()
        relay.host()
        ws = MagicMock()
        ws.receive = AsyncMock(
            side_effect=[
                {"type": "websocket.receive", "bytes": b"\xff"},
                {"type": "websocket.receive", "text": '{"type": "MOVE", "r": 4, "c": 5}'},
                {"type": "websocket.disconnect", "code": 1000},
            ]
        )

        await relay.attach(StarlettePeerSocket(ws))

        events = submitted(session)
        assert events[1] == RemoteMove(4, 5)
        assert isinstance(events[2], PeerClosed)


async def joined_relay(peer_socket, eventually):
    relay, session = make_relay()
    relay.join("ws://host.test/relay", AsyncMock(return_value=peer_socket))
    await eventually(lambda: relay.is_connected)
    return relay, session


class TestSending:
    @pytest.mark.asyncio
    async def test_send_when_idle_is_noop(self, peer_socket):
        relay, _ = make_relay()
        await relay.send_move(Move(3, 3))
        assert peer_socket.sent == []

    @pytest.mark.asyncio
    async def test_send_move_and_reset(self, peer_socket, eventually):
        relay, _ = await joined_relay(peer_socket, eventually)
        await relay.send_move(Move(3, 4))
        await relay.send_reset()
        assert peer_socket.sent == [{"type": "MOVE", "r": 3, "c": 4}, {"type": "RESET"}]
        await relay.close()

    @pytest.mark.asyncio
    async def test_send_failure_closes(self, peer_socket, eventually):
        relay, session = await joined_relay(peer_socket, eventually)
        peer_socket.fail_sends = True

        await relay.send_move(Move(3, 4))

        assert relay.state is ConnectionState.CLOSED
        assert peer_socket.closed
        assert isinstance(submitted(session)[-1], PeerClosed)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, peer_socket, eventually):
        relay, session = await joined_relay(peer_socket, eventually)
        await relay.close()
        await relay.close()

        closed = [e for e in submitted(session) if isinstance(e, PeerClosed)]
        assert len(closed) == 1
        assert relay.state is ConnectionState.CLOSED
