"""Shared fixtures: a fast session and an in-memory peer socket."""

import asyncio
import random

import pytest

from explosive_gomoku.config import Settings
from explosive_gomoku.relay import PeerDisconnected
from explosive_gomoku.session import Session

_HANGUP = object()


class FakePeerSocket:
    """Peer socket backed by queues; tests feed inbound frames and read ``sent``."""

    def __init__(self):
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False
        self.fail_sends = False

    async def feed(self, data: object):
        await self.inbound.put(data)

    async def hang_up(self):
        await self.inbound.put(_HANGUP)

    async def send_json(self, data: dict) -> None:
        if self.fail_sends:
            raise PeerDisconnected("broken pipe")
        self.sent.append(data)

    async def receive_json(self) -> object:
        data = await self.inbound.get()
        if data is _HANGUP:
            raise PeerDisconnected("peer hung up")
        return data

    async def close(self) -> None:
        self.closed = True
        await self.inbound.put(_HANGUP)


async def eventually(predicate, timeout: float = 2.0):
    """Poll ``predicate`` until it holds; relay pumps run as separate tasks."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture(name="eventually")
def eventually_fixture():
    return eventually


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(think_delay=0, explosion_display=60, swap_notice_display=60)


@pytest.fixture
def make_session(fast_settings):
    """Build a session whose automated seats move immediately."""

    def _make(**kwargs) -> Session:
        kwargs.setdefault("settings", fast_settings)
        kwargs.setdefault("rng", random.Random(7))
        return Session(**kwargs)

    return _make


@pytest.fixture
def peer_socket() -> FakePeerSocket:
    return FakePeerSocket()
