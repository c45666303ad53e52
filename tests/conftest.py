"""Shared fixtures: an in-process exchange double and a stub connection."""

import asyncio
import logging
import socket
import time

import orjson
import pytest
import pytest_asyncio
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from klinestream.codec import deflate
from klinestream.logging_setup import JsonFormatter
from klinestream.protocol import BTC_KLINE_TOPIC

TICK = {
    "id": 1700000000,
    "open": 30000.0,
    "close": 30100.5,
    "low": 29950.0,
    "high": 30200.0,
    "amount": 12.5,
    "vol": 375000.0,
    "count": 42,
}

ENVELOPE = {"ch": BTC_KLINE_TOPIC, "ts": 1700000000, "tick": TICK}


def gz_envelope(doc: dict = ENVELOPE) -> bytes:
    return deflate(orjson.dumps(doc))


class FakeExchange:
    """
    WebSocket server speaking the kline feed protocol.

    ``script(exchange, ws)`` drives one client connection. The first frame
    the client sends is kept in ``subscribe_frame``; later client frames
    are appended to ``received`` with their arrival time.
    """

    def __init__(self, script):
        self.script = script
        self.port = None
        self.subscribe_frame = None
        self.received: list[tuple[float, str | bytes]] = []
        self.close_rcvd = None
        self.subscribed = asyncio.Event()
        self.done = asyncio.Event()

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/ws"

    async def handler(self, ws) -> None:
        try:
            await self.script(self, ws)
        finally:
            self.done.set()

    async def expect_subscribe(self, ws) -> None:
        self.subscribe_frame = await ws.recv()
        self.subscribed.set()

    async def drain(self, ws) -> None:
        """Record client frames until the connection ends."""
        try:
            async for message in ws:
                self.received.append((time.monotonic(), message))
        except ConnectionClosed:
            pass
        self.close_rcvd = ws.protocol.close_rcvd


async def subscribe_then_drain(exchange: FakeExchange, ws) -> None:
    await exchange.expect_subscribe(ws)
    await exchange.drain(ws)


@pytest_asyncio.fixture
async def exchange_factory():
    servers = []

    async def start(script=subscribe_then_drain) -> FakeExchange:
        exchange = FakeExchange(script)
        server = await serve(exchange.handler, "127.0.0.1", 0)
        exchange.port = list(server.sockets)[0].getsockname()[1]
        servers.append(server)
        return exchange

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()


class StubConnection:
    """
    Connection double for peers the real server cannot imitate.

    Args:
        fail_send_after: Number of successful sends before send() raises
        ack_close: Whether close() completes; False models a silent peer
    """

    def __init__(self, fail_send_after=None, ack_close=False):
        self.fail_send_after = fail_send_after
        self.ack_close = ack_close
        self.sent: list[str] = []
        self.close_calls: list[tuple[int, str]] = []
        self._closed = asyncio.Event()

    async def send(self, message):
        if self.fail_send_after is not None and len(self.sent) >= self.fail_send_after:
            raise ConnectionClosedError(None, None)
        self.sent.append(message)

    async def recv(self):
        await self._closed.wait()
        raise ConnectionClosedOK(None, None)

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        if self.ack_close:
            self._closed.set()
            return
        await asyncio.Event().wait()


@pytest.fixture
def dead_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def restore_root_logging():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


async def wait_for_message(caplog, message: str, timeout: float = 2.0) -> None:
    """Poll captured records until one with the given message appears."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not any(r.getMessage() == message for r in caplog.records):
        if loop.time() > deadline:
            raise AssertionError(f"log message {message!r} not seen within {timeout}s")
        await asyncio.sleep(0.01)
