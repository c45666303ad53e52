"""
Session Loop Module
===================

Owns a single websocket connection to the kline feed for its whole lifetime.

Lifecycle:
    CONNECTING -> SUBSCRIBING -> STREAMING -> CLOSING -> CLOSED

While streaming, two activities share the connection:
- Reader task: recv -> inflate -> decode -> one log record per frame.
  Never writes, never closes.
- Supervisor: owns every write (subscribe, heartbeat, close) and waits on
  whichever comes first of the heartbeat deadline, reader completion and
  the operator interrupt.

Shutdown causes:
- READ_ERROR / HEARTBEAT_FAILED: the transport is dropped, no close frame.
- INTERRUPT: close frame 1000 is sent, then we wait for the peer's close
  for at most the grace period before dropping the transport.

Usage:
    request = build_subscribe(BTC_KLINE_TOPIC, "id1", 5000)
    session = KlineSession("wss://api.huobi.pro/ws", request)
    cause = await session.run(interrupt_event)
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    WebSocketException,
)
from websockets.frames import CloseCode

from klinestream.codec import encode_request, inflate
from klinestream.errors import ConnectError, DecodeError, ReadError, SendError
from klinestream.metrics import SessionStats
from klinestream.protocol import decode_envelope, tick_fields
from klinestream.types import SubscribeRequest
from klinestream.utils_time import heartbeat_stamp, now_ms

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"


class ShutdownCause(str, Enum):
    READ_ERROR = "read_error"
    HEARTBEAT_FAILED = "heartbeat_failed"
    INTERRUPT = "interrupt"


def _close_code(exc: ConnectionClosed) -> Optional[int]:
    return exc.rcvd.code if exc.rcvd is not None else None


class KlineSession:
    """
    One subscribe-and-stream session over a websocket connection.

    No reconnection: a read failure ends the session. Handshake and
    subscribe failures are raised to the caller as ConnectError and
    SendError; every other failure becomes the session's shutdown cause.

    Attributes:
        state: Current SessionState
        read_error: ReadError recorded by the reader, if it ended
        send_error: SendError recorded for a heartbeat or close frame
        cause: ShutdownCause once run() has returned
    """

    def __init__(
        self,
        url: str,
        request: SubscribeRequest,
        heartbeat_interval_sec: float = 1.0,
        close_grace_sec: float = 1.0,
        heartbeat_enabled: bool = True,
        stats: Optional[SessionStats] = None,
    ):
        """
        Initialize session.

        Args:
            url: WebSocket endpoint (e.g., "wss://api.huobi.pro/ws")
            request: Subscribe request sent right after the handshake
            heartbeat_interval_sec: Period of timestamp text frames
            close_grace_sec: Max wait for the peer's close after an interrupt
            heartbeat_enabled: Send heartbeat frames at all
            stats: Optional SessionStats; a fresh one is created otherwise
        """
        self.url = url
        self.request = request
        self.heartbeat_interval_sec = heartbeat_interval_sec
        self.close_grace_sec = close_grace_sec
        self.heartbeat_enabled = heartbeat_enabled
        self.stats = stats or SessionStats()

        self.state: Optional[SessionState] = None
        self.read_error: Optional[ReadError] = None
        self.send_error: Optional[SendError] = None
        self.cause: Optional[ShutdownCause] = None

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        logger.info("session_state", extra={"state": state.value, "url": self.url})

    async def run(self, interrupt: asyncio.Event) -> ShutdownCause:
        """
        Connect, subscribe and stream until a shutdown cause fires.

        Args:
            interrupt: Set by the signal handler to request a graceful close

        Returns:
            The cause that ended the session.

        Raises:
            ConnectError: Handshake failed.
            SendError: Subscribe frame could not be sent.
            EncodeError: Subscribe request could not be serialized.
        """
        self._set_state(SessionState.CONNECTING)
        try:
            ws = await self._connect()
        except ConnectError:
            self._set_state(SessionState.CLOSED)
            raise

        try:
            self._set_state(SessionState.SUBSCRIBING)
            await self._subscribe(ws)

            self._set_state(SessionState.STREAMING)
            reader = asyncio.create_task(self._read_loop(ws), name="ws_reader")
            try:
                cause = await self._supervise(ws, reader, interrupt)
                self._set_state(SessionState.CLOSING)
                if cause is ShutdownCause.INTERRUPT:
                    await self._close_gracefully(ws, reader)
            finally:
                await self._stop_reader(reader)
        finally:
            self._teardown(ws)
            self._set_state(SessionState.CLOSED)

        self.cause = cause
        logger.info(
            "session_summary",
            extra={"cause": cause.value, **self.stats.snapshot()},
        )
        return cause

    async def _connect(self) -> ClientConnection:
        """
        Perform the websocket handshake.

        Raises:
            ConnectError: Network failure, timeout, bad URI or rejected handshake.
        """
        logger.info("ws_connecting", extra={"url": self.url})
        try:
            ws = await websockets.connect(self.url, close_timeout=self.close_grace_sec)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.error(
                "ws_connection_failed",
                extra={
                    "url": self.url,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise ConnectError(f"dial {self.url}: {e}") from e

        logger.info("ws_connected", extra={"url": self.url})
        return ws

    async def _subscribe(self, ws: ClientConnection) -> None:
        """Send the subscribe request as the first outbound frame."""
        payload = encode_request(self.request).decode("utf-8")
        try:
            await ws.send(payload)
        except (ConnectionClosed, OSError) as e:
            logger.error(
                "ws_subscribe_failed",
                extra={"topic": self.request.sub, "error": str(e)},
            )
            raise SendError(f"subscribe: {e}") from e

        logger.info(
            "ws_subscribed",
            extra={
                "topic": self.request.sub,
                "id": self.request.id,
                "freq_ms": self.request.freq_ms,
            },
        )

    async def _supervise(
        self,
        ws: ClientConnection,
        reader: asyncio.Task,
        interrupt: asyncio.Event,
    ) -> ShutdownCause:
        """
        Multiplex heartbeat deadlines, reader completion and the interrupt.

        Heartbeats keep a fixed phase; deadlines missed while a send was
        blocked are skipped rather than replayed.
        """
        interrupted = asyncio.create_task(interrupt.wait(), name="interrupt_wait")
        loop = asyncio.get_running_loop()
        next_beat = loop.time() + self.heartbeat_interval_sec

        try:
            while True:
                timeout = None
                if self.heartbeat_enabled:
                    timeout = max(0.0, next_beat - loop.time())

                done, _ = await asyncio.wait(
                    {reader, interrupted},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if reader in done:
                    return ShutdownCause.READ_ERROR

                if interrupted in done:
                    logger.info("interrupt")
                    return ShutdownCause.INTERRUPT

                next_beat += self.heartbeat_interval_sec
                now = loop.time()
                while next_beat <= now:
                    next_beat += self.heartbeat_interval_sec

                if not await self._send_heartbeat(ws):
                    return ShutdownCause.HEARTBEAT_FAILED
        finally:
            interrupted.cancel()
            try:
                await interrupted
            except asyncio.CancelledError:
                pass

    async def _send_heartbeat(self, ws: ClientConnection) -> bool:
        stamp = heartbeat_stamp()
        try:
            await ws.send(stamp)
        except (ConnectionClosed, OSError) as e:
            self.send_error = SendError(f"heartbeat: {e}")
            logger.warning(
                "ws_write_failed",
                extra={"frame": "heartbeat", "error": str(e)},
            )
            return False

        self.stats.inc_heartbeats()
        logger.debug("ws_heartbeat_sent", extra={"stamp": stamp})
        return True

    async def _close_gracefully(self, ws: ClientConnection, reader: asyncio.Task) -> None:
        """
        Send the normal-closure frame, then give the reader until the end
        of the grace period to observe the peer's close.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.close_grace_sec

        logger.info(
            "ws_closing",
            extra={"code": int(CloseCode.NORMAL_CLOSURE), "grace_sec": self.close_grace_sec},
        )
        try:
            await asyncio.wait_for(
                ws.close(code=CloseCode.NORMAL_CLOSURE, reason=""),
                timeout=self.close_grace_sec,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "ws_close_grace_expired",
                extra={"grace_sec": self.close_grace_sec},
            )
            return
        except (ConnectionClosed, OSError) as e:
            self.send_error = SendError(f"close: {e}")
            logger.warning(
                "ws_write_failed",
                extra={"frame": "close", "error": str(e)},
            )
            return

        remaining = deadline - loop.time()
        if remaining > 0 and not reader.done():
            await asyncio.wait({reader}, timeout=remaining)

    async def _stop_reader(self, reader: asyncio.Task) -> None:
        if not reader.done():
            reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass

    def _teardown(self, ws: ClientConnection) -> None:
        """Drop the underlying transport without sending a close frame."""
        transport = getattr(ws, "transport", None)
        if transport is not None:
            transport.abort()

    async def _read_loop(self, ws: ClientConnection) -> None:
        """
        Reader task - logs every inbound frame until the connection ends.
        """
        while True:
            try:
                message = await ws.recv()
            except ConnectionClosedOK as e:
                self.read_error = ReadError(f"read: {e}")
                logger.info(
                    "ws_read_error",
                    extra={
                        "reason": "connection_closed_ok",
                        "code": _close_code(e),
                        "error": str(e),
                    },
                )
                return
            except ConnectionClosed as e:
                self.read_error = ReadError(f"read: {e}")
                logger.warning(
                    "ws_read_error",
                    extra={
                        "reason": "connection_closed_error",
                        "code": _close_code(e),
                        "error": str(e),
                    },
                )
                return

            self._on_frame(message)

    def _on_frame(self, message: str | bytes) -> None:
        """
        Decode one frame and log it. Decode errors drop the frame only.
        """
        recv_ts_ms = now_ms()
        self.stats.inc_frames()
        raw = message if isinstance(message, bytes) else message.encode("utf-8")

        try:
            envelope = decode_envelope(inflate(raw))
        except DecodeError as e:
            self.stats.inc_decode_errors()
            logger.warning(
                "ws_decode_error",
                extra={
                    "error": str(e),
                    "frame_size": len(raw),
                    "raw_preview": raw[:32].hex(),
                },
            )
            return

        if envelope.control:
            self.stats.inc_control()
            logger.info(
                "ws_control_message",
                extra={"ch": envelope.ch, "ts": envelope.ts, "recv_ts_ms": recv_ts_ms},
            )
            return

        self.stats.inc_ticks()
        logger.info(
            "kline_tick",
            extra={
                "ch": envelope.ch,
                "ts": envelope.ts,
                "recv_ts_ms": recv_ts_ms,
                "tick": tick_fields(envelope.tick),
            },
        )
