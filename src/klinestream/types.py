"""
Type Definitions Module
=======================

Data structures exchanged with the kline websocket feed.

All entities are short-lived: a request is sent once per session and
every decoded frame produces a fresh envelope.
"""

from dataclasses import dataclass, field
from typing import Any, TypedDict


class TickDict(TypedDict):
    """Tick keyed by its wire names (``volume`` travels as ``vol``)."""
    id: int
    open: float
    close: float
    low: float
    high: float
    amount: float
    vol: float
    count: int


@dataclass(slots=True, frozen=True)
class SubscribeRequest:
    """
    Subscription request sent right after the handshake.

    Attributes:
        sub: Topic identifier, e.g. "market.btcusdt.kline.1min"
        id: Correlation token chosen by the client
        freq_ms: Optional throttle hint; omitted on the wire when zero
    """
    sub: str
    id: str
    freq_ms: int = 0

    def to_wire(self) -> dict[str, Any]:
        """
        Wire representation with the hyphenated ``freq-ms`` key.

        Returns:
            Ordered dict: sub, id and, when non-zero, freq-ms.
        """
        wire: dict[str, Any] = {"sub": self.sub, "id": self.id}
        if self.freq_ms:
            wire["freq-ms"] = self.freq_ms
        return wire


@dataclass(slots=True, frozen=True)
class Tick:
    """
    One kline (candlestick) update.

    Attributes:
        id: Bucket timestamp of the candle (seconds)
        open/close/low/high: Prices
        amount: Base-asset volume
        volume: Quote-asset turnover (wire key ``vol``)
        count: Number of trades in the bucket
    """
    id: int = 0
    open: float = 0.0
    close: float = 0.0
    low: float = 0.0
    high: float = 0.0
    amount: float = 0.0
    volume: float = 0.0
    count: int = 0

    def to_dict(self) -> TickDict:
        return {
            "id": self.id,
            "open": self.open,
            "close": self.close,
            "low": self.low,
            "high": self.high,
            "amount": self.amount,
            "vol": self.volume,
            "count": self.count,
        }


@dataclass(slots=True, frozen=True)
class ResponseEnvelope:
    """
    Decoded inbound frame.

    Attributes:
        ch: Channel identifier, expected to equal the subscribed topic
        ts: Server send time (milliseconds)
        tick: Kline payload; zero-valued for control messages
        control: True when the frame carried no ``tick`` (e.g. server pings)
    """
    ch: str = ""
    ts: int = 0
    tick: Tick = field(default_factory=Tick)
    control: bool = False
