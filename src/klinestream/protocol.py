"""
Subscription Protocol Module
============================

The feed is session-oriented: after the handshake the client sends one
subscribe request, and every inbound frame afterwards is an envelope
carrying one tick. There is no explicit ack; the first envelope confirms
the subscription.

Envelope format (after inflation):
    {
        "ch": "market.btcusdt.kline.1min",
        "ts": 1700000000123,
        "tick": {"id": 1700000000, "open": 30000.0, "close": 30100.5,
                 "low": 29950.0, "high": 30200.0, "amount": 12.5,
                 "vol": 375000.0, "count": 42}
    }

Frames without "tick" (e.g. {"ping": 1700000000123}) decode to a control
envelope with a zero-valued tick.
"""

from typing import Any

import orjson

from klinestream.errors import DecodeError
from klinestream.types import ResponseEnvelope, SubscribeRequest, Tick, TickDict

BTC_KLINE_TOPIC = "market.btcusdt.kline.1min"

# (wire key, attribute, type)
_TICK_FIELDS: tuple[tuple[str, str, type], ...] = (
    ("id", "id", int),
    ("open", "open", float),
    ("close", "close", float),
    ("low", "low", float),
    ("high", "high", float),
    ("amount", "amount", float),
    ("vol", "volume", float),
    ("count", "count", int),
)


def kline_topic(symbol: str, interval: str) -> str:
    """
    Build a kline topic identifier.

    Example:
        >>> kline_topic("BTCUSDT", "1min")
        'market.btcusdt.kline.1min'
    """
    return f"market.{symbol.lower()}.kline.{interval}"


def build_subscribe(topic: str, correlation_id: str, freq_ms: int = 0) -> SubscribeRequest:
    """
    Construct the subscribe request.

    Args:
        topic: Topic identifier (market.<symbol>.kline.<interval>)
        correlation_id: Opaque id echoed by the server
        freq_ms: Throttle hint; 0 leaves it off the wire

    Raises:
        ValueError: Negative freq_ms.
    """
    if freq_ms < 0:
        raise ValueError(f"freq_ms must be >= 0, got {freq_ms}")
    return SubscribeRequest(sub=topic, id=correlation_id, freq_ms=freq_ms)


def _as_int(value: Any, name: str) -> int:
    # JSON integers only; bool is an int subclass and 1.0 is a float
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"field {name!r}: expected integer, got {type(value).__name__}")
    return value


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"field {name!r}: expected number, got {type(value).__name__}")
    return float(value)


def _decode_tick(raw: Any) -> Tick:
    if not isinstance(raw, dict):
        raise DecodeError(f"field 'tick': expected object, got {type(raw).__name__}")

    values: dict[str, Any] = {}
    for key, attr, kind in _TICK_FIELDS:
        if key not in raw:
            raise DecodeError(f"field 'tick.{key}' missing")
        convert = _as_int if kind is int else _as_float
        values[attr] = convert(raw[key], f"tick.{key}")
    return Tick(**values)


def decode_envelope(payload: bytes) -> ResponseEnvelope:
    """
    Parse an inflated frame into a response envelope.

    Unknown keys are ignored. A missing or null ``tick`` is not an error:
    the envelope is flagged as a control message with a zero tick.

    Args:
        payload: Inflated JSON bytes.

    Returns:
        A freshly allocated ResponseEnvelope.

    Raises:
        DecodeError: Invalid JSON, non-object document, or mistyped fields.
    """
    try:
        doc = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"json: {e}") from e

    if not isinstance(doc, dict):
        raise DecodeError(f"envelope: expected object, got {type(doc).__name__}")

    ch = doc.get("ch")
    if ch is None:
        ch = ""
    elif not isinstance(ch, str):
        raise DecodeError(f"field 'ch': expected string, got {type(ch).__name__}")

    ts = doc.get("ts")
    ts = 0 if ts is None else _as_int(ts, "ts")

    raw_tick = doc.get("tick")
    if raw_tick is None:
        return ResponseEnvelope(ch=ch, ts=ts, tick=Tick(), control=True)

    return ResponseEnvelope(ch=ch, ts=ts, tick=_decode_tick(raw_tick))


def tick_fields(tick: Tick) -> TickDict:
    """Wire-keyed tick values for log records."""
    return tick.to_dict()
