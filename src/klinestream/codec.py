"""
Frame Codec Module
==================

Inbound frames are gzip-compressed JSON documents; the only outbound
structured frame is the subscribe request, sent as compact JSON text.

Usage:
    payload = inflate(raw_frame)
    text = encode_request(SubscribeRequest(sub=topic, id="id1")).decode("utf-8")
"""

import gzip
import zlib

import orjson

from klinestream.errors import DecodeError, EncodeError
from klinestream.types import SubscribeRequest


def inflate(data: bytes) -> bytes:
    """
    Decompress a single gzip-framed inbound frame.

    Args:
        data: Raw binary frame payload.

    Returns:
        Inflated bytes.

    Raises:
        DecodeError: Empty input, malformed header, corrupt or truncated stream.
    """
    if not data:
        raise DecodeError("empty gzip frame")
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeError(f"gzip: {e}") from e


def deflate(data: bytes) -> bytes:
    """Gzip a payload the way the exchange compresses its frames."""
    return gzip.compress(data)


def encode_request(request: SubscribeRequest) -> bytes:
    """
    Encode a subscribe request as a single JSON object.

    ``freq-ms`` is omitted entirely when ``freq_ms`` is zero.

    Raises:
        EncodeError: A field is not JSON-serializable.
    """
    try:
        return orjson.dumps(request.to_wire())
    except orjson.JSONEncodeError as e:
        raise EncodeError(f"subscribe request: {e}") from e
