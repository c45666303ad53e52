"""
Kline Stream
============

Streaming client for the exchange's public kline (candlestick) websocket feed.
Subscribes to one topic and logs every decoded update until interrupted.

Usage:
    python -m klinestream
"""

__version__ = "0.1.0"
