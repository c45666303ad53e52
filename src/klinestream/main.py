"""
Main Entry Point
================

Entry point for the kline stream client.

Usage:
    python -m klinestream [--url URL] [--topic TOPIC] [--freq-ms N]

The client will:
1. Load configuration from environment / .env, then apply CLI flags
2. Setup JSON logging
3. Connect to the exchange websocket and subscribe to one kline topic
4. Log every decoded update until SIGINT/SIGTERM, then close gracefully

Exit codes:
    0 - clean shutdown (interrupt, peer close or write failure)
    1 - connect/subscribe failure or unexpected crash
    2 - invalid command-line flags or settings
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence
from urllib.parse import urlsplit

from pydantic import ValidationError

from klinestream import __version__
from klinestream.config import Settings
from klinestream.errors import KlineStreamError
from klinestream.logging_setup import setup_logging
from klinestream.protocol import build_subscribe
from klinestream.session import KlineSession

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="klinestream",
        description="Stream kline updates from the exchange websocket feed",
    )
    parser.add_argument("--url", help="Full endpoint URL, overrides WS_SCHEME/WS_HOST/WS_PATH")
    parser.add_argument("--topic", help="Kline topic, e.g. market.btcusdt.kline.1min")
    parser.add_argument("--sub-id", help="Subscription correlation id")
    parser.add_argument("--freq-ms", type=int, help="Throttle hint in ms (0 = not sent)")
    parser.add_argument(
        "--no-heartbeat",
        action="store_true",
        help="Do not send periodic timestamp frames",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    """
    Apply command-line overrides on top of environment settings.

    Raises:
        ValidationError: An override is out of range.
    """
    overrides: dict = {}

    if args.url:
        parts = urlsplit(args.url)
        overrides["WS_SCHEME"] = parts.scheme
        overrides["WS_HOST"] = parts.netloc
        overrides["WS_PATH"] = parts.path or "/"
    if args.topic:
        overrides["TOPIC"] = args.topic
    if args.sub_id:
        overrides["SUB_ID"] = args.sub_id
    if args.freq_ms is not None:
        overrides["FREQ_MS"] = args.freq_ms
    if args.no_heartbeat:
        overrides["HEARTBEAT_ENABLED"] = False
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level

    return Settings(**overrides)


async def main(settings: Settings) -> int:
    """
    Main async entry point.

    Returns:
        Process exit code.
    """
    logger.info("klinestream_starting", extra={"version": __version__})
    logger.info("config_loaded", extra={"config": settings.dump()})

    request = build_subscribe(settings.TOPIC, settings.SUB_ID, settings.FREQ_MS)
    session = KlineSession(
        url=settings.ws_url(),
        request=request,
        heartbeat_interval_sec=settings.HEARTBEAT_INTERVAL_SEC,
        close_grace_sec=settings.CLOSE_GRACE_SEC,
        heartbeat_enabled=settings.HEARTBEAT_ENABLED,
    )

    # Setup signal handlers
    interrupt = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", extra={"signal": sig.name})
        interrupt.set()

    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        cause = await session.run(interrupt)
    except KlineStreamError as e:
        logger.error(
            "session_failed",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 1
    finally:
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)

    logger.info("shutdown_complete", extra={"cause": cause.value})
    return 0


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Synchronous entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as e:
        parser.error(str(e))

    setup_logging(settings.LOG_LEVEL)

    try:
        exit_code = asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("klinestream_interrupted")
        exit_code = 0
    except Exception as e:
        logger.exception(
            "klinestream_crashed",
            extra={"error": str(e)},
        )
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
