#!/usr/bin/env python3
"""
Stream Smoke Test
=================

Runs one session against the live endpoint for a few seconds, then
interrupts it and prints the session counters.

Usage:
    python scripts/stream_smoke.py [seconds]
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from klinestream.config import Settings
from klinestream.logging_setup import setup_logging
from klinestream.protocol import build_subscribe
from klinestream.session import KlineSession


async def main(duration_sec: float) -> None:
    """Stream for duration_sec, then close gracefully."""
    setup_logging("INFO")
    settings = Settings()

    print("=" * 60)
    print(f"Stream Smoke Test: {settings.ws_url()} {settings.TOPIC}")
    print("=" * 60)

    session = KlineSession(
        url=settings.ws_url(),
        request=build_subscribe(settings.TOPIC, settings.SUB_ID, settings.FREQ_MS),
    )
    interrupt = asyncio.Event()
    asyncio.get_running_loop().call_later(duration_sec, interrupt.set)

    cause = await session.run(interrupt)
    stats = session.stats.snapshot()

    print()
    print(f"cause:         {cause.value}")
    print(f"frames:        {stats['frames_total']}")
    print(f"ticks:         {stats['ticks_total']}")
    print(f"control:       {stats['control_total']}")
    print(f"decode errors: {stats['decode_errors_total']}")
    print(f"heartbeats:    {stats['heartbeats_total']}")

    if stats["ticks_total"] == 0:
        print("✗ no ticks received")
        sys.exit(1)
    print("✓ ticks received")


if __name__ == "__main__":
    asyncio.run(main(float(sys.argv[1]) if len(sys.argv) > 1 else 10.0))
