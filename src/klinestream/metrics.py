"""
Session Counters Module
=======================

Per-session counters for the streaming client:
- Inbound frames, decoded ticks, control messages, decode errors
- Heartbeats sent
- Session uptime

Thread-safe; logged as a single summary when the session ends.
"""

import threading

from klinestream.utils_time import now_ms


class SessionStats:
    """
    Counters for one websocket session.

    Usage:
        stats = SessionStats()
        stats.inc_frames()
        stats.inc_ticks()
        summary = stats.snapshot()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frames_total = 0
        self._ticks_total = 0
        self._control_total = 0
        self._decode_errors_total = 0
        self._heartbeats_total = 0
        self._start_time_ms = now_ms()

    def inc_frames(self) -> None:
        with self._lock:
            self._frames_total += 1

    def inc_ticks(self) -> None:
        with self._lock:
            self._ticks_total += 1

    def inc_control(self) -> None:
        with self._lock:
            self._control_total += 1

    def inc_decode_errors(self) -> None:
        with self._lock:
            self._decode_errors_total += 1

    def inc_heartbeats(self) -> None:
        with self._lock:
            self._heartbeats_total += 1

    def snapshot(self) -> dict:
        """
        Get a consistent copy of all counters.

        Returns:
            Dictionary with totals and uptime_ms.
        """
        with self._lock:
            return {
                "frames_total": self._frames_total,
                "ticks_total": self._ticks_total,
                "control_total": self._control_total,
                "decode_errors_total": self._decode_errors_total,
                "heartbeats_total": self._heartbeats_total,
                "uptime_ms": now_ms() - self._start_time_ms,
            }
