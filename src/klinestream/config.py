"""
Configuration Module
====================

Application configuration using pydantic-settings.
All settings can be overridden via environment variables or a .env file;
command-line flags in klinestream.main take precedence over both.

Environment variables:
    WS_SCHEME               - Endpoint scheme, ws or wss (default: wss)
    WS_HOST                 - Endpoint host (default: api.huobi.pro)
    WS_PATH                 - Endpoint path (default: /ws)
    TOPIC                   - Kline topic (default: market.btcusdt.kline.1min)
    SUB_ID                  - Subscription correlation id (default: id1)
    FREQ_MS                 - Throttle hint, 0 to omit (default: 5000)
    HEARTBEAT_ENABLED       - Send timestamp text frames (default: true)
    HEARTBEAT_INTERVAL_SEC  - Heartbeat period (default: 1.0)
    CLOSE_GRACE_SEC         - Wait for the peer's close after ours (default: 1.0)
    LOG_LEVEL               - Logging level (default: INFO)
"""

import logging
import re
from typing import Literal
from urllib.parse import urlunsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from klinestream.protocol import BTC_KLINE_TOPIC

TOPIC_PATTERN = re.compile(r"^market\.[a-z0-9]+\.kline\.[0-9a-z]+$")


class Settings(BaseSettings):
    """
    Application settings.

    Example: TOPIC=market.ethusdt.kline.5min python -m klinestream
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Endpoint
    WS_SCHEME: Literal["ws", "wss"] = Field(
        default="wss",
        description="WebSocket URL scheme",
    )
    WS_HOST: str = Field(
        default="api.huobi.pro",
        description="WebSocket host (optionally host:port)",
    )
    WS_PATH: str = Field(
        default="/ws",
        description="WebSocket path",
    )

    # Subscription
    TOPIC: str = Field(
        default=BTC_KLINE_TOPIC,
        description="Kline topic, market.<symbol>.kline.<interval>",
    )
    SUB_ID: str = Field(
        default="id1",
        description="Correlation id sent with the subscribe request",
    )
    FREQ_MS: int = Field(
        default=5000,
        ge=0,
        description="Server-side throttle hint in ms (0 = not sent)",
    )

    # Session loop
    HEARTBEAT_ENABLED: bool = Field(
        default=True,
        description="Send a timestamp text frame every HEARTBEAT_INTERVAL_SEC",
    )
    HEARTBEAT_INTERVAL_SEC: float = Field(
        default=1.0,
        gt=0.0,
        description="Heartbeat period (seconds)",
    )
    CLOSE_GRACE_SEC: float = Field(
        default=1.0,
        gt=0.0,
        description="How long to wait for the peer's close frame after interrupt (seconds)",
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("WS_PATH")
    @classmethod
    def path_absolute(cls, v: str) -> str:
        """Ensure the path starts with a slash."""
        return v if v.startswith("/") else f"/{v}"

    @field_validator("TOPIC")
    @classmethod
    def topic_format(cls, v: str) -> str:
        """Warn (don't fail) on topics outside the kline naming scheme."""
        if not TOPIC_PATTERN.match(v):
            logger = logging.getLogger(__name__)
            logger.warning(
                f"config_topic_unusual: {v} is not market.<symbol>.kline.<interval>"
            )
        return v

    def ws_url(self) -> str:
        """
        Assemble the endpoint URL.

        Returns:
            e.g. "wss://api.huobi.pro/ws"
        """
        return urlunsplit((self.WS_SCHEME, self.WS_HOST, self.WS_PATH, "", ""))

    def dump(self) -> dict:
        """
        Dump current configuration as dictionary.
        Useful for logging configuration at startup.
        """
        return {
            "ws_url": self.ws_url(),
            "topic": self.TOPIC,
            "sub_id": self.SUB_ID,
            "freq_ms": self.FREQ_MS,
            "heartbeat_enabled": self.HEARTBEAT_ENABLED,
            "heartbeat_interval_sec": self.HEARTBEAT_INTERVAL_SEC,
            "close_grace_sec": self.CLOSE_GRACE_SEC,
            "log_level": self.LOG_LEVEL,
        }
