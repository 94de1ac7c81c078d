"""Configuration settings for the flex ask monitor."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

CHECK_INTERVAL_OPTIONS_MINUTES: tuple[int, ...] = (1, 5, 10, 30, 60)
"""Polling intervals offered to the user."""


@dataclass(slots=True)
class PollingConfig:
    """Settings related to polling StockX for flex ask prices."""

    interval_minutes: int = 30
    """Default time between two monitoring cycles."""

    request_delay_seconds: float = 1.0
    """Pause between two items of a cycle to stay under the API rate limit."""

    test_request_delay_seconds: float = 0.5
    """Pause between two items of a manual test run."""


@dataclass(slots=True)
class StockXConfig:
    """Credentials and endpoint for the StockX public API."""

    api_base_url: str = "https://api.stockx.com/v2"
    api_key: str = ""
    access_token: str = ""
    timeout_seconds: float = 10


@dataclass(slots=True)
class AlertConfig:
    """Settings controlling how price drops are reported."""

    default_threshold_percent: float = 20.0
    history_limit: int = 50
    max_alerts: Optional[int] = None
    """Keep at most this many alerts; ``None`` keeps all of them."""

    notifications_enabled: bool = True


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    data_directory: Path = field(default_factory=lambda: Path("data"))
    polling: PollingConfig = field(default_factory=PollingConfig)
    stockx: StockXConfig = field(default_factory=StockXConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.data_directory.mkdir(parents=True, exist_ok=True)


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build an ``AppConfig`` from environment variables."""

    env = os.environ if environ is None else environ
    config = AppConfig()
    if env.get("FLEXASK_ENV") == "production":
        config.environment = "production"
    if env.get("FLEXASK_DATA_DIR"):
        config.data_directory = Path(env["FLEXASK_DATA_DIR"])
    config.stockx.api_key = env.get("STOCKX_API_KEY", "")
    config.stockx.access_token = env.get("STOCKX_ACCESS_TOKEN", "")
    if env.get("STOCKX_API_BASE_URL"):
        config.stockx.api_base_url = env["STOCKX_API_BASE_URL"]
    return config


DEFAULT_CONFIG = load_config()
