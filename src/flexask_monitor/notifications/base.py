"""Notification abstractions for the price alert system."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from ..models import PriceAlert

logger = logging.getLogger(__name__)


def format_alert_message(alert: PriceAlert) -> str:
    """Describe the move, e.g. ``"Jordan 1 (10) dropped 20.0% to $80"``."""

    change = alert.percentage_change
    if change < 0:
        movement = f"dropped {abs(change):.1f}% to"
    elif change > 0:
        movement = f"rose {change:.1f}% to"
    else:
        movement = "unchanged at"
    return f"{alert.title} ({alert.size}) {movement} ${alert.new_price:g}"


class Notifier(ABC):
    """Base class for delivering alerts to the user."""

    @abstractmethod
    def send(self, alerts: Iterable[PriceAlert]) -> None:
        """Dispatch the provided alerts."""


class NullNotifier(Notifier):
    """Used when notifications are turned off."""

    def send(self, alerts: Iterable[PriceAlert]) -> None:
        _ = list(alerts)


class LogNotifier(Notifier):
    """Reports alerts through the logging system."""

    def __init__(self, level: int = logging.WARNING) -> None:
        self._level = level

    def send(self, alerts: Iterable[PriceAlert]) -> None:
        for alert in alerts:
            logger.log(self._level, "Flex ask price alert: %s", format_alert_message(alert))
