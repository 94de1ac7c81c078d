"""Persisted monitor settings."""
from __future__ import annotations

from dataclasses import dataclass

from ..config import CHECK_INTERVAL_OPTIONS_MINUTES
from ..models import DEFAULT_THRESHOLD_PERCENT
from ..storage.repository import (
    CHECK_INTERVAL_KEY,
    GLOBAL_THRESHOLD_KEY,
    MONITORING_ACTIVE_KEY,
    JsonStateRepository,
)


@dataclass(slots=True)
class SettingsService:
    """Reads and writes the user's monitor settings."""

    repository: JsonStateRepository
    default_interval_minutes: int = 30
    default_threshold_percent: float = DEFAULT_THRESHOLD_PERCENT

    @property
    def check_interval_minutes(self) -> int:
        value = self.repository.read_setting(CHECK_INTERVAL_KEY, self.default_interval_minutes)
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            return self.default_interval_minutes
        return minutes if minutes in CHECK_INTERVAL_OPTIONS_MINUTES else self.default_interval_minutes

    @check_interval_minutes.setter
    def check_interval_minutes(self, minutes: int) -> None:
        if minutes not in CHECK_INTERVAL_OPTIONS_MINUTES:
            options = ", ".join(str(option) for option in CHECK_INTERVAL_OPTIONS_MINUTES)
            raise ValueError(f"Check interval must be one of {options} minutes")
        self.repository.write(CHECK_INTERVAL_KEY, minutes)

    @property
    def global_threshold_percent(self) -> float:
        value = self.repository.read_setting(GLOBAL_THRESHOLD_KEY, self.default_threshold_percent)
        try:
            threshold = float(value)
        except (TypeError, ValueError):
            return self.default_threshold_percent
        return threshold if 0 < threshold <= 100 else self.default_threshold_percent

    @global_threshold_percent.setter
    def global_threshold_percent(self, percent: float) -> None:
        if not 0 < percent <= 100:
            raise ValueError("Alert threshold must be between 0 and 100 percent")
        self.repository.write(GLOBAL_THRESHOLD_KEY, percent)

    @property
    def monitoring_active(self) -> bool:
        return self.repository.read_setting(MONITORING_ACTIVE_KEY, False) is True

    @monitoring_active.setter
    def monitoring_active(self, active: bool) -> None:
        self.repository.write(MONITORING_ACTIVE_KEY, bool(active))
