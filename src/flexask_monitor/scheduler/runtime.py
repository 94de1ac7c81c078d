"""Connects the polling scheduler to the monitor service and saved settings."""
from __future__ import annotations

import logging
from typing import Any

from ..services.monitor_service import MonitorService, MonitorTestResult
from ..services.settings_service import SettingsService
from .poller import CancelCheck, PollingScheduler

logger = logging.getLogger(__name__)


class MonitorRuntime:
    """Owns the scheduler and keeps the persisted monitoring flag in sync."""

    def __init__(self, monitor_service: MonitorService, settings: SettingsService) -> None:
        self.monitor_service = monitor_service
        self.settings = settings
        self.scheduler = PollingScheduler(settings.check_interval_minutes * 60, self._cycle)

    @property
    def watchlist(self):
        return self.monitor_service.watchlist

    @property
    def alerts(self):
        return self.monitor_service.alerts

    def _cycle(self, is_cancelled: CancelCheck) -> None:
        logger.info("Checking flex ask prices for tracked items")
        self.monitor_service.check_all(is_cancelled)

    def start(self) -> bool:
        self.settings.monitoring_active = True
        return self.scheduler.start()

    def stop(self) -> bool:
        self.settings.monitoring_active = False
        return self.scheduler.stop()

    def shutdown(self) -> None:
        """Stop polling without clearing the saved flag, so a restart resumes."""

        self.scheduler.stop()

    def resume_if_active(self) -> bool:
        """Restart monitoring if it was running when the process last exited."""

        if not self.settings.monitoring_active:
            return False
        logger.info("Resuming flex ask monitoring")
        return self.scheduler.start()

    def update_interval(self, minutes: int) -> None:
        self.settings.check_interval_minutes = minutes
        self.scheduler.update_interval(minutes * 60)

    def run_test(self) -> MonitorTestResult:
        return self.monitor_service.test_run()

    def status(self) -> dict[str, Any]:
        return {
            "status": self.scheduler.status.value,
            "isMonitoring": self.scheduler.is_running,
            "checkIntervalMinutes": self.settings.check_interval_minutes,
            "globalThresholdPercent": self.settings.global_threshold_percent,
            "trackedItems": len(self.watchlist.all_items()),
            "activeItems": len(self.watchlist.active_items()),
            "unreadAlerts": len(self.alerts.unread_alerts()),
        }
