"""Stores the price alerts raised by the monitor."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from ..models import PriceAlert
from ..storage.repository import JsonStateRepository


@dataclass(slots=True)
class AlertService:
    """Alert list kept newest first and persisted on every change."""

    repository: JsonStateRepository
    max_alerts: Optional[int] = None
    alerts: list[PriceAlert] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def load(self) -> None:
        with self._lock:
            self.alerts = self.repository.load_alerts()

    def all_alerts(self) -> list[PriceAlert]:
        with self._lock:
            return list(self.alerts)

    def unread_alerts(self) -> list[PriceAlert]:
        with self._lock:
            return [alert for alert in self.alerts if not alert.is_read]

    def add(self, alert: PriceAlert) -> None:
        with self._lock:
            self.alerts.insert(0, alert)
            if self.max_alerts is not None:
                del self.alerts[self.max_alerts :]
            self._save()

    def mark_read(self, alert_id: str) -> PriceAlert:
        with self._lock:
            for alert in self.alerts:
                if alert.id == alert_id:
                    alert.is_read = True
                    self._save()
                    return alert
            raise KeyError(f"Unknown alert: {alert_id}")

    def mark_all_read(self) -> int:
        """Mark every alert read and return how many changed."""

        with self._lock:
            changed = 0
            for alert in self.alerts:
                if not alert.is_read:
                    alert.is_read = True
                    changed += 1
            if changed:
                self._save()
            return changed

    def clear(self) -> None:
        with self._lock:
            self.alerts = []
            self._save()

    def _save(self) -> None:
        self.repository.save_alerts(self.alerts)
