"""Coordinates fetching, evaluation and alerting for tracked flex asks."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from ..exceptions import MarketDataError
from ..models import MarketQuote, PriceAlert, TrackedItem, make_alert_id
from ..notifications.base import Notifier
from .alert_service import AlertService
from .evaluator import build_alert, percentage_change
from .watchlist_service import WatchlistService

logger = logging.getLogger(__name__)

TEST_ALERT_MIN_DIFFERENCE = 1.0


class MarketDataSource(Protocol):
    def fetch_market_data(self, product_id: str, variant_id: str) -> MarketQuote: ...


def _never_cancelled() -> bool:
    return False


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class MonitorTestResult:
    """Outcome of a manual test run."""

    checked: int = 0
    alerts: list[PriceAlert] = field(default_factory=list)

    @property
    def alerts_generated(self) -> int:
        return len(self.alerts)


@dataclass(slots=True)
class MonitorService:
    """Runs the fetch, evaluate and alert cycle over the watch list."""

    client: MarketDataSource
    watchlist: WatchlistService
    alerts: AlertService
    notifier: Notifier
    request_delay_seconds: float = 1.0
    test_request_delay_seconds: float = 0.5
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], datetime] = _utc_now

    def check_all(self, is_cancelled: Callable[[], bool] = _never_cancelled) -> int:
        """Check every active item in list order, one request at a time.

        Returns the number of items checked. Stops before the next request
        once ``is_cancelled`` reports true.
        """

        items = self.watchlist.active_items()
        checked = 0
        for index, item in enumerate(items):
            if is_cancelled():
                logger.info("Monitoring cycle cancelled after %s of %s items", checked, len(items))
                break
            if index:
                self.sleep(self.request_delay_seconds)
                if is_cancelled():
                    logger.info("Monitoring cycle cancelled after %s of %s items", checked, len(items))
                    break
            self.check_item(item, is_cancelled)
            checked += 1
        logger.info("Checked flex ask prices for %s items", checked)
        return checked

    def check_item(
        self,
        item: TrackedItem,
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> PriceAlert | None:
        """Fetch the current flex ask for ``item`` and raise an alert on a large drop."""

        quote = self._fetch(item)
        if quote is None:
            return None
        if is_cancelled():
            logger.debug("Discarding flex ask for %s fetched after cancellation", item.id)
            return None

        new_price = quote.flex_lowest_ask
        if not new_price:
            logger.debug("No flex ask listed for %s (%s)", item.title, item.size)
            return None
        if new_price == item.current_price:
            return None

        now = self.clock()
        if percentage_change(item.baseline_price, new_price) is None:
            logger.warning("Skipping threshold check for %s: baseline price is %s", item.id, item.baseline_price)
        alert = build_alert(item, new_price, now)
        if self.watchlist.record_price(item.id, new_price, now) is None:
            logger.debug("Item %s was removed while its price was being fetched", item.id)
            return None
        if alert is not None:
            self._raise_alert(alert)
        return alert

    def test_run(self, is_cancelled: Callable[[], bool] = _never_cancelled) -> MonitorTestResult:
        """Check all active items and alert on any movement of at least $1.

        Used to confirm the monitor works without waiting for a real drop.
        """

        summary = MonitorTestResult()
        for index, item in enumerate(self.watchlist.active_items()):
            if is_cancelled():
                break
            if index:
                self.sleep(self.test_request_delay_seconds)
            quote = self._fetch(item)
            if quote is None or not quote.flex_lowest_ask:
                continue
            new_price = quote.flex_lowest_ask
            summary.checked += 1

            difference = abs(new_price - item.baseline_price)
            change = percentage_change(item.baseline_price, new_price)
            logger.info(
                "Test check %s (%s): current $%s, baseline $%s, change %s",
                item.title,
                item.size,
                new_price,
                item.baseline_price,
                "n/a" if change is None else f"{change:.2f}%",
            )
            if difference < TEST_ALERT_MIN_DIFFERENCE and new_price == item.current_price:
                continue

            now = self.clock()
            alert = None
            if change is not None:
                alert = PriceAlert(
                    id=make_alert_id(item.id, now, prefix="test-alert"),
                    item_id=item.id,
                    title=item.title,
                    size=item.size,
                    old_price=item.current_price,
                    new_price=new_price,
                    percentage_change=change,
                    timestamp=now,
                )
            if self.watchlist.record_price(item.id, new_price, now) is None:
                continue
            if alert is not None:
                self._raise_alert(alert)
                summary.alerts.append(alert)
        return summary

    def _fetch(self, item: TrackedItem) -> MarketQuote | None:
        try:
            return self.client.fetch_market_data(item.product_id, item.variant_id)
        except MarketDataError as exc:
            logger.warning("Error checking %s (%s): %s", item.title, item.size, exc)
            return None

    def _raise_alert(self, alert: PriceAlert) -> None:
        self.alerts.add(alert)
        try:
            self.notifier.send([alert])
        except Exception:
            logger.exception("Failed to deliver notification for alert %s", alert.id)
