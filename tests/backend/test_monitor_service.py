from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Iterable

import pytest

from flexask_monitor.exceptions import MarketDataError
from flexask_monitor.models import MarketQuote, PriceAlert
from flexask_monitor.notifications.base import Notifier
from flexask_monitor.services.alert_service import AlertService
from flexask_monitor.services.monitor_service import MonitorService
from flexask_monitor.services.watchlist_service import WatchlistService
from flexask_monitor.storage.repository import JsonStateRepository

START = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.alerts: list[PriceAlert] = []

    def send(self, alerts: Iterable[PriceAlert]) -> None:
        self.alerts.extend(list(alerts))


class BrokenNotifier(Notifier):
    def send(self, alerts: Iterable[PriceAlert]) -> None:
        raise RuntimeError("notification permission denied")


class ScriptedClient:
    """Returns queued flex asks per variant; an exception in the queue is raised."""

    def __init__(self, prices: dict[str, list[object]]) -> None:
        self._prices = prices
        self.requests: list[tuple[str, str]] = []

    def fetch_market_data(self, product_id: str, variant_id: str) -> MarketQuote:
        self.requests.append((product_id, variant_id))
        value = self._prices[variant_id].pop(0)
        if isinstance(value, Exception):
            raise value
        return MarketQuote(product_id=product_id, variant_id=variant_id, flex_lowest_ask=value)


class Clock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def repository(tmp_path) -> JsonStateRepository:
    return JsonStateRepository(tmp_path)


@pytest.fixture
def watchlist(repository: JsonStateRepository) -> WatchlistService:
    return WatchlistService(repository=repository)


@pytest.fixture
def alerts(repository: JsonStateRepository) -> AlertService:
    return AlertService(repository=repository)


def build_service(client, watchlist, alerts, notifier=None, sleeps=None) -> MonitorService:
    return MonitorService(
        client=client,
        watchlist=watchlist,
        alerts=alerts,
        notifier=notifier or RecordingNotifier(),
        sleep=(sleeps.append if sleeps is not None else (lambda seconds: None)),
        clock=Clock(),
    )


def track(watchlist: WatchlistService, variant_id: str, price: float = 100.0, threshold: float = 20.0):
    return watchlist.add_item(
        product_id="prod",
        variant_id=variant_id,
        title=f"Item {variant_id}",
        size="10",
        price=price,
        alert_threshold_percent=threshold,
        now=START,
    )


def test_drop_past_threshold_creates_one_unread_alert(watchlist, alerts) -> None:
    item = track(watchlist, "a", price=100.0, threshold=10.0)
    notifier = RecordingNotifier()
    service = build_service(ScriptedClient({"a": [85.0]}), watchlist, alerts, notifier)

    alert = service.check_item(item)

    assert alert is not None
    assert alerts.all_alerts() == [alert]
    assert alert.percentage_change == pytest.approx(-15.0)
    assert alert.old_price == 100.0
    assert alert.new_price == 85.0
    assert alert.is_read is False
    assert notifier.alerts == [alert]
    assert item.current_price == 85.0
    assert item.baseline_price == 100.0

    before = alert.to_dict()
    alerts.mark_read(alert.id)
    after = alerts.all_alerts()[0].to_dict()
    assert after.pop("isRead") is True
    before.pop("isRead")
    assert after == before


def test_small_drop_records_price_without_alert(watchlist, alerts) -> None:
    item = track(watchlist, "a", price=100.0, threshold=20.0)
    service = build_service(ScriptedClient({"a": [81.0]}), watchlist, alerts)

    assert service.check_item(item) is None
    assert alerts.all_alerts() == []
    assert [point.price for point in item.price_history] == [100.0, 81.0]


def test_unchanged_or_missing_price_is_not_recorded(watchlist, alerts) -> None:
    item = track(watchlist, "a", price=100.0)
    service = build_service(ScriptedClient({"a": [100.0, None, 0.0]}), watchlist, alerts)

    for _ in range(3):
        assert service.check_item(item) is None

    assert len(item.price_history) == 1


def test_zero_baseline_records_price_but_never_alerts(watchlist, alerts) -> None:
    item = track(watchlist, "a", price=0.0)
    service = build_service(ScriptedClient({"a": [50.0]}), watchlist, alerts)

    assert service.check_item(item) is None
    assert item.current_price == 50.0
    assert alerts.all_alerts() == []


def test_check_all_continues_after_fetch_failure(watchlist, alerts) -> None:
    track(watchlist, "a")
    track(watchlist, "b")
    track(watchlist, "c")
    client = ScriptedClient({"a": [70.0], "b": [MarketDataError("503 Service Unavailable")], "c": [60.0]})
    sleeps: list[float] = []
    service = build_service(client, watchlist, alerts, sleeps=sleeps)

    checked = service.check_all()

    assert checked == 3
    assert client.requests == [("prod", "a"), ("prod", "b"), ("prod", "c")]
    assert sleeps == [1.0, 1.0]
    assert sorted(alert.new_price for alert in alerts.all_alerts()) == [60.0, 70.0]


def test_check_all_skips_inactive_items(watchlist, alerts) -> None:
    track(watchlist, "a")
    inactive = track(watchlist, "b")
    watchlist.toggle_active(inactive.id)
    client = ScriptedClient({"a": [99.0], "b": [1.0]})

    build_service(client, watchlist, alerts).check_all()

    assert client.requests == [("prod", "a")]


def test_check_all_stops_once_cancelled(watchlist, alerts) -> None:
    track(watchlist, "a")
    track(watchlist, "b")
    client = ScriptedClient({"a": [50.0], "b": [50.0]})
    cancelled = {"value": False}

    def cancel_after_sleep(seconds: float) -> None:
        cancelled["value"] = True

    service = MonitorService(
        client=client,
        watchlist=watchlist,
        alerts=alerts,
        notifier=RecordingNotifier(),
        sleep=cancel_after_sleep,
        clock=Clock(),
    )

    assert service.check_all(lambda: cancelled["value"]) == 1
    assert client.requests == [("prod", "a")]


def test_result_fetched_after_cancellation_is_discarded(watchlist, alerts) -> None:
    item = track(watchlist, "a")
    service = build_service(ScriptedClient({"a": [10.0]}), watchlist, alerts)

    assert service.check_item(item, lambda: True) is None
    assert item.current_price == 100.0
    assert alerts.all_alerts() == []


def test_history_never_exceeds_fifty_entries(watchlist, alerts) -> None:
    item = track(watchlist, "a", price=1000.0)
    prices = [1000.0 - step for step in range(1, 71)]
    service = build_service(ScriptedClient({"a": list(prices)}), watchlist, alerts)

    for _ in prices:
        service.check_all()

    assert len(item.price_history) == 50
    assert item.price_history[0].price == prices[20]
    assert item.price_history[-1].price == prices[-1]


def test_failing_notifier_does_not_lose_alert(watchlist, alerts) -> None:
    item = track(watchlist, "a")
    service = build_service(ScriptedClient({"a": [50.0]}), watchlist, alerts, notifier=BrokenNotifier())

    alert = service.check_item(item)

    assert alerts.all_alerts() == [alert]


def test_test_run_alerts_on_any_movement(watchlist, alerts) -> None:
    moved = track(watchlist, "a", price=100.0)
    steady = track(watchlist, "b", price=100.0)
    track(watchlist, "c", price=100.0)
    client = ScriptedClient({"a": [101.5], "b": [100.0], "c": [MarketDataError("timeout")]})
    sleeps: list[float] = []
    service = build_service(client, watchlist, alerts, sleeps=sleeps)

    result = service.test_run()

    assert result.checked == 2
    assert result.alerts_generated == 1
    alert = result.alerts[0]
    assert alert.id.startswith("test-alert-")
    assert alert.item_id == moved.id
    assert alert.percentage_change == pytest.approx(1.5)
    assert moved.current_price == 101.5
    assert steady.current_price == 100.0
    assert sleeps == [0.5, 0.5]
