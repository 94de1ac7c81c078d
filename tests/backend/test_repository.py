from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from flexask_monitor.exceptions import StorageCorruption
from flexask_monitor.models import PriceAlert, PricePoint, TrackedItem
from flexask_monitor.storage import repository as repository_module
from flexask_monitor.storage.repository import (
    ALERTS_KEY,
    CHECK_INTERVAL_KEY,
    TRACKED_ITEMS_KEY,
    JsonStateRepository,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_item(item_id: str = "tracked-1-prod-var", price: float = 100.0) -> TrackedItem:
    return TrackedItem(
        id=item_id,
        product_id="prod",
        variant_id="var",
        title="Jordan 1 Retro High",
        size="10",
        image_url="https://example.com/j1.png",
        current_price=price,
        baseline_price=price,
        last_checked=NOW,
        alert_threshold_percent=15.0,
        price_history=[
            PricePoint(price=price, timestamp=NOW),
            PricePoint(price=price - 5, timestamp=NOW + timedelta(minutes=30)),
        ],
        stockx_url="https://stockx.com/air-jordan-1",
    )


@pytest.fixture
def repository(tmp_path) -> JsonStateRepository:
    return JsonStateRepository(tmp_path)


def test_missing_keys_load_as_empty(repository: JsonStateRepository) -> None:
    assert repository.load_items() == []
    assert repository.load_alerts() == []
    assert repository.read(CHECK_INTERVAL_KEY, 30) == 30


def test_tracked_items_survive_save_and_load(repository: JsonStateRepository) -> None:
    inactive = make_item("tracked-2-prod-other", price=250.0)
    inactive.is_active = False
    items = [make_item(), inactive]

    repository.save_items(items)

    assert repository.load_items() == items


def test_alerts_survive_save_and_load(repository: JsonStateRepository) -> None:
    alert = PriceAlert(
        id="alert-1-tracked-1",
        item_id="tracked-1",
        title="Jordan 1",
        size="10",
        old_price=100.0,
        new_price=85.0,
        percentage_change=-15.0,
        timestamp=NOW,
    )

    repository.save_alerts([alert])

    assert repository.load_alerts() == [alert]


def test_read_raises_on_invalid_json(repository: JsonStateRepository) -> None:
    repository.file_path_for(TRACKED_ITEMS_KEY).write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageCorruption):
        repository.read(TRACKED_ITEMS_KEY)


@pytest.mark.parametrize(
    "contents",
    [
        "{not json",
        '{"id": "x"}',
        '[{"productId": "prod"}]',
        "[1, 2, 3]",
    ],
)
def test_corrupted_items_are_discarded(repository: JsonStateRepository, contents: str) -> None:
    path = repository.file_path_for(TRACKED_ITEMS_KEY)
    path.write_text(contents, encoding="utf-8")

    assert repository.load_items() == []
    assert path.read_text(encoding="utf-8").strip() == "[]"


def test_corrupted_alerts_are_discarded(repository: JsonStateRepository) -> None:
    repository.file_path_for(ALERTS_KEY).write_text("[{]", encoding="utf-8")

    assert repository.load_alerts() == []


def test_corrupted_setting_falls_back_to_default(repository: JsonStateRepository) -> None:
    path = repository.file_path_for(CHECK_INTERVAL_KEY)
    path.write_text("thirty", encoding="utf-8")

    assert repository.read_setting(CHECK_INTERVAL_KEY, 30) == 30
    assert path.read_text(encoding="utf-8") == "30"


def test_loader_normalises_non_numeric_prices(repository: JsonStateRepository) -> None:
    raw = make_item().to_dict()
    raw["currentPrice"] = "not a price"
    raw["alertThresholdPercent"] = None
    repository.write(TRACKED_ITEMS_KEY, [raw])

    (item,) = repository.load_items()

    assert item.current_price == 0.0
    assert item.alert_threshold_percent == 20.0


def test_delete_removes_key(repository: JsonStateRepository) -> None:
    repository.write(CHECK_INTERVAL_KEY, 5)
    repository.delete(CHECK_INTERVAL_KEY)
    repository.delete(CHECK_INTERVAL_KEY)

    assert repository.read(CHECK_INTERVAL_KEY) is None


def test_failed_write_keeps_previous_document(
    repository: JsonStateRepository, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = [make_item()]
    repository.save_items(original)

    def failing_replace(src, dst) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(repository_module.os, "replace", failing_replace)

    with pytest.raises(OSError, match="disk full"):
        repository.save_items([make_item(price=50.0)])

    monkeypatch.undo()
    assert repository.load_items() == original
    assert list(tmp_path.glob("*.tmp")) == []


def test_unserialisable_value_leaves_no_partial_file(repository: JsonStateRepository, tmp_path) -> None:
    repository.write(CHECK_INTERVAL_KEY, 30)

    with pytest.raises(TypeError):
        repository.write(CHECK_INTERVAL_KEY, {"interval": object()})

    assert repository.read(CHECK_INTERVAL_KEY) == 30
    assert list(tmp_path.glob("*.tmp")) == []
