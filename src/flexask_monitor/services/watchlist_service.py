"""Service for managing the list of tracked variants."""
from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Optional

from ..exceptions import ItemAlreadyTracked
from ..models import DEFAULT_HISTORY_LIMIT, DEFAULT_THRESHOLD_PERCENT, PricePoint, TrackedItem, make_item_id
from ..storage.repository import JsonStateRepository

DEMO_ITEMS: tuple[dict[str, object], ...] = (
    {
        "product_id": "c54bdfe8-b581-463e-bd1a-899b2054e127",
        "variant_id": "2f21dd38-995a-4ba6-9492-c3b197bfb5a2",
        "title": "Denim Tears The Cotton Wreath Sweatshirt Black",
        "size": "M",
        "price": 500.0,
    },
    {
        "product_id": "44d29094-a26d-4021-b3ab-8df473a96bb2",
        "variant_id": "a272d872-921e-4902-934e-9e2200c61d01",
        "title": "Denim Tears The Cotton Wreath Sweatpants Black",
        "size": "XXL",
        "price": 399.0,
    },
    {
        "product_id": "69a64445-e9b8-4239-8533-1c2e2d58d6f4",
        "variant_id": "2cd4d330-f76a-44c7-acd6-74570f6f911f",
        "title": "Denim Tears The Cotton Wreath Shorts Black",
        "size": "L",
        "price": 271.0,
    },
)
DEMO_THRESHOLD_PERCENT = 1.0
DEMO_IMAGE_URL = "/placeholder-shoe.png"


def stockx_url_for(title: str) -> str:
    return "https://stockx.com/" + re.sub(r"\s+", "-", title.strip().lower())


def _check_threshold(percent: float) -> None:
    if not 0 < percent <= 100:
        raise ValueError("Alert threshold must be between 0 and 100 percent")


@dataclass(slots=True)
class WatchlistService:
    """Manages the tracked items and writes every change through to storage."""

    repository: JsonStateRepository
    history_limit: int = DEFAULT_HISTORY_LIMIT
    items: dict[str, TrackedItem] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def load(self) -> None:
        with self._lock:
            self.items = {item.id: item for item in self.repository.load_items()}

    def all_items(self) -> list[TrackedItem]:
        with self._lock:
            return list(self.items.values())

    def active_items(self) -> list[TrackedItem]:
        with self._lock:
            return [item for item in self.items.values() if item.is_active]

    def get(self, item_id: str) -> TrackedItem:
        with self._lock:
            if item_id not in self.items:
                raise KeyError(f"Unknown item: {item_id}")
            return self.items[item_id]

    def find(self, product_id: str, variant_id: str) -> Optional[TrackedItem]:
        with self._lock:
            for item in self.items.values():
                if item.product_id == product_id and item.variant_id == variant_id:
                    return item
            return None

    def add_item(
        self,
        product_id: str,
        variant_id: str,
        title: str,
        size: str,
        price: float,
        image_url: str = "",
        alert_threshold_percent: float = DEFAULT_THRESHOLD_PERCENT,
        stockx_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TrackedItem:
        """Start tracking a variant; ``price`` becomes both baseline and current price."""

        _check_threshold(alert_threshold_percent)
        now = now or datetime.now(UTC)
        with self._lock:
            if self.find(product_id, variant_id) is not None:
                raise ItemAlreadyTracked(product_id, variant_id)
            item = TrackedItem(
                id=make_item_id(product_id, variant_id, now),
                product_id=product_id,
                variant_id=variant_id,
                title=title,
                size=size,
                image_url=image_url,
                current_price=price,
                baseline_price=price,
                last_checked=now,
                alert_threshold_percent=alert_threshold_percent,
                price_history=[PricePoint(price=price, timestamp=now)],
                stockx_url=stockx_url,
            )
            self.items[item.id] = item
            self._save()
            return item

    def add_demo_items(self, now: Optional[datetime] = None) -> list[TrackedItem]:
        """Track the demo variants that are not tracked yet."""

        added: list[TrackedItem] = []
        with self._lock:
            for demo in DEMO_ITEMS:
                if self.find(str(demo["product_id"]), str(demo["variant_id"])) is not None:
                    continue
                added.append(
                    self.add_item(
                        product_id=str(demo["product_id"]),
                        variant_id=str(demo["variant_id"]),
                        title=str(demo["title"]),
                        size=str(demo["size"]),
                        price=float(demo["price"]),
                        image_url=DEMO_IMAGE_URL,
                        alert_threshold_percent=DEMO_THRESHOLD_PERCENT,
                        stockx_url=stockx_url_for(str(demo["title"])),
                        now=now,
                    )
                )
        return added

    def remove_item(self, item_id: str) -> TrackedItem:
        with self._lock:
            item = self.get(item_id)
            del self.items[item_id]
            self._save()
            return item

    def toggle_active(self, item_id: str) -> TrackedItem:
        with self._lock:
            item = self.get(item_id)
            item.is_active = not item.is_active
            self._save()
            return item

    def update_threshold(self, item_id: str, alert_threshold_percent: float) -> TrackedItem:
        _check_threshold(alert_threshold_percent)
        with self._lock:
            item = self.get(item_id)
            item.alert_threshold_percent = alert_threshold_percent
            self._save()
            return item

    def record_price(self, item_id: str, price: float, at: datetime) -> Optional[TrackedItem]:
        """Record a fetched price; returns ``None`` if the item was removed meanwhile."""

        with self._lock:
            item = self.items.get(item_id)
            if item is None:
                return None
            item.record_price(price, at, limit=self.history_limit)
            self._save()
            return item

    def _save(self) -> None:
        self.repository.save_items(self.items.values())
