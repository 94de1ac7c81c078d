"""Domain models used throughout the flex ask monitor."""
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

DEFAULT_THRESHOLD_PERCENT = 20.0
DEFAULT_HISTORY_LIMIT = 50


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def make_item_id(product_id: str, variant_id: str, created_at: datetime) -> str:
    return f"tracked-{epoch_millis(created_at)}-{product_id}-{variant_id}"


def make_alert_id(item_id: str, created_at: datetime, prefix: str = "alert") -> str:
    return f"{prefix}-{epoch_millis(created_at)}-{item_id}"


def _number(value: Any, default: float) -> float:
    """Coerce stored numbers the lenient way, falling back to ``default``."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


@dataclass(slots=True)
class PricePoint:
    """A single flex ask observation."""

    price: float
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PricePoint:
        return cls(price=_number(data.get("price"), 0.0), timestamp=datetime.fromisoformat(data["timestamp"]))


@dataclass(slots=True)
class TrackedItem:
    """A StockX product variant whose flex ask is being monitored."""

    id: str
    product_id: str
    variant_id: str
    title: str
    size: str
    image_url: str
    current_price: float
    baseline_price: float
    last_checked: datetime
    alert_threshold_percent: float = DEFAULT_THRESHOLD_PERCENT
    is_active: bool = True
    price_history: list[PricePoint] = field(default_factory=list)
    stockx_url: Optional[str] = None

    def record_price(self, price: float, at: datetime, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        """Store ``price`` as the current flex ask and append it to the history.

        History stays ordered by timestamp: a clock that moved backwards is
        clamped to the previous entry. Only the newest ``limit`` points are kept.
        """

        if self.price_history and at < self.price_history[-1].timestamp:
            at = self.price_history[-1].timestamp
        self.current_price = price
        self.last_checked = at
        self.price_history.append(PricePoint(price=price, timestamp=at))
        if len(self.price_history) > limit:
            del self.price_history[: len(self.price_history) - limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "variantId": self.variant_id,
            "title": self.title,
            "size": self.size,
            "imageUrl": self.image_url,
            "currentPrice": self.current_price,
            "baselinePrice": self.baseline_price,
            "lastChecked": self.last_checked.isoformat(),
            "alertThresholdPercent": self.alert_threshold_percent,
            "isActive": self.is_active,
            "priceHistory": [point.to_dict() for point in self.price_history],
            "stockxUrl": self.stockx_url,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TrackedItem:
        """Rebuild an item from its stored form.

        Missing identifiers raise ``KeyError``; prices that are not numbers
        are read as 0 and an unusable threshold falls back to the default.
        """

        history = [PricePoint.from_dict(point) for point in data.get("priceHistory") or []]
        last_checked = data.get("lastChecked")
        if last_checked:
            checked_at = datetime.fromisoformat(last_checked)
        elif history:
            checked_at = history[-1].timestamp
        else:
            raise KeyError("lastChecked")
        threshold = _number(data.get("alertThresholdPercent"), DEFAULT_THRESHOLD_PERCENT) or DEFAULT_THRESHOLD_PERCENT
        return cls(
            id=str(data["id"]),
            product_id=str(data["productId"]),
            variant_id=str(data["variantId"]),
            title=str(data.get("title") or ""),
            size=str(data.get("size") or ""),
            image_url=str(data.get("imageUrl") or ""),
            current_price=_number(data.get("currentPrice"), 0.0),
            baseline_price=_number(data.get("baselinePrice"), 0.0),
            last_checked=checked_at,
            alert_threshold_percent=threshold,
            is_active=bool(data.get("isActive", True)),
            price_history=history,
            stockx_url=data.get("stockxUrl"),
        )


@dataclass(slots=True)
class PriceAlert:
    """A flex ask drop that crossed an item's alert threshold."""

    id: str
    item_id: str
    title: str
    size: str
    old_price: float
    new_price: float
    percentage_change: float
    timestamp: datetime
    is_read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "itemId": self.item_id,
            "title": self.title,
            "size": self.size,
            "oldPrice": self.old_price,
            "newPrice": self.new_price,
            "percentageChange": self.percentage_change,
            "timestamp": self.timestamp.isoformat(),
            "isRead": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PriceAlert:
        return cls(
            id=str(data["id"]),
            item_id=str(data["itemId"]),
            title=str(data.get("title") or ""),
            size=str(data.get("size") or ""),
            old_price=_number(data.get("oldPrice"), 0.0),
            new_price=_number(data.get("newPrice"), 0.0),
            percentage_change=_number(data.get("percentageChange"), 0.0),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            is_read=bool(data.get("isRead", False)),
        )


@dataclass(slots=True)
class MarketQuote:
    """Market data for one variant as reported by StockX."""

    product_id: str
    variant_id: str
    flex_lowest_ask: Optional[float] = None
    lowest_ask: Optional[float] = None
    highest_bid: Optional[float] = None
    currency_code: str = "USD"

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "variantId": self.variant_id,
            "flexLowestAskAmount": self.flex_lowest_ask,
            "lowestAskAmount": self.lowest_ask,
            "highestBidAmount": self.highest_bid,
            "currencyCode": self.currency_code,
        }
