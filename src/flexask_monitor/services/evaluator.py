"""Decides whether a freshly fetched flex ask is an alertable drop."""
from __future__ import annotations

from datetime import datetime

from ..models import PriceAlert, TrackedItem, make_alert_id


def percentage_change(baseline: float, new_price: float) -> float | None:
    """Relative change of ``new_price`` against ``baseline`` in percent.

    Returns ``None`` when the baseline is not positive since the change is
    undefined there.
    """

    if baseline <= 0:
        return None
    return (new_price - baseline) / baseline * 100


def is_alertable(item: TrackedItem, new_price: float) -> bool:
    change = percentage_change(item.baseline_price, new_price)
    if change is None:
        return False
    return change <= -item.alert_threshold_percent


def build_alert(item: TrackedItem, new_price: float, at: datetime) -> PriceAlert | None:
    """Return a ``PriceAlert`` if ``new_price`` drops past the item's threshold.

    The percentage is frozen into the alert; later baseline edits do not
    change it.
    """

    change = percentage_change(item.baseline_price, new_price)
    if change is None or change > -item.alert_threshold_percent:
        return None
    return PriceAlert(
        id=make_alert_id(item.id, at),
        item_id=item.id,
        title=item.title,
        size=item.size,
        old_price=item.current_price,
        new_price=new_price,
        percentage_change=change,
        timestamp=at,
    )
