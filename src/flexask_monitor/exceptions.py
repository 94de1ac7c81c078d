"""Exceptions raised by the flex ask monitor."""
from __future__ import annotations

from typing import Optional


class FlexAskMonitorError(Exception):
    """Base class for errors raised by this package."""


class MarketDataError(FlexAskMonitorError):
    """Market data could not be retrieved or understood.

    ``status_code`` holds the HTTP status StockX answered with, if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VariantNotFound(MarketDataError):
    """The product's market data does not list the requested variant."""

    def __init__(self, product_id: str, variant_id: str) -> None:
        super().__init__(f"Variant {variant_id} not found in market data for {product_id}")
        self.product_id = product_id
        self.variant_id = variant_id


class StorageCorruption(FlexAskMonitorError):
    """A stored JSON blob could not be parsed."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored data for {key!r} is malformed: {reason}")
        self.key = key


class ItemAlreadyTracked(FlexAskMonitorError, ValueError):
    """The product variant is already on the watch list."""

    def __init__(self, product_id: str, variant_id: str) -> None:
        super().__init__(f"Variant {variant_id} of {product_id} is already tracked")
        self.product_id = product_id
        self.variant_id = variant_id
