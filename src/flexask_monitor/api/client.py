"""Client for the StockX market data API."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import requests

from ..exceptions import MarketDataError, VariantNotFound
from ..models import MarketQuote

USER_AGENT = "FlexAskMonitor/1.0"


@dataclass(slots=True)
class StockXClient:
    """Handles communication with the StockX catalog API.

    One request is issued per call; retries and pacing are left to the caller.
    """

    api_base_url: str
    api_key: str
    access_token: str
    timeout_seconds: float = 10

    def build_headers(self) -> dict[str, str]:
        """Return HTTP headers required by the StockX API."""

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.access_token)

    def fetch_market_data(self, product_id: str, variant_id: str) -> MarketQuote:
        """Fetch the bid/ask amounts for one variant of ``product_id``.

        StockX returns market data for every variant of a product in a single
        list; the entry matching ``variant_id`` is picked out of it. Any
        transport error, non-2xx status or unexpected body raises
        ``MarketDataError``.
        """

        endpoint = f"{self.api_base_url.rstrip('/')}/catalog/products/{product_id}/market-data"
        try:
            response = requests.get(endpoint, headers=self.build_headers(), timeout=self.timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise MarketDataError(
                f"Market data request for {product_id} failed: {exc}", status_code=status_code
            ) from exc
        except requests.RequestException as exc:
            raise MarketDataError(f"Market data request for {product_id} failed: {exc}") from exc
        except ValueError as exc:
            raise MarketDataError(f"Market data for {product_id} is not valid JSON") from exc

        if not isinstance(payload, list):
            raise MarketDataError(f"Unexpected market data payload for {product_id}")

        for entry in payload:
            if isinstance(entry, Mapping) and str(entry.get("variantId")) == variant_id:
                return self._quote_from_entry(product_id, variant_id, entry)
        raise VariantNotFound(product_id, variant_id)

    def fetch_flex_ask(self, product_id: str, variant_id: str) -> float | None:
        """Return only the lowest flex ask for the variant."""

        return self.fetch_market_data(product_id, variant_id).flex_lowest_ask

    def _quote_from_entry(self, product_id: str, variant_id: str, entry: Mapping[str, Any]) -> MarketQuote:
        return MarketQuote(
            product_id=product_id,
            variant_id=variant_id,
            flex_lowest_ask=self._parse_amount(entry.get("flexLowestAskAmount")),
            lowest_ask=self._parse_amount(entry.get("lowestAskAmount")),
            highest_bid=self._parse_amount(entry.get("highestBidAmount")),
            currency_code=str(entry.get("currencyCode") or "USD"),
        )

    @staticmethod
    def _parse_amount(value: Any) -> float | None:
        # amounts come back as strings such as "271"
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def health_check(self) -> dict[str, Any]:
        """Perform a lightweight request to ensure the API is reachable."""

        try:
            response = requests.get(self.api_base_url, timeout=5)
            response.raise_for_status()
            return {"ok": True, "checked_at": datetime.now(UTC)}
        except requests.RequestException as exc:
            return {"ok": False, "error": str(exc), "checked_at": datetime.now(UTC)}
