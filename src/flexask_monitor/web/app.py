"""Flask web application exposing the monitor as a JSON API."""
from __future__ import annotations

from typing import Any, Optional

from flask import Flask, jsonify, request

from ..api.client import StockXClient
from ..config import DEFAULT_CONFIG, AppConfig
from ..exceptions import ItemAlreadyTracked, MarketDataError, VariantNotFound
from ..notifications.base import LogNotifier, NullNotifier
from ..scheduler.runtime import MonitorRuntime
from ..services.alert_service import AlertService
from ..services.monitor_service import MarketDataSource, MonitorService
from ..services.settings_service import SettingsService
from ..services.watchlist_service import WatchlistService
from ..storage.repository import JsonStateRepository

REQUIRED_ITEM_FIELDS = ("productId", "variantId", "title", "size", "price")


def _error(message: str, status: int, /, **extra: Any):
    return jsonify({"error": message, **extra}), status


def _payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def create_app(runtime: MonitorRuntime, client: MarketDataSource) -> Flask:
    app = Flask(__name__)

    app.config["runtime"] = runtime
    watchlist = runtime.watchlist
    alerts = runtime.alerts
    settings = runtime.settings

    @app.route("/api/items")
    def list_items():
        return jsonify({"items": [item.to_dict() for item in watchlist.all_items()]})

    @app.route("/api/items", methods=["POST"])
    def add_item():
        data = _payload()
        missing = [name for name in REQUIRED_ITEM_FIELDS if data.get(name) in (None, "")]
        if missing:
            return _error(f"Missing fields: {', '.join(missing)}", 400)
        try:
            price = float(data["price"])
            threshold = _optional_float(data.get("alertThresholdPercent"))
            item = watchlist.add_item(
                product_id=str(data["productId"]),
                variant_id=str(data["variantId"]),
                title=str(data["title"]),
                size=str(data["size"]),
                price=price,
                image_url=str(data.get("imageUrl") or ""),
                alert_threshold_percent=threshold if threshold is not None else settings.global_threshold_percent,
                stockx_url=data.get("stockxUrl"),
            )
        except ItemAlreadyTracked as exc:
            return _error(str(exc), 409)
        except (TypeError, ValueError) as exc:
            return _error(str(exc), 400)
        return jsonify({"item": item.to_dict()}), 201

    @app.route("/api/items/demo", methods=["POST"])
    def add_demo_items():
        added = watchlist.add_demo_items()
        return jsonify({"added": [item.to_dict() for item in added]})

    @app.route("/api/items/<item_id>", methods=["DELETE"])
    def remove_item(item_id: str):
        try:
            item = watchlist.remove_item(item_id)
        except KeyError:
            return _error("Unknown item", 404)
        return jsonify({"removed": item.id})

    @app.route("/api/items/<item_id>/toggle", methods=["POST"])
    def toggle_item(item_id: str):
        try:
            item = watchlist.toggle_active(item_id)
        except KeyError:
            return _error("Unknown item", 404)
        return jsonify({"item": item.to_dict()})

    @app.route("/api/items/<item_id>", methods=["PATCH"])
    def update_item(item_id: str):
        data = _payload()
        if "alertThresholdPercent" not in data:
            return _error("alertThresholdPercent is required", 400)
        try:
            item = watchlist.update_threshold(item_id, float(data["alertThresholdPercent"]))
        except KeyError:
            return _error("Unknown item", 404)
        except (TypeError, ValueError) as exc:
            return _error(str(exc), 400)
        return jsonify({"item": item.to_dict()})

    @app.route("/api/alerts")
    def list_alerts():
        all_alerts = alerts.all_alerts()
        return jsonify(
            {
                "alerts": [alert.to_dict() for alert in all_alerts],
                "unread": sum(1 for alert in all_alerts if not alert.is_read),
            }
        )

    @app.route("/api/alerts/<alert_id>/read", methods=["POST"])
    def mark_alert_read(alert_id: str):
        try:
            alert = alerts.mark_read(alert_id)
        except KeyError:
            return _error("Unknown alert", 404)
        return jsonify({"alert": alert.to_dict()})

    @app.route("/api/alerts/read-all", methods=["POST"])
    def mark_all_alerts_read():
        return jsonify({"updated": alerts.mark_all_read()})

    @app.route("/api/alerts", methods=["DELETE"])
    def clear_alerts():
        alerts.clear()
        return jsonify({"alerts": []})

    @app.route("/api/monitor")
    def monitor_status():
        return jsonify(runtime.status())

    @app.route("/api/monitor/start", methods=["POST"])
    def start_monitor():
        if not watchlist.all_items():
            return _error("No items to monitor", 400)
        runtime.start()
        return jsonify(runtime.status())

    @app.route("/api/monitor/stop", methods=["POST"])
    def stop_monitor():
        runtime.stop()
        return jsonify(runtime.status())

    @app.route("/api/monitor/test", methods=["POST"])
    def test_monitor():
        if not watchlist.all_items():
            return _error("No items to test! Add some items first.", 400)
        result = runtime.run_test()
        return jsonify(
            {
                "checked": result.checked,
                "alertsGenerated": result.alerts_generated,
                "alerts": [alert.to_dict() for alert in result.alerts],
            }
        )

    @app.route("/api/monitor/settings", methods=["PUT"])
    def update_settings():
        data = _payload()
        try:
            if "checkIntervalMinutes" in data:
                runtime.update_interval(int(data["checkIntervalMinutes"]))
            if "globalThresholdPercent" in data:
                settings.global_threshold_percent = float(data["globalThresholdPercent"])
        except (TypeError, ValueError) as exc:
            return _error(str(exc), 400)
        return jsonify(runtime.status())

    @app.route("/api/stockx/market-data")
    def market_data():
        product_id = request.args.get("productId")
        variant_id = request.args.get("variantId")
        if not product_id or not variant_id:
            return _error("productId and variantId are required", 400)
        if not getattr(client, "has_credentials", True):
            return _error(
                "No access token found",
                401,
                message="Please authenticate with StockX first",
                authRequired=True,
            )
        try:
            quote = client.fetch_market_data(product_id, variant_id)
        except VariantNotFound:
            return _error("Variant not found in market data", 404)
        except MarketDataError as exc:
            app.logger.exception("Error fetching market data for %s", product_id)
            if exc.status_code == 401:
                return _error(
                    "Authentication failed",
                    401,
                    message="Please re-authenticate with StockX",
                    authRequired=True,
                )
            if exc.status_code is not None and 400 <= exc.status_code < 600:
                return _error("Failed to fetch market data", exc.status_code)
            return _error("Failed to fetch market data", 502)
        return jsonify(quote.to_dict())

    return app


def build_runtime(config: AppConfig, client: MarketDataSource) -> MonitorRuntime:
    """Wire storage, services and scheduler for ``config``."""

    repository = JsonStateRepository(config.data_directory)
    watchlist = WatchlistService(repository=repository, history_limit=config.alerts.history_limit)
    watchlist.load()
    alerts = AlertService(repository=repository, max_alerts=config.alerts.max_alerts)
    alerts.load()
    settings = SettingsService(
        repository=repository,
        default_interval_minutes=config.polling.interval_minutes,
        default_threshold_percent=config.alerts.default_threshold_percent,
    )
    monitor_service = MonitorService(
        client=client,
        watchlist=watchlist,
        alerts=alerts,
        notifier=LogNotifier() if config.alerts.notifications_enabled else NullNotifier(),
        request_delay_seconds=config.polling.request_delay_seconds,
        test_request_delay_seconds=config.polling.test_request_delay_seconds,
    )
    return MonitorRuntime(monitor_service, settings)


def bootstrap_app(config: AppConfig = DEFAULT_CONFIG) -> tuple[Flask, MonitorRuntime]:
    """Factory used by the entrypoint for running the web service."""

    config.ensure_data_directories()
    client = StockXClient(
        api_base_url=config.stockx.api_base_url,
        api_key=config.stockx.api_key,
        access_token=config.stockx.access_token,
        timeout_seconds=config.stockx.timeout_seconds,
    )
    runtime = build_runtime(config, client)
    app = create_app(runtime, client)
    return app, runtime
