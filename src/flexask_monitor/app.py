"""Application bootstrapper for the flex ask monitor service."""
from __future__ import annotations

import logging

from .config import load_config
from .scheduler.runtime import MonitorRuntime
from .web.app import bootstrap_app

logger = logging.getLogger(__name__)


def start_runtime(runtime: MonitorRuntime) -> MonitorRuntime:
    """Resume background monitoring if it was active before the last exit."""

    if not runtime.resume_if_active():
        logger.info("Monitoring idle; %s items tracked", len(runtime.watchlist.all_items()))
    return runtime


def run() -> None:
    """Entrypoint used by the CLI to launch the API and scheduler."""

    logging.basicConfig(level=logging.INFO)
    config = load_config()
    app, runtime = bootstrap_app(config)
    start_runtime(runtime)
    try:
        app.run(debug=config.environment == "development", use_reloader=False)
    finally:
        runtime.shutdown()


if __name__ == "__main__":  # pragma: no cover - manual execution only
    run()
