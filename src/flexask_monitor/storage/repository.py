"""JSON file storage standing in for the browser's local storage."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

from ..exceptions import StorageCorruption
from ..models import PriceAlert, TrackedItem

logger = logging.getLogger(__name__)

TRACKED_ITEMS_KEY = "tracked_items"
ALERTS_KEY = "alerts"
MONITORING_ACTIVE_KEY = "monitoring_active"
CHECK_INTERVAL_KEY = "check_interval"
GLOBAL_THRESHOLD_KEY = "global_threshold"

T = TypeVar("T")

_MISSING = object()


class JsonStateRepository:
    """Persists each storage key as a JSON document in ``base_path``.

    Every write replaces the whole document. Two processes sharing the same
    directory overwrite each other (last writer wins).
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)

    def _file_for(self, key: str) -> Path:
        safe_key = key.replace("/", "_")
        return self._base_path / f"{safe_key}.json"

    def file_path_for(self, key: str) -> Path:
        """Public accessor for the file backing ``key``."""

        return self._file_for(key)

    def read(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under ``key``.

        Raises ``StorageCorruption`` when the stored text is not valid JSON.
        """

        file_path = self._file_for(key)
        if not file_path.exists():
            return default
        try:
            return json.loads(file_path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageCorruption(key, str(exc)) from exc

    def write(self, key: str, value: Any) -> None:
        """Replace the document for ``key``; a failed write leaves the old one intact."""

        file_path = self._file_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._base_path, prefix=f"{file_path.stem}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, indent=2)
            os.replace(tmp_path, file_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._file_for(key).unlink(missing_ok=True)

    def read_setting(self, key: str, default: T) -> T:
        """Read a scalar setting, resetting it to ``default`` if corrupted."""

        try:
            value = self.read(key, _MISSING)
        except StorageCorruption as exc:
            logger.warning("%s; resetting to %r", exc, default)
            self.write(key, default)
            return default
        if value is _MISSING:
            return default
        return value

    def load_items(self) -> list[TrackedItem]:
        return self._load_records(TRACKED_ITEMS_KEY, TrackedItem.from_dict)

    def save_items(self, items: Iterable[TrackedItem]) -> None:
        self.write(TRACKED_ITEMS_KEY, [item.to_dict() for item in items])

    def load_alerts(self) -> list[PriceAlert]:
        return self._load_records(ALERTS_KEY, PriceAlert.from_dict)

    def save_alerts(self, alerts: Iterable[PriceAlert]) -> None:
        self.write(ALERTS_KEY, [alert.to_dict() for alert in alerts])

    def _load_records(self, key: str, parse: Callable[[Any], T]) -> list[T]:
        """Load a list of records, discarding the blob if any of it is malformed."""

        try:
            raw = self.read(key, [])
            if not isinstance(raw, list):
                raise StorageCorruption(key, f"expected a list, found {type(raw).__name__}")
            try:
                return [parse(record) for record in raw]
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise StorageCorruption(key, f"malformed record ({exc!r})") from exc
        except StorageCorruption as exc:
            logger.warning("%s; discarding stored data", exc)
            self.write(key, [])
            return []
