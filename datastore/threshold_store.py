from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import ValidationError

from app.schemas import ThresholdConfig, ThresholdValidationError, validate_threshold_config
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_USER = "default"


class ThresholdConfigStore:
    """Threshold configuration per user, optionally mirrored to a JSON file."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._items: Dict[str, ThresholdConfig] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get_config(self, user_id: str = DEFAULT_USER) -> ThresholdConfig:
        """Stored configuration, or the defaults when nothing was saved."""
        with self._lock:
            item = self._items.get(user_id)
            if item is None:
                return ThresholdConfig()
            return item.model_copy(deep=True)

    def set_config(self, config: ThresholdConfig, user_id: str = DEFAULT_USER) -> ThresholdConfig:
        errors = validate_threshold_config(config)
        if errors:
            raise ThresholdValidationError(errors)
        with self._lock:
            self._items[user_id] = config.model_copy(deep=True)
            self._persist()
        logger.info(
            "Saved threshold configuration",
            extra={
                "crop_id": config.selected_crop_id,
                "priority": config.irrigation.sensor_priority.value,
            },
        )
        return config.model_copy(deep=True)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            user_id: item.model_dump(mode="json") for user_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Threshold configuration file unreadable, using defaults")
            data = {}

        if not isinstance(data, dict):
            data = {}

        for user_id, payload in data.items():
            try:
                self._items[user_id] = ThresholdConfig.model_validate(payload)
            except ValidationError as exc:
                logger.warning(
                    "Ignoring stored configuration for %s",
                    user_id,
                    extra={"reason": f"{exc.error_count()} invalid field(s)"},
                )


@lru_cache
def build_default_store(path: Optional[str] = None) -> ThresholdConfigStore:
    settings = get_settings()
    store_path = settings.threshold_config_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return ThresholdConfigStore(persistence_path=persistence)
