"""Model catalog backed by a 1min.ai ``models.json`` export."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger("onemin-proxy")

ACTIVE_STATUS = "ACTIVE"


def _created_seconds(value: Any, default: int) -> int:
    """Convert a ``createdAt`` value (ISO string or epoch ms) to epoch seconds."""
    if isinstance(value, bool) or value in (None, ""):
        return default
    if isinstance(value, (int, float)):
        return int(value / 1000)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return int(datetime.fromisoformat(text).timestamp())
        except ValueError:
            logger.debug(f"Unparseable createdAt {value!r}, using current time")
    return default


def to_openai_model(entry: dict[str, Any], now: Optional[float] = None) -> dict[str, Any]:
    default_created = int(time.time() if now is None else now)
    return {
        "id": entry.get("modelId"),
        "object": "model",
        "created": _created_seconds(entry.get("createdAt"), default_created),
        "owned_by": entry.get("provider"),
    }


class ModelCatalog:
    """Reads the catalog file on every listing so edits apply without restart."""

    def __init__(self, path: Union[str, Path] = "models.json") -> None:
        self.path = Path(path)

    def load(self) -> list[dict[str, Any]]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            logger.warning(f"Model catalog not found at {self.path}")
            return []
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"Failed to load model catalog {self.path}: {exc}")
            return []

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [m for m in models if isinstance(m, dict)]

    def active_models(self) -> list[dict[str, Any]]:
        """ACTIVE entries in OpenAI ``/v1/models`` shape."""
        return [
            to_openai_model(entry)
            for entry in self.load()
            if entry.get("status") == ACTIVE_STATUS and entry.get("modelId")
        ]

    def find(self, model_id: str) -> Optional[dict[str, Any]]:
        for entry in self.load():
            if entry.get("modelId") == model_id:
                return entry
        return None
