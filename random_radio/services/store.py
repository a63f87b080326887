import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SettingsStore:
    """Keyed JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to read %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> Any | None:
        return self._read().get(key)

    def save(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self._path)
        logger.debug("Saved %s to %s", key, self._path)
