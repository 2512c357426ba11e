"""JSON file key-value store backing the track store settings.

The whole bundle is one JSON object. Each write goes to a temporary file in
the same directory that then replaces the original, so a crash leaves either
the old or the new bundle on disk.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)


class JsonFileConfigStore:
    """Persistent string-to-string store in a single JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._values: dict[str, str] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.error("Unreadable settings file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Settings file %s is not a JSON object", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def put(self, key: str, value: str | None) -> None:
        self.put_many({key: value})

    def put_many(self, values: Mapping[str, str | None]) -> None:
        """Apply several writes with one atomic file replace."""
        updated = dict(self._values)
        for key, value in values.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        self._write(updated)
        self._values = updated

    def _write(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".settings-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(values, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
