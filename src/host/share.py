"""Share sink that exports track files into an outbox directory."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class DirectoryShareSink:
    """Copies shared files into ``target_dir`` for pickup by other tools."""

    def __init__(self, target_dir: Path):
        self._target_dir = Path(target_dir)

    def share(self, path: Path, mime_type: str, title: str) -> Path:
        self._target_dir.mkdir(parents=True, exist_ok=True)
        dest = self._target_dir / path.name
        shutil.copyfile(path, dest)
        logger.info("Exported %s (%s) to %s", title, mime_type, dest)
        return dest
