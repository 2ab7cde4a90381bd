# cashbook/backends/json_file.py

import logging
import os
from pathlib import Path
from typing import Optional

from cashbook.backends.base import BaseBackend
from cashbook.errors import PersistenceError

logger = logging.getLogger(__name__)


class JSONFileBackend(BaseBackend):
    """
    Stores each slot as ``<data_dir>/<key>.json``.
    Writes go to a temporary sibling first and are moved into place, so a
    crash mid-write never leaves a truncated snapshot behind.
    """

    def __init__(self, config):
        self.data_dir = Path(config.get('data_dir', 'data'))

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Could not read {path}: {exc}") from exc

    def save(self, key: str, text: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(path.name + '.tmp')
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding='utf-8')
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {path}: {exc}") from exc
        logger.debug("Wrote %d bytes to %s", len(text), path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not remove {path}: {exc}") from exc
