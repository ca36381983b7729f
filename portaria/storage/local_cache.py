"""Local JSON cache of delivery records, used when the remote store is down."""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger

from ..config import settings
from ..exceptions import LocalCacheError


class LocalCache:
    """Read-all/write-all JSON list stored in a single file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else settings.cache_path
        self._lock = threading.Lock()
        logger.info(f"Local delivery cache at {self.path}")

    def read_all(self) -> List[Dict[str, Any]]:
        """Return every cached entry. A missing file is an empty cache."""
        with self._lock:
            if not self.path.exists():
                return []
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    entries = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to read local cache: {e}")
                raise LocalCacheError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(entries, list):
            raise LocalCacheError(f"{self.path} does not hold a list")
        return entries

    def write_all(self, entries: List[Dict[str, Any]]) -> None:
        """Replace the cache content atomically."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    dir=self.path.parent, prefix=".cache-", suffix=".json"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entries, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except (OSError, TypeError) as e:
                logger.error(f"Failed to write local cache: {e}")
                raise LocalCacheError(f"Cannot write {self.path}: {e}") from e

        logger.debug(f"Local cache saved ({len(entries)} entries)")
