"""Persistent document store backing the catalog cache.

The store keeps exactly one JSON document on disk.  Writes go to a temporary
file in the same directory which is then moved over the target with
``os.replace`` so a crash mid-write never leaves a partial document behind.
The store is best-effort: every failure is logged and reported through the
return value, never raised.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, IO, Optional, Union

from platformdirs import user_cache_dir

APP_NAME = "moreapps"
CACHE_FILE_NAME = "moreapps_cache.json"
CACHE_DIR_ENV = "MOREAPPS_CACHE_DIR"


def default_cache_path() -> Path:
    """Return the platform cache location for the catalog document.

    ``MOREAPPS_CACHE_DIR`` overrides the platform directory.
    """
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override) / CACHE_FILE_NAME
    return Path(user_cache_dir(appname=APP_NAME)) / CACHE_FILE_NAME


class CacheStore:
    """Single-document JSON store with atomic replacement."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        """
        Initialize the store.

        Args:
            path: Location of the cache document (platform default if omitted)
        """
        self.path = Path(path) if path is not None else default_cache_path()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def _atomic_writer(self) -> Generator[IO[str], None, None]:
        """
        Context manager yielding a temp file that replaces the target on success.

        Yields:
            Text file handle positioned at the start of an empty temp file
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yield handle
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self) -> Optional[Dict[str, Any]]:
        """
        Read the stored document.

        Returns:
            The decoded document, or None if missing, unreadable or corrupt
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return None

        if not isinstance(document, dict):
            self.logger.warning(f"Ignoring malformed cache file {self.path}")
            return None
        return document

    def write(self, document: Dict[str, Any]) -> bool:
        """
        Replace the stored document.

        Args:
            document: JSON-serialisable mapping

        Returns:
            True if the document was written
        """
        try:
            with self._atomic_writer() as handle:
                json.dump(document, handle)
        except (OSError, TypeError, ValueError) as e:
            self.logger.warning(f"Cache write to {self.path} failed: {e}")
            return False

        self.logger.debug(f"Wrote cache document to {self.path}")
        return True

    def remove(self) -> bool:
        """
        Delete the stored document.

        Returns:
            True if no document remains afterwards
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            self.logger.warning(f"Cache removal of {self.path} failed: {e}")
            return False

        self.logger.info(f"Removed cache document {self.path}")
        return True
