"""Short-lived storage for visitor photos awaiting identification."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


class TransientStorage:
    """Writes uploads to a scratch directory and removes them afterwards."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def store(self, data: bytes, suffix: str = ".jpg") -> Path:
        path = self._directory / f"visitor_{uuid.uuid4().hex}{suffix}"
        path.write_bytes(data)
        return path

    def remove(self, path: Path) -> None:
        """Delete ``path``. Failures are logged and swallowed."""
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete transient file %s: %s", path, exc)
        else:
            logger.debug("Transient file %s deleted", path.name)

    @contextmanager
    def hold(self, data: bytes, suffix: str = ".jpg") -> Iterator[Path]:
        """Store ``data`` for the duration of the block; it is removed on every exit."""
        path = self.store(data, suffix)
        try:
            yield path
        finally:
            self.remove(path)
