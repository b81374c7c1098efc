"""Storage of file contents in a node's data directory."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)


class FileStore:
    """Reads and writes whole files inside one data directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def save_file(self, filename: str, data: bytes) -> None:
        """Write ``data`` to ``filename``, replacing any existing file."""
        path = self.directory / filename
        if path.exists():
            log.warning("Path existed. Write new file: %s", filename)
        try:
            path.write_bytes(data)
        except OSError as err:
            log.error("Cannot create new file: %s: Err: %s", filename, err)
            raise

    def read_file(self, filename: str) -> bytes:
        """Return the contents of ``filename``; raise FileNotFoundError if absent."""
        path = self.directory / filename
        if not path.exists():
            raise FileNotFoundError(f"No such file in data directory: {filename}")
        try:
            return path.read_bytes()
        except OSError as err:
            log.error("Cannot read file: %s: Err: %s", filename, err)
            raise