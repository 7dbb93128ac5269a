"""Keyed JSON blob storage for watermate state."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .errors import InvalidSchemaVersionError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ORDERS_KEY = "watermate-orders"
NOTIFICATIONS_KEY = "watermate-notifications"
AUTH_KEY = "watermate-auth"


class StateStore:
    """Reads and writes one JSON document per key under a data directory.

    Every document carries a ``schema_version``; callers get back the
    document without it.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def load(self, key: str) -> dict[str, Any] | None:
        """
        Load the document stored under ``key``.

        Returns None if nothing has been saved yet.

        Raises:
            InvalidSchemaVersionError: If the stored schema version is unsupported.
        """
        path = self.path_for(key)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.pop("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(key, version, SCHEMA_VERSION)

        return data

    def save(self, key: str, data: dict[str, Any]) -> None:
        """
        Save a document atomically.

        Uses write-to-temp-then-rename for atomicity.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        payload = {"schema_version": SCHEMA_VERSION, **data}
        fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{key}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.path_for(key))
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        logger.debug("Saved state blob", extra={"operation": "save", "key": key})

    def clear(self, key: str) -> bool:
        """Delete the document under ``key``. Returns True if one existed."""
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True


class MemoryStateStore(StateStore):
    """StateStore kept in a dict; nothing touches the filesystem."""

    def __init__(self):
        super().__init__(Path("<memory>"))
        self._blobs: dict[str, str] = {}

    def exists(self, key: str) -> bool:
        return key in self._blobs

    def load(self, key: str) -> dict[str, Any] | None:
        raw = self._blobs.get(key)
        if raw is None:
            return None
        data = json.loads(raw)
        version = data.pop("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(key, version, SCHEMA_VERSION)
        return data

    def save(self, key: str, data: dict[str, Any]) -> None:
        self._blobs[key] = json.dumps({"schema_version": SCHEMA_VERSION, **data})

    def clear(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None
