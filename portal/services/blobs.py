"""Keyed JSON blobs on local disk, read and written whole."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from portal.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class BlobStore:
    """Keyed JSON values. `read` returns None for a missing key."""

    def read(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryBlobStore(BlobStore):
    def __init__(self):
        self._data: dict[str, str] = {}

    def read(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileBlobStore(BlobStore):
    """One `<key>.json` file per key under `directory`.

    Writes go to a temp file and are moved into place, so a reader never sees
    a half-written value.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt blob {path}: {e}")
            return None
        except OSError as e:
            logger.error(f"Error reading blob {path}: {e}")
            raise StoreUnavailable(f"Could not read {key} from {self.directory}") from e

    def write(self, key: str, value: Any) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False)
                os.replace(tmp_path, self._path(key))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Error writing blob {key}: {e}")
            raise StoreUnavailable(f"Could not write {key} to {self.directory}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error deleting blob {key}: {e}")
            raise StoreUnavailable(f"Could not delete {key} from {self.directory}") from e
