from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Dict, List, Optional

from .base import StorageError

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class FileStorage:
    """
    One JSON file per key under ``base_path``.

    File names are hashes of the key so arbitrary filesystem paths can be
    used as keys; the original key is stored inside the file. Writes go to a
    temporary file first and are renamed into place.
    """

    def __init__(self, base_path: str | os.PathLike[str]) -> None:
        self.base_path = Path(os.path.expanduser(os.fspath(base_path))).resolve()
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create storage directory {self.base_path}: {exc}") from exc

    def _key_to_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.base_path / f"{digest}{_SUFFIX}"

    def read(self, key: str) -> Optional[str]:
        payload = self._load(self._key_to_path(key))
        if payload is None or payload.get("key") != key:
            return None
        return payload.get("value")

    def write(self, key: str, value: str) -> None:
        target = self._key_to_path(key)
        payload = {"key": key, "value": value}
        fd, tmp_name = tempfile.mkstemp(prefix=target.stem, suffix=".tmp", dir=self.base_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(payload, fp)
            os.replace(tmp_name, target)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"Failed to write {key}: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            self._key_to_path(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc
        return True

    def keys(self) -> List[str]:
        keys: List[str] = []
        for path in sorted(self.base_path.glob(f"*{_SUFFIX}")):
            payload = self._load(path)
            if payload and isinstance(payload.get("key"), str):
                keys.append(payload["key"])
        return keys

    def _load(self, path: Path) -> Dict[str, Any] | None:
        try:
            with path.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logger.warning(f"Ignoring corrupt storage file: {path}")
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        return payload if isinstance(payload, dict) else None
