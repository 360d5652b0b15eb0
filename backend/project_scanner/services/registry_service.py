"""Registry of known projects keyed by canonical filesystem path."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import json
import logging
import os
import threading
import time
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..scanner.errors import ProjectNotFoundError, RegistryError
from ..scanner.models import ProjectConfig, ProjectInfo
from ..scanner.paths import canonical_key
from ..storage.base import KeyValueStorage, StorageError
from ..storage.memory import MemoryStorage

logger = logging.getLogger(__name__)

KEY_PREFIX = "project:"


class ProjectRegistry:
    """
    Durable mapping of canonical project path to ProjectConfig.

    Durability is delegated to ``storage``. Registration is an upsert
    (last write wins, server sets are replaced, never merged). Writes to
    different paths use different locks so they never wait on each other.
    """

    def __init__(self, storage: Optional[KeyValueStorage] = None, *, key_prefix: str = KEY_PREFIX) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.key_prefix = key_prefix
        # canonical path -> [lock, number of callers holding or waiting on it]
        self._locks: Dict[str, List[Any]] = {}
        self._guard = threading.Lock()
        self._last_sequence = 0

    def register(self, path: str | os.PathLike[str], config: ProjectConfig) -> ProjectConfig:
        """Store ``config`` under the canonical form of ``path`` and return the stored copy."""
        key = canonical_key(path)
        payload = config.to_dict()
        payload["path"] = key

        with self._locked(key):
            existing = self._read_record(key, allow_corrupt=True)
            registered_at = _registration_stamp(existing) if existing else None
            if registered_at is None:
                registered_at = self._next_sequence()
            record = {
                "registeredAt": registered_at,
                "updatedAt": datetime.now(timezone.utc).isoformat(),
                "project": payload,
            }
            try:
                self.storage.write(self._storage_key(key), json.dumps(record))
            except StorageError as exc:
                raise RegistryError(f"Failed to register {key}: {exc}") from exc

        logger.info(f"Registered project {config.name} at {key} ({len(config.servers)} server(s))")
        return ProjectConfig.from_dict(payload)

    def get_project(self, path: str | os.PathLike[str]) -> ProjectConfig:
        key = canonical_key(path)
        record = self._read_record(key)
        if record is None:
            raise ProjectNotFoundError(key)
        return ProjectConfig.from_dict(record["project"])

    def list_projects(self) -> List[ProjectInfo]:
        """Summaries of every registered project in registration order."""
        try:
            storage_keys = self.storage.keys()
        except StorageError as exc:
            raise RegistryError(f"Failed to list projects: {exc}") from exc

        entries: List[Tuple[int, str, ProjectInfo]] = []
        for storage_key in storage_keys:
            if not storage_key.startswith(self.key_prefix):
                continue
            path = storage_key[len(self.key_prefix):]
            try:
                record = self._read_record(path)
            except RegistryError as exc:
                logger.warning(f"Skipping unreadable registry entry: {exc}")
                continue
            if record is None:
                continue
            info = ProjectConfig.from_dict(record["project"]).info()
            stamp = _registration_stamp(record)
            entries.append((stamp if stamp is not None else 0, path, info))

        entries.sort(key=lambda item: (item[0], item[1]))
        return [info for _, _, info in entries]

    def unregister(self, path: str | os.PathLike[str]) -> bool:
        key = canonical_key(path)
        with self._locked(key):
            try:
                removed = self.storage.delete(self._storage_key(key))
            except StorageError as exc:
                raise RegistryError(f"Failed to unregister {key}: {exc}") from exc
        if removed:
            logger.info(f"Unregistered project at {key}")
        return removed

    def _storage_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def _next_sequence(self) -> int:
        with self._guard:
            self._last_sequence = max(time.time_ns(), self._last_sequence + 1)
            return self._last_sequence

    def _read_record(self, key: str, *, allow_corrupt: bool = False) -> Optional[Dict[str, Any]]:
        try:
            raw = self.storage.read(self._storage_key(key))
        except StorageError as exc:
            raise RegistryError(f"Failed to read {key}: {exc}") from exc
        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            record = None
        if not _is_valid_record(record):
            if allow_corrupt:
                logger.warning(f"Overwriting corrupt registry entry for {key}")
                return None
            raise RegistryError(f"Corrupt registry entry for {key}")
        return record


def _is_valid_record(record: Any) -> bool:
    if not isinstance(record, dict):
        return False
    project = record.get("project")
    return isinstance(project, dict) and "name" in project and "path" in project


def _registration_stamp(record: Dict[str, Any]) -> Optional[int]:
    """``registeredAt`` as an int, or None when another writer left it out or mangled it."""
    stamp = record.get("registeredAt")
    if isinstance(stamp, bool) or not isinstance(stamp, int):
        return None
    return stamp
