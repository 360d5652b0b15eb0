from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable


class StorageError(Exception):
    """Raised by storage backends when the underlying medium fails."""


@runtime_checkable
class KeyValueStorage(Protocol):
    """Minimal durable key-value contract used by the project registry."""

    def read(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> bool:
        """Remove a key. Returns False when it was not present."""
        ...

    def keys(self) -> List[str]:
        ...
