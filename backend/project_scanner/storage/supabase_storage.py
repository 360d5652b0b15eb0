"""Supabase table used as a key-value store for registered projects."""
from __future__ import annotations

from datetime import datetime, timezone
import os
from typing import Any, List, Optional

from supabase import Client, create_client

from .base import StorageError


class SupabaseStorage:
    """
    Stores each key as a row in ``table`` with ``key``/``value``/``updated_at``
    columns; ``key`` must be unique so upserts replace the previous value.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        *,
        table: str = "registered_projects",
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
    ) -> None:
        self.table = table
        if client is not None:
            self.client = client
            return

        url = supabase_url or os.getenv("SUPABASE_URL")
        key = supabase_key or os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise StorageError("Supabase credentials not configured.")
        try:
            self.client = create_client(url, key)
        except Exception as exc:
            raise StorageError(f"Failed to initialize Supabase client: {exc}") from exc

    def read(self, key: str) -> Optional[str]:
        try:
            response = self.client.table(self.table).select("value").eq("key", key).execute()
        except Exception as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
        rows: List[Any] = response.data or []
        if not rows:
            return None
        return rows[0].get("value")

    def write(self, key: str, value: str) -> None:
        record = {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table).upsert(record, on_conflict="key").execute()
        except Exception as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            response = self.client.table(self.table).delete().eq("key", key).execute()
        except Exception as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc
        return bool(response.data)

    def keys(self) -> List[str]:
        try:
            response = self.client.table(self.table).select("key").execute()
        except Exception as exc:
            raise StorageError(f"Failed to list keys: {exc}") from exc
        return [row["key"] for row in (response.data or []) if "key" in row]
