from .base import KeyValueStorage, StorageError
from .file_storage import FileStorage
from .memory import MemoryStorage
from .supabase_storage import SupabaseStorage

__all__ = ["KeyValueStorage", "StorageError", "FileStorage", "MemoryStorage", "SupabaseStorage"]
