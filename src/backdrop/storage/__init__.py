from .kv import KeyValueStore, SqliteKeyValueStore, StorageError

__all__ = [
    "KeyValueStore",
    "SqliteKeyValueStore",
    "StorageError",
]
