"""
Persistence: key/value storage engines and the typed stores built on them.
"""
from wallbox_bridge import config
from wallbox_bridge.models.settings import CobotSpaceSettings

from .base import KeyValueStorageBase
from .filesystem import FileSystemKeyValueStorage
from .object_store import ObjectStore


def create_key_value_storage(uri: str) -> KeyValueStorageBase:
    """Pick the storage engine from the URI scheme."""
    if uri.startswith("file:"):
        return FileSystemKeyValueStorage(uri)
    if "://" in uri:
        from .sql import SqlKeyValueStorage

        return SqlKeyValueStorage(uri)
    raise ValueError(f"Unsupported DB_URI protocol: {uri.split(':', 1)[0]}")


def _space_id_subkey(key_object, separator):
    if isinstance(key_object, dict):
        return key_object["space_id"]
    return key_object.space_id


def create_space_settings_store(storage: KeyValueStorageBase):
    return ObjectStore(CobotSpaceSettings, "CobotSpaceSettings", _space_id_subkey, storage)


_storage = None
_space_settings_store = None


def get_storage():
    global _storage
    if _storage is None:
        _storage = create_key_value_storage(config.DB_URI)
    return _storage


def get_space_settings_store():
    global _space_settings_store
    if _space_settings_store is None:
        _space_settings_store = create_space_settings_store(get_storage())
    return _space_settings_store


__all__ = [
    "KeyValueStorageBase",
    "FileSystemKeyValueStorage",
    "ObjectStore",
    "create_key_value_storage",
    "create_space_settings_store",
    "get_storage",
    "get_space_settings_store",
]
