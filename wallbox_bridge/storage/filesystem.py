"""
Key/value storage in a single JSON file, for small installations.
"""

import asyncio
import json
from pathlib import Path
from urllib.parse import urlsplit

from wallbox_bridge.storage.base import KeyValueStorageBase


class FileSystemKeyValueStorage(KeyValueStorageBase):
    """
    Keeps all entries in one JSON object on disk.

    ``file:./relative/path.json`` and ``file:///absolute/path.json`` are
    accepted. A missing or empty file reads as empty storage; a corrupt file
    raises instead of being overwritten.
    """

    def __init__(self, uri: str):
        super().__init__(uri)
        self.path = self._get_path()
        self._lock = asyncio.Lock()

    def _get_path(self):
        if not self.uri.startswith("file:"):
            raise ValueError("cannot use non-file protocol with this class")
        if self.uri.startswith("file:./"):
            return Path(self.uri[len("file:"):])
        return Path(urlsplit(self.uri).path)

    def _read_file(self):
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if content == "":
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"DB file JSON corrupt: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("DB file type corrupt: top level is not an object")
        return data

    def _write_file(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    async def get(self, key: str):
        async with self._lock:
            data = await asyncio.to_thread(self._read_file)
        return data.get(key)

    async def set(self, key: str, value) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_file)
            data[key] = value
            await asyncio.to_thread(self._write_file, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_file)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write_file, data)

    async def list(self, prefix: str = None) -> list:
        async with self._lock:
            data = await asyncio.to_thread(self._read_file)
        return [
            (key, value)
            for key, value in data.items()
            if prefix is None or key.startswith(prefix)
        ]
