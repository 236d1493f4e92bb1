"""
Typed storage of pydantic models on top of a key/value storage.
"""

from loguru import logger
from pydantic import ValidationError

from wallbox_bridge.storage.base import KeyValueStorageBase
from wallbox_bridge.utils import ok, log_error_and_return_clean_message

OBJECT_KEY_SEPARATOR = "$$"
SUBKEY_SEPARATOR = "$"


class ObjectStore:
    """
    Stores one kind of model under ``<prefix>$$<subkey>`` keys.

    ``subkey_fn(key_object, separator)`` builds the subkey from either a
    plain dict of key fields or the model itself. Values are validated both
    on the way in and on the way out.
    """

    def __init__(self, model, prefix: str, subkey_fn, storage: KeyValueStorageBase):
        self.model = model
        self.prefix = prefix
        self.subkey_fn = subkey_fn
        self.storage = storage

    def _full_key(self, key_object):
        try:
            subkey = self.subkey_fn(key_object, SUBKEY_SEPARATOR)
        except (KeyError, AttributeError, TypeError) as e:
            return log_error_and_return_clean_message("Error generating key", e)
        return ok(f"{self.prefix}{OBJECT_KEY_SEPARATOR}{subkey}")

    async def get(self, key_object):
        """Return the stored model, or a None value when nothing is stored."""
        key = self._full_key(key_object)
        if not key["ok"]:
            return key

        try:
            raw_value = await self.storage.get(key["value"])
        except Exception as e:
            return log_error_and_return_clean_message("Error getting data from storage", e)
        if raw_value is None:
            return ok(None)

        try:
            return ok(self.model.model_validate(raw_value))
        except ValidationError as e:
            return log_error_and_return_clean_message("Error parsing data in storage", e)

    async def get_all(self):
        """Return every stored model; entries that fail validation are skipped."""
        try:
            entries = await self.storage.list(f"{self.prefix}{OBJECT_KEY_SEPARATOR}")
        except Exception as e:
            return log_error_and_return_clean_message("Error listing data from storage", e)

        values = []
        for key, raw_value in entries:
            try:
                values.append(self.model.model_validate(raw_value))
            except ValidationError as e:
                logger.error(f"Skipping invalid entry {key} in storage: {e}")
        return ok(values)

    async def set(self, value):
        key = self._full_key(value)
        if not key["ok"]:
            return key

        try:
            value = self.model.model_validate(value.model_dump())
        except ValidationError as e:
            return log_error_and_return_clean_message(
                "Error parsing data to be written to storage", e
            )

        try:
            await self.storage.set(key["value"], value.model_dump(mode="json", by_alias=True))
        except Exception as e:
            return log_error_and_return_clean_message("Error saving value in DB", e)
        return ok(None)

    async def delete(self, key_object):
        key = self._full_key(key_object)
        if not key["ok"]:
            return key

        try:
            await self.storage.delete(key["value"])
        except Exception as e:
            return log_error_and_return_clean_message("Error deleting value in DB", e)
        return ok(None)
