"""Reading typed values from the settings store and request-level helpers."""

from __future__ import annotations

import logging
import random
import time
from typing import Protocol

from .db import NoRowsError

logger = logging.getLogger(__name__)

ALLOW_SYNC_SETTING = "handlers.allow_sync"

_TRUE_VALUES = frozenset({"1", "t", "true"})
_FALSE_VALUES = frozenset({"0", "f", "false"})

_random = random.Random(time.time_ns())


class _Setting(Protocol):
    key: str
    value: str


class _SettingStore(Protocol):
    def get_by_key(self, key: str) -> _Setting: ...


def parse_bool_setting(value: str) -> bool | None:
    """Parse a boolean setting value; return None if it is not a boolean."""
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _get_string_setting(settings: _SettingStore, key: str) -> str | None:
    try:
        setting = settings.get_by_key(key)
    except NoRowsError:
        return None
    except Exception as err:
        logger.error("Unable to get setting %s: %s", key, err)
        return None
    if setting.key != key:
        raise RuntimeError(f"unexpected key {setting.key!r} != {key!r}")
    return setting.value


def get_bool_setting(settings: _SettingStore, key: str) -> bool | None:
    """Return the boolean value of a setting, or None if it is unset or invalid."""
    value = _get_string_setting(settings, key)
    if value is None:
        return None
    result = parse_bool_setting(value)
    if result is None:
        logger.warning("Setting has invalid value: %s = %r", key, value)
    return result


def sync_requested(header: str | None, settings: _SettingStore | None) -> bool:
    """Tell whether a request asks for stores to be synced before handling.

    Syncing is allowed unless the setting handlers.allow_sync is false.
    """
    if settings is not None:
        allowed = get_bool_setting(settings, ALLOW_SYNC_SETTING)
        if allowed is False:
            return False
    return (header or "").lower() in _TRUE_VALUES


def make_request_id() -> str:
    """Return a fresh request id made of a random number and the time in ms."""
    return f"{_random.getrandbits(63)}-{time.time_ns() // 1_000_000}"