"""Centralized application settings.

A single place to load runtime configuration values. Components receive the
resulting :class:`AppSettings` snapshot (or values taken from it) through the
bootstrap container instead of calling ``os.getenv`` themselves.
"""

from __future__ import annotations
from tracking import t

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

import pytz
from dotenv import load_dotenv

from . import constants


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Normalize environment strings such as "true"/"1" into booleans."""
    t('infrastructure.settings._to_bool')

    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str], default: int) -> int:
    t('infrastructure.settings._to_int')
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value: Optional[str], default: float) -> float:
    t('infrastructure.settings._to_float')
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AppSettings:
    """Immutable snapshot of high-level configuration values."""

    production_mode: bool
    timezone: str
    data_directory: str
    resources_file: str
    queue_store_directory: str
    queue_storage_key: str
    queue_max_size: int
    queue_max_retries: int
    queue_item_delay_seconds: float
    queue_retry_delay_seconds: float
    queue_store_max_bytes: Optional[int]
    operation_history_limit: int
    change_actor: str
    log_directory: str

    @property
    def tz(self):
        """Return the configured timezone as a pytz zone."""
        return pytz.timezone(self.timezone)


def load_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Load configuration from the environment and fall back to defaults."""
    t('infrastructure.settings.load_settings')

    if env is None:
        load_dotenv(override=False)
        env = os.environ

    production_mode = _to_bool(env.get("PRODUCTION_MODE"), default=False)

    timezone = env.get("RESERVATION_TIMEZONE", constants.DEFAULT_TIMEZONE)
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        timezone = constants.DEFAULT_TIMEZONE

    data_directory = env.get("DATA_DIRECTORY", "data")
    resources_file = env.get(
        "RESOURCES_FILE", os.path.join(data_directory, "resources.json")
    )
    queue_store_directory = env.get(
        "QUEUE_STORE_DIRECTORY", os.path.join(data_directory, "store")
    )
    queue_storage_key = env.get("QUEUE_STORAGE_KEY", constants.QUEUE_STORAGE_KEY)

    queue_max_size = _to_int(env.get("QUEUE_MAX_SIZE"), constants.QUEUE_MAX_SIZE)
    queue_max_retries = _to_int(env.get("QUEUE_MAX_RETRIES"), constants.QUEUE_MAX_RETRIES)
    queue_item_delay_seconds = _to_float(
        env.get("QUEUE_ITEM_DELAY_SECONDS"), constants.QUEUE_ITEM_DELAY_SECONDS
    )
    queue_retry_delay_seconds = _to_float(
        env.get("QUEUE_RETRY_DELAY_SECONDS"), constants.QUEUE_RETRY_DELAY_SECONDS
    )

    raw_max_bytes = env.get("QUEUE_STORE_MAX_BYTES")
    queue_store_max_bytes = _to_int(raw_max_bytes, 0) if raw_max_bytes else 0
    if queue_store_max_bytes <= 0:
        queue_store_max_bytes = None

    operation_history_limit = _to_int(
        env.get("OPERATION_HISTORY_LIMIT"), constants.OPERATION_HISTORY_LIMIT
    )
    change_actor = env.get("CHANGE_ACTOR", constants.DEFAULT_ACTOR)
    log_directory = env.get("LOG_DIRECTORY", os.path.join("logs", "latest_log"))

    return AppSettings(
        production_mode=production_mode,
        timezone=timezone,
        data_directory=data_directory,
        resources_file=resources_file,
        queue_store_directory=queue_store_directory,
        queue_storage_key=queue_storage_key,
        queue_max_size=queue_max_size,
        queue_max_retries=queue_max_retries,
        queue_item_delay_seconds=queue_item_delay_seconds,
        queue_retry_delay_seconds=queue_retry_delay_seconds,
        queue_store_max_bytes=queue_store_max_bytes,
        operation_history_limit=operation_history_limit,
        change_actor=change_actor,
        log_directory=log_directory,
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached :class:`AppSettings` instance."""
    t('infrastructure.settings.get_settings')

    return load_settings()
