"""Detect stores wiped between sessions and track the last manual backup."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from utils.storage import STORAGE_KEYS, StorageBackend

logger = logging.getLogger(__name__)

BACKUP_CHECK_KEY = "repota_backup_check"
LAST_BACKUP_KEY = "repota_last_backup"


def create_backup_heartbeat(backend: StorageBackend) -> bool:
    """Record that the data keys were written intact just now."""
    return backend.put(BACKUP_CHECK_KEY, int(time.time() * 1000))


def detect_data_loss(backend: StorageBackend) -> bool:
    """True when a heartbeat exists but the students or settings key is gone.

    That combination means something cleared the store after a successful
    save, so the user should be told to restore from a backup.
    """
    heartbeat = backend.get_raw(BACKUP_CHECK_KEY)
    if heartbeat is None:
        return False

    has_students = backend.get_raw(STORAGE_KEYS["STUDENTS"]) is not None
    has_settings = backend.get_raw(STORAGE_KEYS["SETTINGS"]) is not None
    if not has_students or not has_settings:
        logger.warning(
            "⚠️ Heartbeat present but data keys missing: storage may have been cleared"
        )
        return True
    return False


def record_backup(backend: StorageBackend, when: Optional[datetime] = None) -> bool:
    when = when or datetime.now(timezone.utc)
    return backend.put(LAST_BACKUP_KEY, when.isoformat())


def get_time_since_backup(
    backend: StorageBackend, now: Optional[datetime] = None
) -> Optional[str]:
    last_backup = backend.get(LAST_BACKUP_KEY)
    if not last_backup:
        return None
    try:
        then = datetime.fromisoformat(last_backup)
    except (TypeError, ValueError):
        return None
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    diff_days = (now - then).days
    if diff_days <= 0:
        return "today"
    if diff_days == 1:
        return "yesterday"
    return f"{diff_days} days ago"
