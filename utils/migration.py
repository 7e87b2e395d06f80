"""
One-time migration of legacy local-storage data into the database store.

Older installs kept students and settings as JSON files in the local store.
Once the database is available, those values are copied across exactly once;
if the database already holds students, the migration is a no-op so newer
data is never overwritten with stale legacy data.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from utils.storage import STORAGE_KEYS, StorageBackend

logger = logging.getLogger(__name__)

ALREADY_MIGRATED = "Data already in database"
DATABASE_UNAVAILABLE = "Database not available - using local storage fallback"


@dataclass
class MigrationResult:
    success: bool
    students_count: Optional[int] = None
    settings_migrated: Optional[bool] = None
    error: Optional[str] = None

    @property
    def already_migrated(self) -> bool:
        return self.success and self.error == ALREADY_MIGRATED

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.students_count is not None:
            data["studentsCount"] = self.students_count
        if self.settings_migrated is not None:
            data["settingsMigrated"] = self.settings_migrated
        if self.error is not None:
            data["error"] = self.error
        return data


class MigrationManager:
    def __init__(self, backend: StorageBackend):
        self.backend = backend

    def _read_legacy(self, key: str):
        text = self.backend.local_store.get_item(key)
        return json.loads(text) if text else None

    def migrate(self) -> MigrationResult:
        """Copy legacy students/settings into the database store once."""
        if not self.backend.is_database or self.backend.db_store is None:
            return MigrationResult(success=False, error=DATABASE_UNAVAILABLE)

        db_store = self.backend.db_store
        try:
            existing = db_store.get_item(STORAGE_KEYS["STUDENTS"])
            if existing:
                try:
                    students = json.loads(existing)
                except ValueError:
                    students = None
                count = len(students) if isinstance(students, list) else 0
                logger.info(f"Migration skipped: {ALREADY_MIGRATED} ({count} students)")
                return MigrationResult(
                    success=True,
                    students_count=count,
                    settings_migrated=True,
                    error=ALREADY_MIGRATED,
                )

            students = self._read_legacy(STORAGE_KEYS["STUDENTS"]) or []
            if not isinstance(students, list):
                raise ValueError("Legacy students value is not a list")
            if students:
                db_store.set_item(STORAGE_KEYS["STUDENTS"], json.dumps(students))

            settings = self._read_legacy(STORAGE_KEYS["SETTINGS"])
            if settings:
                db_store.set_item(STORAGE_KEYS["SETTINGS"], json.dumps(settings))

            logger.info(f"✅ Migrated {len(students)} students to database storage")
            return MigrationResult(
                success=True,
                students_count=len(students),
                settings_migrated=bool(settings),
            )
        except Exception as e:
            logger.error(f"❌ Migration error: {e}")
            return MigrationResult(success=False, error=str(e) or type(e).__name__)
