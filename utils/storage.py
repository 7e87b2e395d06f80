"""
Storage backend with a SQLite primary store and a local JSON-file fallback.

The backend probes the database once per instance (open + write + delete of a
throwaway key). Any failure permanently selects the local fallback for the
session, the same way private-mode browsers lose IndexedDB. Reads fail soft
and return None; writes return a WriteResult so that a full store can be
reported to the user instead of crashing the caller.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote, unquote

from sqlalchemy import LargeBinary, cast, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from models import AppData, Base
from utils.db_conn import StorageConfig, create_storage_engine
from utils.errors import QuotaExceededError, StorageUnavailableError

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "STUDENTS": "students",
    "SETTINGS": "settings",
}

PROBE_KEY = "__repota_probe__"

# Warning thresholds as a percentage of the quota
WARNING_PERCENT = 70
CRITICAL_PERCENT = 90


class StorageState(str, Enum):
    UNPROBED = "unprobed"
    PROBING = "probing"
    DATABASE_READY = "database_ready"
    LOCAL_FALLBACK = "local_fallback"


@dataclass
class WriteResult:
    ok: bool
    error: Optional[str] = None
    message: Optional[str] = None

    def __bool__(self):
        return self.ok

    @property
    def quota_exceeded(self) -> bool:
        return self.error == QuotaExceededError.kind

    def to_dict(self) -> dict:
        return {"ok": self.ok, "error": self.error, "message": self.message}


def _byte_size(text: str) -> int:
    return len(text.encode("utf-8"))


class LocalFileStore:
    """localStorage-like store: one JSON text file per key, with a byte quota."""

    def __init__(self, directory: str, quota_bytes: Optional[int] = None):
        self.directory = directory
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, quote(key, safe="") + ".json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()

    def set_item(self, key: str, text: str) -> None:
        if self.quota_bytes is not None:
            other = self.total_bytes(exclude=key)
            if other + _byte_size(text) > self.quota_bytes:
                raise QuotaExceededError(
                    f"Local storage quota of {self.quota_bytes} bytes exceeded"
                )
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def keys(self) -> list[str]:
        if not os.path.isdir(self.directory):
            return []
        return sorted(
            unquote(name[: -len(".json")])
            for name in os.listdir(self.directory)
            if name.endswith(".json")
        )

    def clear(self) -> None:
        for key in self.keys():
            self.remove_item(key)

    def total_bytes(self, exclude: Optional[str] = None) -> int:
        total = 0
        for key in self.keys():
            if key == exclude:
                continue
            try:
                total += os.path.getsize(self._path(key))
            except OSError:
                continue
        return total


def _stored_bytes():
    # length() of TEXT counts characters; of a BLOB it counts UTF-8 bytes
    return func.coalesce(func.sum(func.length(cast(AppData.value, LargeBinary))), 0)


class DatabaseStore:
    """Key/value object store in the app_data table."""

    def __init__(self, engine, quota_bytes: Optional[int] = None):
        self.engine = engine
        self.quota_bytes = quota_bytes
        self.Session = sessionmaker(bind=engine)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_item(self, key: str) -> Optional[str]:
        with self.Session() as session:
            row = session.get(AppData, key)
            return row.value if row is not None else None

    def set_item(self, key: str, text: str) -> None:
        try:
            with self.Session() as session:
                if self.quota_bytes is not None:
                    other = (
                        session.query(_stored_bytes())
                        .filter(AppData.key != key)
                        .scalar()
                    )
                    if int(other or 0) + _byte_size(text) > self.quota_bytes:
                        raise QuotaExceededError(
                            f"Database quota of {self.quota_bytes} bytes exceeded"
                        )
                session.merge(AppData(key=key, value=text))
                session.commit()
        except OperationalError as e:
            if "full" in str(e).lower():
                raise QuotaExceededError("Database or disk is full") from e
            raise

    def remove_item(self, key: str) -> None:
        with self.Session() as session:
            row = session.get(AppData, key)
            if row is not None:
                session.delete(row)
                session.commit()

    def keys(self) -> list[str]:
        with self.Session() as session:
            return [k for (k,) in session.query(AppData.key).order_by(AppData.key)]

    def clear(self) -> None:
        with self.Session() as session:
            session.query(AppData).delete()
            session.commit()

    def total_bytes(self) -> int:
        with self.Session() as session:
            total = session.query(_stored_bytes()).scalar()
            return int(total or 0)


class StorageBackend:
    """Device-local persistence used by the gradebook.

    Construct one per data directory and call init() once at startup. The
    database connection opened by the probe is kept for the whole session and
    shared by every autosave coordinator.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig()
        self.state = StorageState.UNPROBED
        self.local_store = LocalFileStore(
            self.config.local_storage_dir, self.config.local_quota_bytes
        )
        self.db_store: Optional[DatabaseStore] = None
        self.engine = None
        self.last_error: Optional[WriteResult] = None
        self._lock = threading.RLock()

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def init(self) -> StorageState:
        """Probe the database once and settle on a backend."""
        with self._lock:
            if self.state in (StorageState.DATABASE_READY, StorageState.LOCAL_FALLBACK):
                return self.state

            self.state = StorageState.PROBING
            if self.config.force_local_storage:
                logger.warning("⚠️ Local storage forced by configuration")
                self.state = StorageState.LOCAL_FALLBACK
                return self.state

            try:
                self._probe()
                self.state = StorageState.DATABASE_READY
                logger.info("✅ Database storage initialized successfully")
            except Exception as e:
                logger.warning(
                    f"⚠️ Database storage not available, falling back to local storage: {e}"
                )
                self._dispose()
                self.state = StorageState.LOCAL_FALLBACK
            return self.state

    def _probe(self) -> None:
        try:
            self.engine = create_storage_engine(self.config.db_path)
            store = DatabaseStore(self.engine, self.config.db_quota_bytes)
            store.create_tables()
            store.set_item(PROBE_KEY, json.dumps("test"))
            store.remove_item(PROBE_KEY)
        except Exception as e:
            raise StorageUnavailableError("Database probe failed", detail=str(e)) from e
        self.db_store = store

    def _dispose(self) -> None:
        if self.engine is not None:
            try:
                self.engine.dispose()
            except Exception as e:
                logger.warning(f"Error disposing storage engine: {e}")
        self.engine = None
        self.db_store = None

    def close(self) -> None:
        with self._lock:
            self._dispose()

    @property
    def is_database(self) -> bool:
        return self.state == StorageState.DATABASE_READY

    @property
    def storage_type(self) -> str:
        return "database" if self.is_database else "localstorage"

    def _active_store(self):
        if self.state in (StorageState.UNPROBED, StorageState.PROBING):
            self.init()
        if self.is_database and self.db_store is not None:
            return self.db_store
        return self.local_store

    # -----------------------------
    # Key/value API
    # -----------------------------
    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            try:
                return self._active_store().get_item(key)
            except Exception as e:
                logger.error(f"Storage load error for '{key}': {e}")
                return None

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or default on a missing key or any read error."""
        text = self.get_raw(key)
        if text is None:
            return default
        try:
            return json.loads(text)
        except ValueError as e:
            logger.error(f"Storage value for '{key}' is not valid JSON: {e}")
            return default

    def write(self, key: str, value: Any) -> WriteResult:
        """Persist value under key and report what happened."""
        try:
            text = json.dumps(value, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            result = WriteResult(False, "serialization_error", str(e))
            logger.error(f"Storage save error for '{key}': {e}")
            self.last_error = result
            return result

        with self._lock:
            try:
                self._active_store().set_item(key, text)
            except QuotaExceededError as e:
                logger.error(f"❌ Storage quota exceeded while saving '{key}': {e.message}")
                result = WriteResult(False, e.kind, f"{e.message}. {e.detail}")
                self.last_error = result
                return result
            except Exception as e:
                logger.error(f"Storage save error for '{key}': {e}")
                result = WriteResult(False, "io_error", str(e))
                self.last_error = result
                return result
        return WriteResult(True)

    def put(self, key: str, value: Any) -> bool:
        return self.write(key, value).ok

    def remove(self, key: str) -> bool:
        with self._lock:
            try:
                self._active_store().remove_item(key)
                return True
            except Exception as e:
                logger.error(f"Storage delete error for '{key}': {e}")
                return False

    def clear(self) -> bool:
        """Delete every key from the active store (use with caution!)."""
        with self._lock:
            try:
                self._active_store().clear()
                return True
            except Exception as e:
                logger.error(f"Storage clear error: {e}")
                return False

    def keys(self) -> list[str]:
        with self._lock:
            try:
                return self._active_store().keys()
            except Exception as e:
                logger.error(f"Storage keys error: {e}")
                return []

    @property
    def quota_bytes(self) -> Optional[int]:
        if self.is_database:
            return self.config.db_quota_bytes
        return self.config.local_quota_bytes


# -----------------------------
# Usage monitoring
# -----------------------------
def _is_inline_image(value) -> bool:
    return isinstance(value, str) and value.startswith("data:image")


def get_storage_stats(backend: StorageBackend) -> dict:
    """Usage breakdown for the students and settings keys."""
    students_text = backend.get_raw(STORAGE_KEYS["STUDENTS"]) or "[]"
    settings_text = backend.get_raw(STORAGE_KEYS["SETTINGS"]) or "{}"

    try:
        students = json.loads(students_text)
    except ValueError:
        students = []
    try:
        settings = json.loads(settings_text)
    except ValueError:
        settings = {}
    if not isinstance(students, list):
        students = []
    if not isinstance(settings, dict):
        settings = {}

    students_size = _byte_size(students_text)
    settings_size = _byte_size(settings_text)

    photos_size = 0
    with_photos = 0
    for student in students:
        picture = student.get("pictureUrl") if isinstance(student, dict) else None
        if _is_inline_image(picture):
            photos_size += _byte_size(picture)
            with_photos += 1

    logo_and_signatures = 0
    for field_name in ("logoUrl", "headTeacherSignature", "teacherSignature"):
        if _is_inline_image(settings.get(field_name)):
            logo_and_signatures += _byte_size(settings[field_name])

    used = students_size + settings_size
    quota = backend.quota_bytes
    usage_percent = round(used / quota * 100, 1) if quota else 0.0

    return {
        "storageType": backend.storage_type,
        "usedBytes": used,
        "usedMB": round(used / (1024 * 1024), 2),
        "totalEstimatedMB": round(quota / (1024 * 1024), 2) if quota else None,
        "usagePercent": usage_percent,
        "breakdown": {
            "students": students_size,
            "settings": settings_size,
            "studentPhotos": photos_size,
            "logoAndSignatures": logo_and_signatures,
        },
        "studentCount": len(students),
        "studentsWithPhotos": with_photos,
        "averagePhotoSize": round(photos_size / with_photos / 1024) if with_photos else 0,
    }


def get_storage_warning_level(stats: dict) -> str:
    percent = stats.get("usagePercent") or 0
    if percent >= CRITICAL_PERCENT:
        return "critical"
    if percent >= WARNING_PERCENT:
        return "warning"
    return "safe"


def find_largest_photos(backend: StorageBackend, limit: int = 5) -> list[dict]:
    """Students with the biggest inline photos, for cleanup suggestions."""
    students = backend.get(STORAGE_KEYS["STUDENTS"], default=[])
    if not isinstance(students, list):
        return []
    sized = [
        {
            "id": s.get("id"),
            "name": s.get("name"),
            "sizeKB": round(_byte_size(s["pictureUrl"]) / 1024),
        }
        for s in students
        if isinstance(s, dict) and _is_inline_image(s.get("pictureUrl"))
    ]
    sized.sort(key=lambda s: s["sizeKB"], reverse=True)
    return sized[:limit]


def format_bytes(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"
