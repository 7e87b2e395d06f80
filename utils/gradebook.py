"""
Gradebook service: the single object the presentation layer talks to.

It owns the authoritative StudentRecord list and SchoolSettings, pushes every
change through a debounced autosave coordinator per key, and recomputes the
graded and ranked view on every read so derived data can never drift from
its source.
"""

import copy
import logging
import threading
import time
import uuid
from typing import Optional

from utils.autosave import AutoSaveCoordinator
from utils.backup_codec import (
    BackupParseResult,
    build_backup,
    encrypt_backup_file,
    parse_backup,
)
from utils.components import (
    add_to_library,
    apply_components,
    assign_to_subject,
    components_for_subject,
    get_registry_summary,
    remove_from_library,
    update_in_library,
)
from utils.csv_export import export_students_csv
from utils.data_protection import detect_data_loss, get_time_since_backup, record_backup
from utils.errors import DuplicateComponentError, StudentNotFoundError, ValidationError
from utils.grade_calculation import process_student
from utils.migration import MigrationManager, MigrationResult
from utils.ranking import DEFAULT_RANKING_MODE, rank_class
from utils.remarks import (
    attendance_percentage,
    generate_attendance_rating,
    generate_teacher_remark,
    random_conduct_trait,
    random_interest,
)
from utils.storage import (
    STORAGE_KEYS,
    StorageBackend,
    WriteResult,
    get_storage_stats,
    get_storage_warning_level,
)
from utils.validation import (
    default_settings,
    new_student,
    normalize_settings,
    normalize_student,
    parse_bulk_names,
    validate_bulk_names,
    validate_settings,
    validate_student,
)

logger = logging.getLogger(__name__)


class Gradebook:
    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self.config = backend.config
        self.students: list[dict] = []
        self.settings: dict = default_settings()
        self.migration: Optional[MigrationResult] = None
        self.data_loss_detected = False
        self.last_save_error: Optional[WriteResult] = None
        self._save_error_key: Optional[str] = None
        self.students_saver: Optional[AutoSaveCoordinator] = None
        self.settings_saver: Optional[AutoSaveCoordinator] = None
        self._trash: dict[str, dict] = {}
        self._lock = threading.RLock()

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def init(self) -> "Gradebook":
        """Probe storage, migrate legacy data, check for data loss and load."""
        state = self.backend.init()
        logger.info(f"Storage backend: {self.backend.storage_type} ({state.value})")

        if self.backend.is_database:
            self.migration = MigrationManager(self.backend).migrate()

        self.data_loss_detected = detect_data_loss(self.backend)
        if self.data_loss_detected:
            logger.warning(
                "⚠️ Data may have been cleared. Please restore from backup if needed."
            )

        has_students = self.backend.get_raw(STORAGE_KEYS["STUDENTS"]) is not None
        has_settings = self.backend.get_raw(STORAGE_KEYS["SETTINGS"]) is not None
        self.students = self._load_students()
        self.settings = self._load_settings()

        self.students_saver = AutoSaveCoordinator(
            self.backend,
            STORAGE_KEYS["STUDENTS"],
            delay_ms=self.config.debounce_ms,
            on_error=self._on_save_error,
            on_saved=self._on_saved,
        )
        self.settings_saver = AutoSaveCoordinator(
            self.backend,
            STORAGE_KEYS["SETTINGS"],
            delay_ms=self.config.debounce_ms,
            on_error=self._on_save_error,
            on_saved=self._on_saved,
        )

        # Seed missing keys so the next launch can tell "never saved" from "wiped"
        if not has_settings:
            self.settings_saver.update(self.settings)
            self.settings_saver.flush()
        if not has_students:
            self.students_saver.update(self.students)
            self.students_saver.flush()

        logger.info(f"✅ Gradebook loaded: {len(self.students)} students")
        return self

    def _load_students(self) -> list[dict]:
        saved = self.backend.get(STORAGE_KEYS["STUDENTS"])
        if saved is None:
            return []
        if not isinstance(saved, list):
            logger.error("❌ Invalid student data in storage: expected a list")
            return []

        students = []
        for record in saved:
            if not isinstance(record, dict):
                logger.warning("Skipping non-object student entry")
                continue
            student = normalize_student(record)
            errors = validate_student(student)
            if errors:
                logger.warning(f"Student {student.get('id')} has issues: {errors}")
            students.append(student)
        return students

    def _load_settings(self) -> dict:
        saved = self.backend.get(STORAGE_KEYS["SETTINGS"])
        if saved is None:
            return default_settings()
        settings = normalize_settings(saved)
        errors = validate_settings(settings)
        if errors:
            logger.error(f"❌ Invalid settings data in storage: {errors}")
            return default_settings()
        return settings

    def flush(self) -> list[WriteResult]:
        results = []
        for saver in (self.students_saver, self.settings_saver):
            if saver is not None:
                result = saver.flush()
                if result is None:
                    continue
                # the timer thread may not have run its callbacks yet
                if not result.ok:
                    self.last_save_error = result
                    self._save_error_key = saver.key
                elif self._save_error_key == saver.key:
                    self._on_saved(saver.key, None)
                results.append(result)
        return results

    def close(self) -> None:
        for saver in (self.students_saver, self.settings_saver):
            if saver is not None:
                saver.close()
        self.backend.close()

    def _on_saved(self, key: str, value) -> None:
        if self._save_error_key == key:
            self.last_save_error = None
            self._save_error_key = None

    def _on_save_error(self, key: str, result: WriteResult) -> None:
        self.last_save_error = result
        self._save_error_key = key
        if result.quota_exceeded:
            logger.error(f"❌ STORAGE FULL: '{key}' was not saved. {result.message}")

    def _persist_students(self) -> None:
        if self.students_saver is not None:
            self.students_saver.update(self.students)

    def _persist_settings(self) -> None:
        if self.settings_saver is not None:
            self.settings_saver.update(self.settings)

    # -----------------------------
    # Students
    # -----------------------------
    def _index_of(self, student_id: str) -> int:
        for i, student in enumerate(self.students):
            if student.get("id") == student_id:
                return i
        raise StudentNotFoundError(f"Student {student_id} not found")

    def _prepare(self, record: dict) -> dict:
        if not isinstance(record, dict):
            raise ValidationError("Invalid student data", ["Student record must be an object"])
        student = normalize_student(record)
        class_max = self.settings.get("classScoreMax", 40)
        student["subjects"] = [apply_components(s, class_max) for s in student["subjects"]]
        errors = validate_student(student)
        if errors:
            raise ValidationError("Invalid student data", errors)
        return student

    def get_student(self, student_id: str) -> dict:
        with self._lock:
            return copy.deepcopy(self.students[self._index_of(student_id)])

    def new_student(self, name: str, class_name: str = "") -> dict:
        """Blank record using the configured default subjects and component templates."""
        component_map = self.settings.get("subjectComponentMap") or {}
        student = new_student(name, class_name, self.settings.get("defaultSubjects") or [])
        for subject in student["subjects"]:
            if component_map.get(subject["name"]):
                subject["classScoreComponents"] = components_for_subject(
                    component_map[subject["name"]]
                )
        return student

    def add_student(self, record: dict) -> dict:
        with self._lock:
            student = self._prepare(record)
            if any(s.get("id") == student["id"] for s in self.students):
                raise ValidationError("Invalid student data", ["Student ID already exists"])
            self.students = self.students + [student]
            self._persist_students()
            logger.info(f"Student '{student['name']}' added")
            return copy.deepcopy(student)

    def update_student(self, record: dict) -> dict:
        with self._lock:
            student = self._prepare(record)
            index = self._index_of(student["id"])
            students = list(self.students)
            students[index] = student
            self.students = students
            self._persist_students()
            return copy.deepcopy(student)

    def _purge_trash(self) -> None:
        now = time.monotonic()
        for token in [t for t, item in self._trash.items() if item["expires"] <= now]:
            del self._trash[token]

    def delete_student(self, student_id: str) -> str:
        """Soft delete: the record can be restored with the returned token until the undo window closes."""
        with self._lock:
            self._purge_trash()
            index = self._index_of(student_id)
            student = self.students[index]
            self.students = self.students[:index] + self.students[index + 1 :]
            token = uuid.uuid4().hex
            self._trash[token] = {
                "student": student,
                "index": index,
                "expires": time.monotonic() + float(self.config.undo_window_seconds),
            }
            self._persist_students()
            logger.info(f"Student '{student.get('name')}' moved to trash")
            return token

    def undo_delete(self, token: str) -> dict:
        with self._lock:
            self._purge_trash()
            item = self._trash.pop(token, None)
            if item is None:
                raise StudentNotFoundError("Nothing to restore (undo window has closed)")
            student = item["student"]
            if any(s.get("id") == student.get("id") for s in self.students):
                raise ValidationError("Cannot restore student", ["Student ID already exists"])
            index = min(item["index"], len(self.students))
            self.students = self.students[:index] + [student] + self.students[index:]
            self._persist_students()
            logger.info(f"Student '{student.get('name')}' restored")
            return copy.deepcopy(student)

    def clear_all_scores(self) -> int:
        """Zero every score but keep the students and their subjects."""
        with self._lock:
            cleared = []
            for student in self.students:
                updated = dict(student)
                subjects = []
                for subject in student.get("subjects") or []:
                    sub = dict(subject, classScore=0, examScore=0)
                    if sub.get("classScoreComponents"):
                        sub["classScoreComponents"] = [
                            dict(c, score=0) for c in sub["classScoreComponents"]
                        ]
                    subjects.append(sub)
                updated["subjects"] = subjects
                cleared.append(updated)
            self.students = cleared
            self._persist_students()
            return len(cleared)

    def delete_pending_students(self) -> int:
        """Remove students who have no subject with a non-zero score."""
        with self._lock:
            active = [
                s
                for s in self.students
                if any(
                    (sub.get("classScore") or 0) > 0 or (sub.get("examScore") or 0) > 0
                    for sub in s.get("subjects") or []
                )
            ]
            removed = len(self.students) - len(active)
            if removed:
                self.students = active
                self._persist_students()
                logger.info(f"Cleaned up {removed} incomplete records")
            return removed

    def generate_remarks(self, rng=None) -> int:
        """Fill teacher remarks and attendance ratings; conduct/interest only when empty."""
        with self._lock:
            level = self.settings.get("level")
            total_days = self.settings.get("totalAttendanceDays") or 0
            updated_students = []
            for student in self.students:
                processed = process_student(student, level)
                present = student.get("attendancePresent") or 0
                percent = attendance_percentage(present, total_days)
                updated = dict(student)
                updated["teacherRemark"] = generate_teacher_remark(
                    processed, present, total_days, level, rng
                )
                updated["attendanceRemark"] = generate_attendance_rating(percent)
                updated["conduct"] = student.get("conduct") or random_conduct_trait(rng)
                updated["interest"] = student.get("interest") or random_interest(rng)
                updated_students.append(updated)
            self.students = updated_students
            self._persist_students()
            return len(updated_students)

    def bulk_add_students(self, text: str, class_name: str = "") -> dict:
        """Create blank records for pasted names; invalid names are reported, not added."""
        checked = validate_bulk_names(parse_bulk_names(text))
        with self._lock:
            added = []
            for name in checked["valid"]:
                student = self._prepare(self.new_student(name, class_name))
                added.append(student)
            if added:
                self.students = self.students + added
                self._persist_students()
                logger.info(f"Bulk import added {len(added)} students")
        if checked["errors"]:
            logger.warning(f"⚠️ Bulk import skipped {len(checked['errors'])} names")
        return {"added": copy.deepcopy(added), "errors": checked["errors"]}

    # -----------------------------
    # Derived views
    # -----------------------------
    def processed_students(self) -> list[dict]:
        """Graded and ranked view, recomputed from the records on every call."""
        with self._lock:
            students = copy.deepcopy(self.students)
            level = self.settings.get("level")
            mode = self.settings.get("rankingMode", DEFAULT_RANKING_MODE)
        processed = [process_student(s, level) for s in students]
        return rank_class(processed, mode)

    def export_csv(self) -> str:
        return export_students_csv(self.processed_students())

    # -----------------------------
    # Settings
    # -----------------------------
    def get_settings(self) -> dict:
        with self._lock:
            return copy.deepcopy(self.settings)

    def _set_settings(self, settings: dict) -> dict:
        errors = validate_settings(settings)
        if errors:
            raise ValidationError("Invalid settings", errors)
        previous_max = self.settings.get("classScoreMax")
        self.settings = settings
        if settings.get("classScoreMax") != previous_max:
            self.students = [
                dict(
                    s,
                    subjects=[
                        apply_components(sub, settings["classScoreMax"])
                        for sub in s.get("subjects") or []
                    ],
                )
                for s in self.students
            ]
            self._persist_students()
        self._persist_settings()
        return copy.deepcopy(settings)

    def update_settings(self, changes: dict) -> dict:
        with self._lock:
            if not isinstance(changes, dict):
                raise ValidationError("Invalid settings", ["Settings must be an object"])
            merged = dict(self.settings)
            merged.update(changes)
            return self._set_settings(normalize_settings(merged))

    def restore_default_settings(self) -> dict:
        with self._lock:
            return self._set_settings(default_settings())

    def add_component(self, config: dict) -> dict:
        with self._lock:
            library, error = add_to_library(self.settings.get("componentLibrary") or [], config)
            if error:
                raise DuplicateComponentError(error)
            return self._set_settings(dict(self.settings, componentLibrary=library))

    def update_component(self, original_name: str, config: dict) -> dict:
        with self._lock:
            library, component_map, error = update_in_library(
                self.settings.get("componentLibrary") or [],
                self.settings.get("subjectComponentMap") or {},
                original_name,
                config,
            )
            if error:
                raise DuplicateComponentError(error)
            return self._set_settings(
                dict(self.settings, componentLibrary=library, subjectComponentMap=component_map)
            )

    def remove_component(self, name: str) -> dict:
        with self._lock:
            library, component_map = remove_from_library(
                self.settings.get("componentLibrary") or [],
                self.settings.get("subjectComponentMap") or {},
                name,
            )
            return self._set_settings(
                dict(self.settings, componentLibrary=library, subjectComponentMap=component_map)
            )

    def assign_components(self, subject_name: str, component_names: list[str]) -> dict:
        with self._lock:
            library = self.settings.get("componentLibrary") or []
            by_name = {c.get("name"): c for c in library}
            missing = [n for n in component_names if n not in by_name]
            if missing:
                raise ValidationError("Unknown components", [f"Not in library: {n}" for n in missing])
            component_map = assign_to_subject(
                self.settings.get("subjectComponentMap") or {},
                subject_name,
                [by_name[n] for n in component_names],
            )
            return self._set_settings(dict(self.settings, subjectComponentMap=component_map))

    def component_summary(self) -> dict:
        with self._lock:
            return get_registry_summary(
                self.settings.get("componentLibrary") or [],
                self.settings.get("subjectComponentMap") or {},
            )

    # -----------------------------
    # Backup
    # -----------------------------
    def export_backup(self, password: Optional[str] = None, hint: Optional[str] = None) -> dict:
        """Full backup document, encrypted when a password is given."""
        with self._lock:
            backup = build_backup(copy.deepcopy(self.students), copy.deepcopy(self.settings))
        document = encrypt_backup_file(backup, password, hint) if password else backup
        record_backup(self.backend)
        logger.info(
            f"Backup exported: {len(backup['students'])} students"
            f"{' (encrypted)' if password else ''}"
        )
        return document

    def import_backup(self, content, password: Optional[str] = None) -> BackupParseResult:
        """Replace all students and settings with a backup's contents."""
        parsed = parse_backup(content, password)
        if not parsed.success:
            return parsed

        backup = parsed.backup
        students = [
            normalize_student(s) for s in backup["students"] if isinstance(s, dict)
        ]
        settings = normalize_settings(backup["settings"])
        errors = validate_settings(settings)
        if errors:
            logger.warning(f"Backup settings invalid, keeping defaults: {errors}")
            settings = default_settings(settings.get("level", "PRIMARY"))

        with self._lock:
            self.students = students
            self.settings = settings
            self._trash.clear()
            self._persist_students()
            self._persist_settings()
        for result in self.flush():
            if not result.ok:
                return BackupParseResult(False, error=result.error, message=result.message)

        self.data_loss_detected = False
        logger.info(f"✅ Restored {len(students)} students from backup")
        return BackupParseResult(
            True,
            backup=backup,
            message=f"Successfully restored {len(students)} students.",
        )

    # -----------------------------
    # Status
    # -----------------------------
    def status(self) -> dict:
        stats = get_storage_stats(self.backend)
        savers = [s for s in (self.students_saver, self.settings_saver) if s is not None]
        saved_times = [s.last_saved for s in savers if s.last_saved is not None]
        return {
            "storageType": self.backend.storage_type,
            "storageState": self.backend.state.value,
            "isSaving": any(s.is_saving for s in savers),
            "lastSaved": max(saved_times).isoformat() if saved_times else None,
            "lastSaveError": (
                self.last_save_error.to_dict() if self.last_save_error is not None else None
            ),
            "dataLossDetected": self.data_loss_detected,
            "migration": self.migration.to_dict() if self.migration else None,
            "timeSinceBackup": get_time_since_backup(self.backend),
            "warningLevel": get_storage_warning_level(stats),
            "stats": stats,
        }
