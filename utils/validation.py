import math
import re
import uuid
from typing import List, Dict, Optional

from utils.errors import ValidationError
from utils.grade_calculation import SCHOOL_LEVELS
from utils.ranking import DEFAULT_RANKING_MODE, RANKING_MODES

DEFAULT_SUBJECTS = {
    "KG": ["Numeracy", "Literacy", "Creative Arts", "Our World Our People"],
    "PRIMARY": [
        "English Language",
        "Mathematics",
        "Science",
        "History",
        "RME",
        "Creative Arts",
        "Computing",
        "Ghanaian Language",
    ],
    "JHS": [
        "English Language",
        "Mathematics",
        "Science",
        "Social Studies",
        "RME",
        "Computing",
        "Career Technology",
        "Creative Arts and Design",
        "Ghanaian Language",
    ],
    "SHS": ["Core Mathematics", "Integrated Science", "English Language", "Social Studies"],
}

CLASS_OPTIONS = {
    "KG": ["Creche", "Nursery 1", "Nursery 2", "KG 1", "KG 2"],
    "PRIMARY": ["Class 1", "Class 2", "Class 3", "Class 4", "Class 5", "Class 6"],
    "JHS": ["JHS 1", "JHS 2", "JHS 3"],
    "SHS": ["SHS 1", "SHS 2", "SHS 3"],
}

ACADEMIC_PERIODS = [
    "First Term",
    "Second Term",
    "Third Term",
    "First Semester",
    "Second Semester",
]
SCHOOL_TYPES = ["STANDARD", "ISLAMIC"]
GENDERS = ["Male", "Female"]
MAX_SUBJECTS = 25

_NAME_RE = re.compile(r"^[A-Za-z0-9\s.,'()&-]+$")
_YEAR_RE = re.compile(r"^(\d{4})/(\d{4})$")


def default_settings(level: str = "PRIMARY") -> Dict:
    """Factory defaults for a fresh device."""
    return {
        "schoolName": "My School Name",
        "academicYear": "2025/2026",
        "term": "First Term",
        "level": level,
        "schoolType": "STANDARD",
        "classScoreMax": 40,
        "examScoreMax": 60,
        "totalAttendanceDays": 70,
        "defaultSubjects": list(DEFAULT_SUBJECTS.get(level, DEFAULT_SUBJECTS["PRIMARY"])),
        "componentLibrary": [],
        "subjectComponentMap": {},
        "rankingMode": DEFAULT_RANKING_MODE,
    }


def is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except (TypeError, ValueError):
        return False


def _number(value, default=0):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def new_subject(name: str, class_score=0, exam_score=0) -> Dict:
    return {
        "id": str(uuid.uuid4()),
        "name": name,
        "classScore": class_score,
        "examScore": exam_score,
    }


def new_student(name: str, class_name: str = "", subjects: Optional[List[str]] = None) -> Dict:
    """Blank student record with zero scores for each subject name."""
    return {
        "id": str(uuid.uuid4()),
        "name": name,
        "className": class_name,
        "subjects": [new_subject(s) for s in (subjects or [])],
    }


def normalize_subject(subject: Dict) -> Dict:
    """Trim names, coerce scores to numbers and make sure there is an id."""
    if not isinstance(subject, dict):
        return new_subject("")
    normalized = dict(subject)
    normalized["id"] = str(subject.get("id") or uuid.uuid4())
    normalized["name"] = str(subject.get("name") or "").strip()
    normalized["classScore"] = _number(subject.get("classScore"))
    normalized["examScore"] = _number(subject.get("examScore"))
    components = subject.get("classScoreComponents")
    if isinstance(components, list) and components:
        normalized["classScoreComponents"] = [
            {
                "id": str(c.get("id") or uuid.uuid4()),
                "name": str(c.get("name") or "").strip(),
                "score": _number(c.get("score")),
                "maxScore": _number(c.get("maxScore")),
                "category": c.get("category") or "classwork",
            }
            for c in components
            if isinstance(c, dict)
        ]
    else:
        normalized.pop("classScoreComponents", None)
    return normalized


def normalize_student(record: Dict) -> Dict:
    normalized = dict(record)
    normalized["id"] = str(record.get("id") or uuid.uuid4())
    normalized["name"] = re.sub(r"\s+", " ", str(record.get("name") or "")).strip()
    normalized["className"] = str(record.get("className") or "").strip()
    subjects = record.get("subjects")
    normalized["subjects"] = [
        normalize_subject(s) for s in (subjects if isinstance(subjects, list) else [])
    ]
    if record.get("attendancePresent") not in (None, ""):
        normalized["attendancePresent"] = _number(record.get("attendancePresent"))
    return normalized


def validate_student(record: Dict) -> List[str]:
    """Return a list of human-readable problems; empty means valid."""
    errors: List[str] = []
    if not isinstance(record, dict):
        return ["Student record must be an object"]

    if not is_uuid(record.get("id")):
        errors.append("Invalid student ID")

    name = record.get("name")
    if not isinstance(name, str) or len(name.strip()) < 2:
        errors.append("Student name must be at least 2 characters")
    elif len(name) > 100:
        errors.append("Student name too long (max 100 characters)")

    gender = record.get("gender")
    if gender not in (None, "") and gender not in GENDERS:
        errors.append(f"Invalid gender: {gender}")

    attendance = record.get("attendancePresent")
    if attendance not in (None, ""):
        if not isinstance(attendance, (int, float)) or not math.isfinite(attendance):
            errors.append("Attendance must be a number")
        elif attendance < 0:
            errors.append("Attendance cannot be negative")

    subjects = record.get("subjects")
    if not isinstance(subjects, list):
        errors.append("Subjects must be a list")
        return errors

    for subject in subjects:
        if not isinstance(subject, dict):
            errors.append("Subject must be an object")
            continue
        label = subject.get("name") or "(unnamed)"
        if not str(subject.get("name") or "").strip():
            errors.append("Subject name required")
        for field in ("classScore", "examScore"):
            value = subject.get(field, 0)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{label}: {field} must be a number")
            elif not math.isfinite(value):
                errors.append(f"{label}: {field} must be a finite number")
            elif value < 0:
                errors.append(f"{label}: {field} cannot be negative")
            elif value > 100:
                errors.append(f"{label}: {field} cannot exceed 100")
    return errors


# -----------------------------
# Bulk name import
# -----------------------------
MAX_BULK_TEXT = 10000

_STUDENT_NAME_RE = re.compile(r"^[a-zA-Z\s.'-]+$")
_SCRIPT_RE = re.compile(r"<(script|iframe)\b.*?</\1>", re.IGNORECASE | re.DOTALL)
_LIST_MARKER_RE = re.compile(r"^\s*(\d+[.)]|[-•*])\s*")


def parse_bulk_names(text) -> List[str]:
    """Split pasted text into one name per line, dropping numbering and bullets."""
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Invalid bulk import", ["Please paste student names"])
    if len(text) > MAX_BULK_TEXT:
        raise ValidationError(
            "Invalid bulk import", [f"Text input too large (max {MAX_BULK_TEXT:,} characters)"]
        )
    cleaned = _SCRIPT_RE.sub("", text)
    names = [_LIST_MARKER_RE.sub("", line, count=1).strip() for line in cleaned.splitlines()]
    return [n for n in names if n]


def validate_bulk_names(names: List[str]) -> Dict:
    """Split names into valid (whitespace-normalised) ones and per-name errors."""
    valid: List[str] = []
    errors: List[Dict] = []
    for name in names:
        if len(name) < 2:
            error = "Student name must be at least 2 characters"
        elif len(name) > 100:
            error = "Student name too long (max 100 characters)"
        elif not _STUDENT_NAME_RE.match(name):
            error = "Only letters, spaces, periods, hyphens, and apostrophes allowed"
        else:
            valid.append(re.sub(r"\s+", " ", name).strip())
            continue
        errors.append({"name": name, "error": error})
    return {"valid": valid, "errors": errors}


def normalize_settings(settings: Dict) -> Dict:
    """Fill missing settings from the defaults for the chosen level."""
    level = settings.get("level") if isinstance(settings, dict) else None
    merged = default_settings(level if level in SCHOOL_LEVELS else "PRIMARY")
    if isinstance(settings, dict):
        merged.update({k: v for k, v in settings.items() if v is not None})
    for field in ("classScoreMax", "examScoreMax", "totalAttendanceDays"):
        merged[field] = _number(merged.get(field), merged.get(field))
    if isinstance(merged.get("schoolName"), str):
        merged["schoolName"] = merged["schoolName"].strip()
    return merged


def validate_settings(settings: Dict) -> List[str]:
    errors: List[str] = []
    if not isinstance(settings, dict):
        return ["Settings must be an object"]

    name = settings.get("schoolName")
    if not isinstance(name, str) or len(name.strip()) < 3:
        errors.append("School name must be at least 3 characters")
    elif len(name) > 150:
        errors.append("School name too long")
    elif not _NAME_RE.match(name):
        errors.append("Invalid characters in school name")

    if settings.get("level") not in SCHOOL_LEVELS:
        errors.append(f"Invalid level: {settings.get('level')}")
    if settings.get("term") not in ACADEMIC_PERIODS:
        errors.append(f"Invalid term: {settings.get('term')}")
    if settings.get("schoolType", "STANDARD") not in SCHOOL_TYPES:
        errors.append(f"Invalid school type: {settings.get('schoolType')}")
    if settings.get("rankingMode", DEFAULT_RANKING_MODE) not in RANKING_MODES:
        errors.append(f"Invalid ranking mode: {settings.get('rankingMode')}")

    year = _YEAR_RE.match(str(settings.get("academicYear") or ""))
    if not year:
        errors.append("Academic year must be in format YYYY/YYYY")
    elif int(year.group(2)) != int(year.group(1)) + 1:
        errors.append("End year must be start year + 1")

    class_max = settings.get("classScoreMax")
    exam_max = settings.get("examScoreMax")
    numbers_ok = True
    for field, value in (("classScoreMax", class_max), ("examScoreMax", exam_max)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            errors.append(f"{field} must be a number")
            numbers_ok = False
        elif value < 10:
            errors.append(f"{field} too low (min 10)")
        elif value > 100:
            errors.append(f"{field} cannot exceed 100")
    if numbers_ok and class_max + exam_max != 100:
        errors.append("Max class score + max exam score must equal 100")

    days = settings.get("totalAttendanceDays")
    if days is not None and (
        isinstance(days, bool) or not isinstance(days, (int, float)) or not 1 <= days <= 365
    ):
        errors.append("Total attendance days must be between 1 and 365")

    subjects = settings.get("defaultSubjects", [])
    if not isinstance(subjects, list):
        errors.append("Default subjects must be a list")
    elif len(subjects) > MAX_SUBJECTS:
        errors.append("Too many subjects")
    elif any(not isinstance(s, str) or not s.strip() for s in subjects):
        errors.append("Invalid subject name")

    if not isinstance(settings.get("componentLibrary", []), list):
        errors.append("Component library must be a list")
    if not isinstance(settings.get("subjectComponentMap", {}), dict):
        errors.append("Subject component map must be an object")
    return errors
