import math
from datetime import date, datetime
from typing import Optional

SCHOOL_LEVELS = ("KG", "PRIMARY", "JHS", "SHS")

# Fixed tier sets per level, best first
GRADE_SCALES = {
    "KG": ["GOLD", "SILVER", "BRONZE"],
    "PRIMARY": [1, 2, 3, 4, 5],
    "JHS": [1, 2, 3, 4, 5, 6, 7, 8, 9],
    "SHS": ["A1", "B2", "B3", "C4", "C5", "C6", "D7", "E8", "F9"],
}

INVALID_LEVEL_GRADE = {"grade": "F9", "remark": "Invalid Level"}

SHS_GRADE_POINTS = {
    "A1": 1,
    "B2": 2,
    "B3": 3,
    "C4": 4,
    "C5": 5,
    "C6": 6,
    "D7": 7,
    "E8": 8,
    "F9": 9,
}


def to_number(value) -> float:
    """Coerce a raw score to a number; anything unusable or non-finite counts as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if math.isfinite(number) else 0


def _kg_grade(total: float) -> dict:
    if total >= 80:
        return {"grade": "GOLD", "remark": "Independent Application"}
    if total >= 60:
        return {"grade": "SILVER", "remark": "With Minimal Prompting"}
    return {"grade": "BRONZE", "remark": "With Guidance"}


def _primary_grade(total: float) -> dict:
    if total >= 80:
        return {"grade": 1, "remark": "Advance"}
    if total >= 75:
        return {"grade": 2, "remark": "Proficient"}
    if total >= 70:
        return {"grade": 3, "remark": "Approaching Proficiency"}
    if total >= 65:
        return {"grade": 4, "remark": "Developing"}
    return {"grade": 5, "remark": "Beginning"}


def _jhs_grade(total: float) -> dict:
    if total >= 90:
        return {"grade": 1, "remark": "Highest"}
    if total >= 80:
        return {"grade": 2, "remark": "Higher"}
    if total >= 70:
        return {"grade": 3, "remark": "High"}
    if total >= 60:
        return {"grade": 4, "remark": "High Average"}
    if total >= 55:
        return {"grade": 5, "remark": "Average"}
    if total >= 50:
        return {"grade": 6, "remark": "Low Average"}
    if total >= 40:
        return {"grade": 7, "remark": "Low"}
    if total >= 35:
        return {"grade": 8, "remark": "Lower"}
    return {"grade": 9, "remark": "Lowest"}


def _shs_grade(total: float) -> dict:
    """WASSCE-style banding."""
    if total >= 80:
        return {"grade": "A1", "remark": "Excellent"}
    if total >= 75:
        return {"grade": "B2", "remark": "Very Good"}
    if total >= 70:
        return {"grade": "B3", "remark": "Good"}
    if total >= 65:
        return {"grade": "C4", "remark": "Credit"}
    if total >= 60:
        return {"grade": "C5", "remark": "Credit"}
    if total >= 55:
        return {"grade": "C6", "remark": "Credit"}
    if total >= 50:
        return {"grade": "D7", "remark": "Pass"}
    if total >= 45:
        return {"grade": "E8", "remark": "Pass"}
    return {"grade": "F9", "remark": "Fail"}


_BANDERS = {
    "KG": _kg_grade,
    "PRIMARY": _primary_grade,
    "JHS": _jhs_grade,
    "SHS": _shs_grade,
}


def calculate_grade(total, level: str) -> dict:
    """Map a subject total to {grade, remark} for the given school level.

    Totals above 100 land in the top tier. An unknown level returns the
    "Invalid Level" sentinel instead of raising so one bad record cannot
    stop a whole report run.
    """
    bander = _BANDERS.get(level)
    if bander is None:
        return dict(INVALID_LEVEL_GRADE)
    return bander(to_number(total))


def grade_scale(level: str) -> list:
    """Return the tier set for a level (empty list for unknown levels)."""
    return list(GRADE_SCALES.get(level, []))


def grade_to_number(grade) -> int:
    """Numeric points for a grade, 1 being best. Unknown grades count as 9."""
    if isinstance(grade, int) and not isinstance(grade, bool):
        return grade
    return SHS_GRADE_POINTS.get(grade, 9)


def is_core_subject(name: str, level: str) -> bool:
    n = (name or "").lower()

    if level == "PRIMARY":
        return "english" in n or "math" in n or "science" in n

    if level == "JHS":
        return "english" in n or "math" in n or "science" in n or "social" in n

    if level == "SHS":
        return (
            ("math" in n and "core" in n)
            or "english" in n
            or ("science" in n and "integrated" in n)
            or "social" in n
        )

    return False


def calculate_aggregate(subjects: list[dict], level: str) -> Optional[int]:
    """Best-N aggregate used on JHS/SHS (and PRIMARY) promotional reports.

    - PRIMARY: English, Maths, Science + best 3 electives
    - JHS: all cores + best 2 electives
    - SHS: English + Maths + best remaining core + best 3 electives
    KG has no aggregate.
    """
    if level not in ("PRIMARY", "JHS", "SHS"):
        return None

    cores = [s for s in subjects if is_core_subject(s.get("name"), level)]
    electives = [s for s in subjects if not is_core_subject(s.get("name"), level)]

    def by_grade(s):
        return grade_to_number(s.get("grade"))

    best_electives = sorted(electives, key=by_grade)

    if level == "PRIMARY":
        primary_cores = [
            s
            for s in cores
            if any(k in (s.get("name") or "").lower() for k in ("english", "math", "science"))
        ]
        picked = best_electives[:3]
        if not primary_cores and not picked:
            return None
        return sum(by_grade(s) for s in primary_cores + picked)

    if level == "JHS":
        return sum(by_grade(s) for s in cores + best_electives[:2])

    english = next((s for s in cores if "english" in (s.get("name") or "").lower()), None)
    math = next((s for s in cores if "math" in (s.get("name") or "").lower()), None)
    others = sorted(
        [s for s in cores if s is not english and s is not math], key=by_grade
    )

    total = 0
    for core in (english, math, others[0] if others else None):
        if core is not None:
            total += by_grade(core)
    total += sum(by_grade(s) for s in best_electives[:3])
    return total


def calculate_age(date_of_birth, today: Optional[date] = None) -> int:
    """Whole years since date_of_birth (ISO string); 0 when missing or unparseable."""
    if not date_of_birth:
        return 0
    try:
        born = datetime.fromisoformat(str(date_of_birth)[:10]).date()
    except ValueError:
        return 0
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return max(age, 0)


def process_subject(subject: dict, level: str) -> dict:
    total = to_number(subject.get("classScore")) + to_number(subject.get("examScore"))
    result = calculate_grade(total, level)
    processed = dict(subject)
    processed.update(
        {"totalScore": total, "grade": result["grade"], "remark": result["remark"]}
    )
    return processed


def process_student(record: dict, level: str, today: Optional[date] = None) -> dict:
    """Compute per-subject grades, totals, average and aggregate for one student.

    The input record is never mutated. averageScore is rounded to 2 dp and is
    0 for a student with no subjects. classPosition stays "pending..." until
    assign_positions runs over the whole class.
    """
    subjects = record.get("subjects") or []
    if not isinstance(subjects, list):
        subjects = []

    processed_subjects = [
        process_subject(s, level) for s in subjects if isinstance(s, dict)
    ]
    total_score = sum(s["totalScore"] for s in processed_subjects)
    average_score = (
        round(total_score / len(processed_subjects), 2) if processed_subjects else 0
    )

    processed = dict(record)
    processed.update(
        {
            "subjects": processed_subjects,
            "totalScore": total_score,
            "averageScore": average_score,
            "aggregate": calculate_aggregate(processed_subjects, level),
            "age": calculate_age(record.get("dateOfBirth"), today),
            "classPosition": "pending...",
        }
    )
    return processed
