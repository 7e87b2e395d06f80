"""Broadsheet CSV for a graded class: one row per student, one column per subject."""

import csv
import re
from datetime import datetime, timezone
from io import StringIO
from typing import Optional

from utils.errors import ValidationError


def broadsheet_columns(students: list[dict]) -> list[str]:
    """Subject names across the whole class in first-seen order."""
    names = []
    for student in students:
        for subject in student.get("subjects") or []:
            name = subject.get("name")
            if name not in names:
                names.append(name)
    return names


def _subject_total(subject: dict):
    total = subject.get("totalScore")
    if isinstance(total, (int, float)) and not isinstance(total, bool):
        return total
    return (subject.get("classScore") or 0) + (subject.get("examScore") or 0)


def export_students_csv(students: list[dict]) -> str:
    """Render processed students as CSV text.

    Columns are Name, each subject total, Total, Position and Aggregate. A
    student without a subject gets an empty cell in that column.
    """
    if not students:
        raise ValidationError("Nothing to export", ["No students to export"])

    subject_names = broadsheet_columns(students)
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Name", *subject_names, "Total", "Position", "Aggregate"])
    for student in students:
        totals = {s.get("name"): _subject_total(s) for s in student.get("subjects") or []}
        writer.writerow(
            [
                student.get("name"),
                *[totals.get(name, "") for name in subject_names],
                student.get("totalScore"),
                student.get("classPosition"),
                student.get("aggregate"),
            ]
        )
    return output.getvalue()


def csv_filename(settings: Optional[dict], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    name = (settings or {}).get("schoolName") or "School"
    safe = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "School"
    return f"{safe}_Broadsheet_{now.date().isoformat()}.csv"
