from datetime import date

import pytest

from utils.grade_calculation import (
    GRADE_SCALES,
    calculate_age,
    calculate_aggregate,
    calculate_grade,
    grade_to_number,
    process_student,
    to_number,
)
from utils.ranking import assign_positions


@pytest.mark.parametrize(
    "total,grade,remark",
    [
        (100, "A1", "Excellent"),
        (80, "A1", "Excellent"),
        (79.99, "B2", "Very Good"),
        (70, "B3", "Good"),
        (65, "C4", "Credit"),
        (55, "C6", "Credit"),
        (50, "D7", "Pass"),
        (45, "E8", "Pass"),
        (44, "F9", "Fail"),
        (0, "F9", "Fail"),
    ],
)
def test_shs_banding(total, grade, remark):
    assert calculate_grade(total, "SHS") == {"grade": grade, "remark": remark}


def test_jhs_banding_edges():
    assert calculate_grade(90, "JHS")["grade"] == 1
    assert calculate_grade(89, "JHS")["grade"] == 2
    assert calculate_grade(35, "JHS") == {"grade": 8, "remark": "Lower"}
    assert calculate_grade(34, "JHS") == {"grade": 9, "remark": "Lowest"}


def test_primary_and_kg_banding():
    assert calculate_grade(75, "PRIMARY") == {"grade": 2, "remark": "Proficient"}
    assert calculate_grade(64, "PRIMARY") == {"grade": 5, "remark": "Beginning"}
    assert calculate_grade(60, "KG") == {"grade": "SILVER", "remark": "With Minimal Prompting"}
    assert calculate_grade(59, "KG")["grade"] == "BRONZE"


def test_over_100_lands_in_top_tier():
    assert calculate_grade(150, "SHS")["grade"] == "A1"
    assert calculate_grade(101, "KG")["grade"] == "GOLD"


def test_unknown_level_returns_sentinel():
    assert calculate_grade(90, "UNIVERSITY") == {"grade": "F9", "remark": "Invalid Level"}


def test_non_numeric_total_counts_as_zero():
    assert calculate_grade("abc", "SHS")["grade"] == "F9"
    assert calculate_grade(None, "JHS")["grade"] == 9


def test_grade_to_number():
    assert grade_to_number("A1") == 1
    assert grade_to_number("C6") == 6
    assert grade_to_number(4) == 4
    assert grade_to_number("GOLD") == 9


def test_process_student_shs_end_to_end():
    record = {
        "id": "s1",
        "name": "Kofi",
        "subjects": [{"id": "m", "name": "Core Mathematics", "classScore": 30, "examScore": 70}],
    }
    processed = process_student(record, "SHS")
    subject = processed["subjects"][0]
    assert subject["totalScore"] == 100
    assert subject["grade"] == "A1"
    assert processed["averageScore"] == 100
    assert processed["classPosition"] == "pending..."
    # source untouched
    assert "totalScore" not in record["subjects"][0]


def test_process_student_without_subjects():
    processed = process_student({"id": "x", "name": "Empty", "subjects": []}, "JHS")
    assert processed["averageScore"] == 0
    assert processed["totalScore"] == 0


def test_average_rounded_to_two_places():
    record = {
        "subjects": [
            {"name": "A", "classScore": 10, "examScore": 0},
            {"name": "B", "classScore": 10, "examScore": 0},
            {"name": "C", "classScore": 11, "examScore": 0},
        ]
    }
    assert process_student(record, "PRIMARY")["averageScore"] == 10.33


def test_jhs_aggregate_uses_cores_and_best_two_electives():
    subjects = [
        {"name": "English Language", "grade": 1},
        {"name": "Mathematics", "grade": 2},
        {"name": "Science", "grade": 1},
        {"name": "Social Studies", "grade": 3},
        {"name": "RME", "grade": 5},
        {"name": "Computing", "grade": 2},
        {"name": "Creative Arts and Design", "grade": 1},
    ]
    assert calculate_aggregate(subjects, "JHS") == 1 + 2 + 1 + 3 + 1 + 2


def test_kg_has_no_aggregate():
    assert calculate_aggregate([{"name": "Numeracy", "grade": "GOLD"}], "KG") is None


def test_calculate_age():
    assert calculate_age("2010-06-15", today=date(2026, 6, 14)) == 15
    assert calculate_age("2010-06-15", today=date(2026, 6, 15)) == 16
    assert calculate_age("not a date") == 0
    assert calculate_age(None) == 0


@pytest.mark.parametrize("level", list(GRADE_SCALES))
def test_every_total_maps_into_the_level_scale(level):
    scale = GRADE_SCALES[level]
    previous = 0
    for step in range(0, 401):
        total = step / 2
        grade = calculate_grade(total, level)["grade"]
        assert grade in scale
        # best tier comes first, so the index never grows as the total rises
        assert scale.index(grade) <= previous or step == 0
        previous = scale.index(grade)


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan"), float("inf")])
def test_non_finite_scores_count_as_zero(raw):
    assert to_number(raw) == 0
    processed = process_student({"subjects": [{"classScore": raw, "examScore": 40}]}, "JHS")
    assert processed["averageScore"] == 40
    assert processed["subjects"][0]["grade"] == 7


def test_jhs_class_end_to_end_positions():
    records = [
        {"id": "a", "subjects": [{"name": "Mathematics", "classScore": 30, "examScore": 60}]},
        {"id": "b", "subjects": [{"name": "Mathematics", "classScore": 30, "examScore": 50}]},
        {"id": "c", "subjects": [{"name": "Mathematics", "classScore": 20, "examScore": 60}]},
    ]
    ranked = assign_positions([process_student(r, "JHS") for r in records])
    assert [s["averageScore"] for s in ranked] == [90, 80, 80]
    assert [s["classPosition"] for s in ranked] == ["1st", "2nd", "2nd"]
    assert [s["subjects"][0]["grade"] for s in ranked] == [1, 2, 2]
