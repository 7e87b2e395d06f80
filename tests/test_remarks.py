import random

from utils.remarks import (
    CONDUCT_TRAITS,
    REMARK_BANK,
    attendance_percentage,
    generate_conduct,
    generate_attendance_rating,
    generate_teacher_remark,
    random_conduct_trait,
    remark_category,
)


def test_attendance_percentage():
    assert attendance_percentage(35, 70) == 50
    assert attendance_percentage(10, 0) == 100.0
    assert attendance_percentage("x", 70) == 100.0


def test_remark_category_needs_attendance_for_excellent():
    assert remark_category(85, 95) == "EXCELLENT"
    assert remark_category(85, 80) == "GOOD"
    assert remark_category(55, 100) == "AVERAGE"
    assert remark_category(30, 100) == "POOR"


def test_teacher_remark_comes_from_level_bank():
    rng = random.Random(7)
    remark = generate_teacher_remark({"averageScore": 20}, 70, 70, "JHS", rng)
    assert remark in REMARK_BANK["JHS"]["POOR"]


def test_unknown_level_uses_primary_bank():
    remark = generate_teacher_remark({"averageScore": 90}, 70, 70, "NURSERY", random.Random(1))
    assert remark in REMARK_BANK["PRIMARY"]["EXCELLENT"]


def test_attendance_rating_bands():
    assert generate_attendance_rating(96) == "Excellent"
    assert generate_attendance_rating(85) == "Very Good"
    assert generate_attendance_rating(59) == "Poor"


def test_random_conduct_trait():
    assert random_conduct_trait(random.Random(3)) in CONDUCT_TRAITS


def test_conduct_from_attendance():
    assert generate_conduct(100) == "Exemplary"
    assert generate_conduct(80) == "Satisfactory"
    assert generate_conduct(70) == "Fair"
    assert generate_conduct(10) == "Irregular"
