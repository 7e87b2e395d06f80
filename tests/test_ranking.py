from utils.ranking import assign_positions, assign_subject_positions, ordinal_suffix, rank_class


def _students(*averages):
    return [{"id": str(i), "averageScore": a} for i, a in enumerate(averages)]


def test_ordinal_suffix():
    assert [ordinal_suffix(n) for n in (1, 2, 3, 4, 11, 12, 13, 21, 22, 101, 111)] == [
        "1st",
        "2nd",
        "3rd",
        "4th",
        "11th",
        "12th",
        "13th",
        "21st",
        "22nd",
        "101st",
        "111th",
    ]


def test_ties_share_position():
    ranked = assign_positions(_students(90, 80, 80))
    assert [s["classPosition"] for s in ranked] == ["1st", "2nd", "2nd"]


def test_competition_mode_skips_after_tie():
    ranked = assign_positions(_students(90, 90, 80), mode="competition")
    assert [s["classPosition"] for s in ranked] == ["1st", "1st", "3rd"]


def test_default_is_shared_rank_without_gap():
    ranked = assign_positions(_students(90, 90, 80))
    assert [s["classPosition"] for s in ranked] == ["1st", "1st", "2nd"]


def test_sorted_descending_and_input_untouched():
    students = _students(50, 70, 60)
    ranked = assign_positions(students)
    assert [s["averageScore"] for s in ranked] == [70, 60, 50]
    assert all("classPosition" not in s for s in students)


def test_tie_order_is_stable():
    ranked = assign_positions(_students(80, 90, 80))
    assert [s["id"] for s in ranked] == ["1", "0", "2"]


def test_subject_positions_keep_student_order():
    students = [
        {"id": "a", "subjects": [{"name": "Math", "totalScore": 60}]},
        {"id": "b", "subjects": [{"name": "Math", "totalScore": 90}]},
        {"id": "c", "subjects": [{"name": "Math", "totalScore": 60}]},
    ]
    ranked = assign_subject_positions(students)
    assert [s["id"] for s in ranked] == ["a", "b", "c"]
    assert [s["subjects"][0]["subjectPosition"] for s in ranked] == ["2nd", "1st", "2nd"]


def test_rank_class_sets_both():
    students = [
        {"id": "a", "averageScore": 50, "subjects": [{"name": "Math", "totalScore": 50}]},
        {"id": "b", "averageScore": 70, "subjects": [{"name": "Math", "totalScore": 70}]},
    ]
    ranked = rank_class(students)
    assert ranked[0]["id"] == "b"
    assert ranked[0]["classPosition"] == "1st"
    assert ranked[0]["subjects"][0]["subjectPosition"] == "1st"
    assert ranked[1]["subjects"][0]["subjectPosition"] == "2nd"


def test_empty_class():
    assert assign_positions([]) == []


def test_single_student_is_first():
    assert assign_positions(_students(42))[0]["classPosition"] == "1st"


def test_all_zero_averages_share_first():
    for mode in ("dense", "competition"):
        ranked = assign_positions(_students(0, 0, 0, 0), mode)
        assert {s["classPosition"] for s in ranked} == {"1st"}


def test_nan_average_ranks_as_zero():
    ranked = assign_positions(_students(float("nan"), 50))
    assert [s["id"] for s in ranked] == ["1", "0"]
    assert ranked[1]["classPosition"] == "2nd"
