from conftest import make_student

from utils.statistics_utils import (
    calculate_class_comparison,
    calculate_class_metrics,
    calculate_gender_analysis,
    calculate_performance_trends,
    calculate_score_distribution,
    calculate_subject_performance,
    get_top_performers,
)

SETTINGS = {"level": "JHS", "rankingMode": "competition"}


def _class():
    return [
        make_student("Ama", [(30, 60)], ["Math"], gender="Female", attendancePresent=60),
        make_student("Kofi", [(20, 30)], ["Math"], gender="Male", attendancePresent=50),
        make_student("Esi", [(25, 45)], ["Math"], gender="Female"),
        make_student("Yaw", [(30, 60)], ["Math"], gender="Male"),
    ]


def test_class_metrics():
    metrics = calculate_class_metrics(_class(), SETTINGS)
    assert metrics["totalStudents"] == 4
    assert metrics["highestScore"] == 90
    assert metrics["lowestScore"] == 50
    assert metrics["averageScore"] == 75.0
    assert metrics["passRate"] == 100
    assert metrics["excellenceRate"] == 50
    assert metrics["averageAttendance"] == 55.0


def test_class_metrics_empty():
    assert calculate_class_metrics([], SETTINGS)["totalStudents"] == 0


def test_subject_performance():
    performance = calculate_subject_performance(_class(), SETTINGS)
    assert len(performance) == 1
    assert performance[0]["subjectName"] == "Math"
    assert performance[0]["studentCount"] == 4
    assert performance[0]["averageScore"] == 75.0


def test_score_distribution_counts_everyone_once():
    distribution = calculate_score_distribution(_class(), SETTINGS)
    assert sum(d["count"] for d in distribution) == 4
    by_range = {d["range"]: d["count"] for d in distribution}
    assert by_range["80+ (Excellent)"] == 2
    assert by_range["70-79 (Very Good)"] == 1
    assert by_range["50-59 (Credit)"] == 1


def test_average_above_hundred_lands_in_top_band():
    students = [make_student("Over Achiever", [(40, 70)], ["Math"])]
    distribution = calculate_score_distribution(students, SETTINGS)
    assert {d["range"]: d["count"] for d in distribution}["80+ (Excellent)"] == 1


def test_gender_analysis():
    analysis = calculate_gender_analysis(_class(), SETTINGS)
    assert analysis["maleCount"] == 2
    assert analysis["femaleCount"] == 2
    assert analysis["femaleAverage"] == 80.0
    assert analysis["maleAverage"] == 70.0


def test_top_performers_share_positions_on_ties():
    top = get_top_performers(_class(), SETTINGS, limit=3)
    assert [t["name"] for t in top] == ["Ama", "Yaw", "Esi"]
    assert [t["classPosition"] for t in top] == ["1st", "1st", "3rd"]


def test_performance_trends():
    assert calculate_performance_trends(_class()[:2], SETTINGS) is None
    trends = calculate_performance_trends(_class(), SETTINGS)
    assert trends["mean"] == 75.0
    assert trends["topPerformers"] + trends["middlePerformers"] + trends["bottomPerformers"] == 4


def test_performance_trends_identical_scores():
    students = [make_student(n, [(20, 40)], ["Math"]) for n in ("Aa", "Bb", "Cc")]
    trends = calculate_performance_trends(students, SETTINGS)
    assert trends["skewness"] == 0.0
    assert trends["stdDev"] == 0.0


def test_class_comparison_splits_by_gender():
    students = _class() + [
        make_student("Abena", [(10, 20)], ["Math"], className="Class 5", gender="Female"),
        make_student("Nana", [(10, 20)], ["Math"], className=""),
    ]
    breakdown = calculate_class_comparison(students, SETTINGS)
    assert [b["category"] for b in breakdown] == ["Class 4", "Class 5", "Unassigned"]

    class_four = breakdown[0]
    assert (class_four["male"], class_four["female"], class_four["total"]) == (2, 2, 4)
    assert class_four["maleAvgScore"] == 70.0
    assert class_four["femaleAvgScore"] == 80.0
    assert breakdown[2]["maleAvgScore"] == 0
