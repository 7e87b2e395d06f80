import numpy as np
from scipy.stats import skew, kurtosis
from utils.grade_calculation import process_student, to_number
from utils.ranking import DEFAULT_RANKING_MODE, assign_positions

PASS_MARK = 50
EXCELLENCE_MARK = 80

SCORE_RANGES = [
    ("0-39 (Fail)", 0, 39),
    ("40-49 (Pass)", 40, 49),
    ("50-59 (Credit)", 50, 59),
    ("60-69 (Good)", 60, 69),
    ("70-79 (Very Good)", 70, 79),
    ("80+ (Excellent)", 80, None),
]


def _processed(students, settings):
    level = (settings or {}).get("level", "PRIMARY")
    return [process_student(s, level) for s in students]


def _subject_total(subject):
    return float(to_number(subject.get("classScore")) + to_number(subject.get("examScore")))


def calculate_class_metrics(students, settings):
    """Overall class performance based on student averages."""
    if not students:
        return {
            "totalStudents": 0,
            "averageScore": 0,
            "medianScore": 0,
            "highestScore": 0,
            "lowestScore": 0,
            "passRate": 0,
            "excellenceRate": 0,
            "averageAttendance": 0,
        }

    scores = np.array([s["averageScore"] for s in _processed(students, settings)], dtype=float)

    attendance = [
        float(s["attendancePresent"])
        for s in students
        if isinstance(s.get("attendancePresent"), (int, float))
    ]
    average_attendance = float(np.mean(attendance)) if attendance else 0.0

    return {
        "totalStudents": len(students),
        "averageScore": round(float(np.mean(scores)), 1),
        "medianScore": round(float(np.median(scores)), 1),
        "highestScore": float(np.max(scores)),
        "lowestScore": float(np.min(scores)),
        "passRate": round(float(np.mean(scores >= PASS_MARK)) * 100),
        "excellenceRate": round(float(np.mean(scores >= EXCELLENCE_MARK)) * 100),
        "averageAttendance": round(average_attendance, 1),
    }


def calculate_subject_performance(students, settings=None):
    """Per-subject average, spread and pass rate, best subject first."""
    by_subject = {}
    for student in students:
        for subject in student.get("subjects") or []:
            by_subject.setdefault(subject.get("name"), []).append(_subject_total(subject))

    performance = []
    for name, totals in by_subject.items():
        arr = np.array(totals, dtype=float)
        performance.append(
            {
                "subjectName": name,
                "averageScore": round(float(np.mean(arr)), 1),
                "highestScore": float(np.max(arr)),
                "lowestScore": float(np.min(arr)),
                "passRate": round(float(np.mean(arr >= PASS_MARK)) * 100),
                "studentCount": len(totals),
            }
        )
    return sorted(performance, key=lambda p: p["averageScore"], reverse=True)


def calculate_score_distribution(students, settings):
    if not students:
        return []
    averages = [s["averageScore"] for s in _processed(students, settings)]
    distribution = []
    for label, low, high in SCORE_RANGES:
        # whole-mark bands, fractional averages fall into the lower band; the top band is open-ended
        count = len([a for a in averages if low <= a and (high is None or a < high + 1)])
        distribution.append(
            {
                "range": label,
                "count": count,
                "percentage": round(count / len(students) * 100),
            }
        )
    return distribution


def calculate_gender_analysis(students, settings):
    def average_for(group):
        if not group:
            return 0
        return round(float(np.mean([s["averageScore"] for s in _processed(group, settings)])), 1)

    males = [s for s in students if s.get("gender") == "Male"]
    females = [s for s in students if s.get("gender") == "Female"]
    return {
        "maleCount": len(males),
        "femaleCount": len(females),
        "maleAverage": average_for(males),
        "femaleAverage": average_for(females),
        "totalCount": len(students),
    }


def get_top_performers(students, settings, limit=10):
    if not students:
        return []
    mode = (settings or {}).get("rankingMode", DEFAULT_RANKING_MODE)
    ranked = assign_positions(_processed(students, settings), mode)
    return [
        {
            "id": s.get("id"),
            "name": s.get("name"),
            "averageScore": s["averageScore"],
            "totalScore": s["totalScore"],
            "classPosition": s["classPosition"],
            "gender": s.get("gender"),
        }
        for s in ranked[:limit]
    ]


def calculate_class_comparison(students, settings):
    """Per-class headcount and average split by gender, largest class first."""
    by_class = {}
    for student in _processed(students, settings):
        by_class.setdefault(student.get("className") or "Unassigned", []).append(student)

    def average_for(group):
        if not group:
            return 0
        return round(float(np.mean([s["averageScore"] for s in group])), 1)

    breakdown = []
    for class_name, members in by_class.items():
        males = [s for s in members if s.get("gender") == "Male"]
        females = [s for s in members if s.get("gender") == "Female"]
        breakdown.append(
            {
                "category": class_name,
                "male": len(males),
                "female": len(females),
                "total": len(members),
                "maleAvgScore": average_for(males),
                "femaleAvgScore": average_for(females),
            }
        )
    return sorted(breakdown, key=lambda b: b["total"], reverse=True)


def calculate_performance_trends(students, settings):
    """Distribution shape of student averages: skewness, kurtosis and quartiles."""
    scores = [s["averageScore"] for s in _processed(students, settings)]
    if len(scores) < 3:
        return None

    arr = np.array(scores, dtype=float)
    mean_score = float(np.mean(arr))
    std_dev = float(np.std(arr))
    q1 = float(np.percentile(arr, 25))
    q3 = float(np.percentile(arr, 75))
    iqr = q3 - q1

    # Identical scores have no shape
    skewness = float(skew(arr)) if std_dev > 0 else 0.0
    kurt = float(kurtosis(arr)) if std_dev > 0 else 0.0

    top = int(np.sum(arr >= q3 + 1.5 * iqr)) if iqr > 0 else 0
    bottom = int(np.sum(arr < q1 - 1.5 * iqr)) if iqr > 0 else 0
    middle = len(scores) - top - bottom
    cv = (std_dev / mean_score) * 100 if mean_score > 0 else 0

    return {
        "mean": round(mean_score, 2),
        "median": round(float(np.median(arr)), 2),
        "stdDev": round(std_dev, 2),
        "skewness": round(skewness, 3),
        "kurtosis": round(kurt, 3),
        "q1": round(q1, 2),
        "q3": round(q3, 2),
        "iqr": round(iqr, 2),
        "topPerformers": top,
        "middlePerformers": middle,
        "bottomPerformers": bottom,
        "coefficientOfVariation": round(cv, 2),
        "performanceDistribution": {
            "topPercentage": round(top / len(scores) * 100, 1),
            "middlePercentage": round(middle / len(scores) * 100, 1),
            "bottomPercentage": round(bottom / len(scores) * 100, 1),
        },
    }
