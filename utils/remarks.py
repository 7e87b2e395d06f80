import random
from typing import Optional

REMARK_BANK = {
    "KG": {
        "EXCELLENT": [
            "Interacts beautifully with peers. Very active in singing and creative arts.",
            "Can recite rhymes and poems confidently. A happy child.",
            "Motor skills are well developed. Writes numbers and letters neatly.",
        ],
        "GOOD": [
            "Coming up well. Needs to improve on pencil grip.",
            "Can identify basic shapes and colors. Making steady progress.",
            "Good social skills. Needs to be encouraged to speak up more.",
        ],
        "AVERAGE": [
            "Still struggling with letter recognition. Needs flashcards at home.",
            "Handwriting is shaky. Needs more practice with tracing.",
        ],
        "POOR": [
            "Does not follow simple instructions. Needs patience and firmness.",
            "Speech development is slow. Parents should engage him/her more.",
        ],
    },
    "PRIMARY": {
        "EXCELLENT": [
            "An outstanding pupil! Reads fluently and writes beautifully.",
            "Excellent results. Approaches homework with great seriousness.",
            "Always punctual and neat. A delight to teach.",
        ],
        "GOOD": [
            "A good performance. Handwriting needs a little polish.",
            "Reads well but struggles with spelling. Needs more dictation practice.",
            "Respectful child. Needs to be faster when copying notes.",
        ],
        "AVERAGE": [
            "Average performance. Needs to read more storybooks at home.",
            "Talks too much in class. Needs to focus on the teacher.",
        ],
        "POOR": [
            "Needs serious attention in reading and numeracy.",
            "Performance is below expectation. Extra classes are recommended.",
        ],
    },
    "JHS": {
        "EXCELLENT": [
            "Excellent performance. Keep up the hard work towards BECE.",
            "A disciplined and focused student. A good example to others.",
        ],
        "GOOD": [
            "Good work. More effort in Mathematics will bring better results.",
            "Capable student who can do better with more private studies.",
        ],
        "AVERAGE": [
            "Average work. Needs to take studies more seriously.",
            "Can do better. Should spend less time on distractions.",
        ],
        "POOR": [
            "Weak performance. Needs extra tuition and close supervision.",
            "Must sit up. Current results will not be enough for BECE.",
        ],
    },
    "SHS": {
        "EXCELLENT": [
            "Outstanding results. On course for excellent WASSCE grades.",
            "Highly committed student. Keep the consistency.",
        ],
        "GOOD": [
            "Good performance. Work on weaker electives.",
            "Promising student. More practice with past questions is advised.",
        ],
        "AVERAGE": [
            "Average results. Needs a more serious approach to studies.",
            "Has potential but lacks consistency.",
        ],
        "POOR": [
            "Poor performance. Must improve significantly to pass WASSCE.",
            "Needs counselling and a strict study timetable.",
        ],
    },
}

CONDUCT_TRAITS = [
    "Respectful",
    "Obedient",
    "Hardworking",
    "Punctual",
    "Cooperative",
    "Well behaved",
]

INTERESTS = [
    "Reading",
    "Football",
    "Drawing",
    "Music",
    "Computing",
    "Athletics",
]


def _pick(options: list, rng: Optional[random.Random] = None) -> str:
    if not options:
        return "Good effort."
    return (rng or random).choice(options)


def attendance_percentage(present, total) -> float:
    try:
        present = float(present or 0)
        total = float(total or 0)
    except (TypeError, ValueError):
        return 100.0
    return present / total * 100 if total > 0 else 100.0


def remark_category(average: float, attendance_percent: float) -> str:
    if average >= 80 and attendance_percent >= 90:
        return "EXCELLENT"
    if average >= 60:
        return "GOOD"
    if average >= 50:
        return "AVERAGE"
    return "POOR"


def generate_teacher_remark(
    student: dict,
    attendance_present,
    attendance_total,
    level: str,
    rng: Optional[random.Random] = None,
) -> str:
    """Pick a level-appropriate remark from the student's average and attendance."""
    bank = REMARK_BANK.get(level) or REMARK_BANK["PRIMARY"]
    percent = attendance_percentage(attendance_present, attendance_total)
    category = remark_category(student.get("averageScore") or 0, percent)
    return _pick(bank[category], rng)


def generate_conduct(attendance_percent: float) -> str:
    if attendance_percent >= 95:
        return "Exemplary"
    if attendance_percent >= 80:
        return "Satisfactory"
    if attendance_percent >= 70:
        return "Fair"
    return "Irregular"


def generate_attendance_rating(attendance_percent: float) -> str:
    if attendance_percent >= 95:
        return "Excellent"
    if attendance_percent >= 85:
        return "Very Good"
    if attendance_percent >= 75:
        return "Good"
    if attendance_percent >= 60:
        return "Fair"
    return "Poor"


def random_conduct_trait(rng: Optional[random.Random] = None) -> str:
    return _pick(CONDUCT_TRAITS, rng)


def random_interest(rng: Optional[random.Random] = None) -> str:
    return _pick(INTERESTS, rng)
