"""Class and subject positions for processed students."""

from utils.grade_calculation import to_number

RANKING_MODES = ("dense", "competition")
DEFAULT_RANKING_MODE = "dense"


def ordinal_suffix(n: int) -> str:
    """1 -> "1st", 2 -> "2nd", 11 -> "11th", 21 -> "21st"."""
    j = n % 10
    k = n % 100
    if j == 1 and k != 11:
        return f"{n}st"
    if j == 2 and k != 12:
        return f"{n}nd"
    if j == 3 and k != 13:
        return f"{n}rd"
    return f"{n}th"


def _rank_values(values: list, mode: str = DEFAULT_RANKING_MODE) -> list[int]:
    """Rank already-sorted (descending) values.

    A value equal to its predecessor copies the predecessor's rank. In
    "competition" mode the next distinct value takes its 1-based slot
    (90, 90, 80 -> 1, 1, 3); in "dense" mode it takes previous rank + 1
    (90, 90, 80 -> 1, 1, 2).
    """
    ranks = []
    for index, value in enumerate(values):
        if index > 0 and value == values[index - 1]:
            ranks.append(ranks[-1])
        elif mode == "dense" and ranks:
            ranks.append(ranks[-1] + 1)
        else:
            ranks.append(index + 1)
    return ranks


def assign_positions(students: list[dict], mode: str = DEFAULT_RANKING_MODE) -> list[dict]:
    """Return copies of students sorted by averageScore (desc) with classPosition set.

    The sort is stable, so insertion order only decides display order among
    ties; tied students always share the same position string.
    """
    ordered = sorted(students, key=lambda s: -to_number(s.get("averageScore")))
    ranks = _rank_values([to_number(s.get("averageScore")) for s in ordered], mode)

    result = []
    for student, rank in zip(ordered, ranks):
        ranked = dict(student)
        ranked["classPosition"] = ordinal_suffix(rank)
        result.append(ranked)
    return result


def assign_subject_positions(students: list[dict], mode: str = DEFAULT_RANKING_MODE) -> list[dict]:
    """Rank students within each subject by totalScore, writing subjectPosition.

    Subjects are matched by name. Student order in the returned list is the
    same as the input order.
    """
    by_subject = {}
    for s_index, student in enumerate(students):
        for sub_index, subject in enumerate(student.get("subjects") or []):
            name = subject.get("name")
            if name is None:
                continue
            by_subject.setdefault(name, []).append(
                (s_index, sub_index, to_number(subject.get("totalScore")))
            )

    positions = {}
    for entries in by_subject.values():
        ordered = sorted(entries, key=lambda e: -e[2])
        ranks = _rank_values([e[2] for e in ordered], mode)
        for (s_index, sub_index, _), rank in zip(ordered, ranks):
            positions[(s_index, sub_index)] = ordinal_suffix(rank)

    result = []
    for s_index, student in enumerate(students):
        updated = dict(student)
        subjects = []
        for sub_index, subject in enumerate(student.get("subjects") or []):
            sub = dict(subject)
            if (s_index, sub_index) in positions:
                sub["subjectPosition"] = positions[(s_index, sub_index)]
            subjects.append(sub)
        updated["subjects"] = subjects
        result.append(updated)
    return result


def rank_class(processed: list[dict], mode: str = DEFAULT_RANKING_MODE) -> list[dict]:
    """Class positions followed by per-subject positions."""
    return assign_subject_positions(assign_positions(processed, mode), mode)
