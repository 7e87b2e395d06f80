"""
SBA component library and subject assignments.

A component config is {name, maxScore, category}. The library is the list of
configs a school uses; subjectComponentMap says which configs apply to which
subject. All helpers are pure and return new structures.
"""

import uuid
from typing import Optional


def derive_class_score(components: list[dict], class_score_max) -> int:
    """classScore = round(sum(score) / sum(maxScore) * classScoreMax)."""
    total_score = 0.0
    total_max = 0.0
    for comp in components or []:
        try:
            total_score += float(comp.get("score") or 0)
            total_max += float(comp.get("maxScore") or 0)
        except (TypeError, ValueError, AttributeError):
            continue
    if total_max <= 0:
        return 0
    # half-up, not banker's rounding
    return int(total_score / total_max * float(class_score_max or 0) + 0.5)


def apply_components(subject: dict, class_score_max) -> dict:
    """Return a copy of subject whose classScore is derived from its components.

    Subjects without components are returned unchanged (direct entry).
    """
    components = subject.get("classScoreComponents")
    if not components:
        return dict(subject)
    updated = dict(subject)
    updated["classScore"] = derive_class_score(components, class_score_max)
    return updated


def components_for_subject(configs: list[dict]) -> list[dict]:
    """Fresh, zero-scored components for a subject from library configs."""
    return [
        {
            "id": str(uuid.uuid4()),
            "name": c.get("name"),
            "score": 0,
            "maxScore": c.get("maxScore", 0),
            "category": c.get("category", "classwork"),
        }
        for c in configs
    ]


# -----------------------------
# Library management
# -----------------------------
def _same_name(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def add_to_library(library: list[dict], config: dict) -> tuple[list[dict], Optional[str]]:
    """Append config unless a component with the same name (any case) exists."""
    if any(_same_name(c.get("name"), config.get("name")) for c in library):
        return library, f'A component named "{config.get("name")}" already exists in the library.'
    return library + [config], None


def remove_from_library(
    library: list[dict], subject_component_map: dict, name: str
) -> tuple[list[dict], dict]:
    """Remove a component everywhere; subjects left with nothing are dropped."""
    updated_library = [c for c in library if c.get("name") != name]
    updated_map = {}
    for subject, components in subject_component_map.items():
        remaining = [c for c in components if c.get("name") != name]
        if remaining:
            updated_map[subject] = remaining
    return updated_library, updated_map


def update_in_library(
    library: list[dict], subject_component_map: dict, original_name: str, updated: dict
) -> tuple[list[dict], dict, Optional[str]]:
    """Replace a config and propagate it to every subject using it."""
    if original_name != updated.get("name"):
        collision = any(
            c.get("name") != original_name and _same_name(c.get("name"), updated.get("name"))
            for c in library
        )
        if collision:
            return (
                library,
                subject_component_map,
                f'A component named "{updated.get("name")}" already exists.',
            )

    updated_library = [updated if c.get("name") == original_name else c for c in library]
    updated_map = {
        subject: [updated if c.get("name") == original_name else c for c in components]
        for subject, components in subject_component_map.items()
    }
    return updated_library, updated_map, None


# -----------------------------
# Subject <-> component assignment
# -----------------------------
def unassign_from_subject(subject_component_map: dict, subject_name: str) -> dict:
    updated = dict(subject_component_map)
    updated.pop(subject_name, None)
    return updated


def assign_to_subject(
    subject_component_map: dict, subject_name: str, configs: list[dict]
) -> dict:
    """Replace a subject's assignment; an empty list unassigns it."""
    if not configs:
        return unassign_from_subject(subject_component_map, subject_name)
    updated = dict(subject_component_map)
    updated[subject_name] = list(configs)
    return updated


def get_subject_components(subject_component_map: dict, subject_name: str) -> list[dict]:
    return list(subject_component_map.get(subject_name) or [])


def toggle_component_for_subject(
    subject_component_map: dict, subject_name: str, config: dict
) -> dict:
    current = get_subject_components(subject_component_map, subject_name)
    if any(c.get("name") == config.get("name") for c in current):
        current = [c for c in current if c.get("name") != config.get("name")]
    else:
        current.append(config)
    return assign_to_subject(subject_component_map, subject_name, current)


def validate_map_against_library(subject_component_map: dict, library: list[dict]) -> list[dict]:
    """Assignments whose component is no longer in the library."""
    names = {c.get("name") for c in library}
    orphans = []
    for subject_name, components in subject_component_map.items():
        for comp in components:
            if comp.get("name") not in names:
                orphans.append(
                    {"subjectName": subject_name, "componentName": comp.get("name")}
                )
    return orphans


def get_registry_summary(library: list[dict], subject_component_map: dict) -> dict:
    return {
        "libraryCount": len(library),
        "assignedSubjectCount": len(subject_component_map),
        "totalAssignments": sum(len(c) for c in subject_component_map.values()),
        "orphanedAssignments": validate_map_against_library(subject_component_map, library),
    }
