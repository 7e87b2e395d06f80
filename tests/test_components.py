from utils.components import (
    add_to_library,
    apply_components,
    assign_to_subject,
    components_for_subject,
    derive_class_score,
    get_registry_summary,
    remove_from_library,
    toggle_component_for_subject,
    update_in_library,
)

TEST = {"name": "Class Test", "maxScore": 20, "category": "test"}
HOMEWORK = {"name": "Homework", "maxScore": 10, "category": "homework"}


def test_derive_class_score_scales_to_max():
    components = [{"score": 15, "maxScore": 20}, {"score": 10, "maxScore": 10}]
    # 25 / 30 * 40 = 33.33
    assert derive_class_score(components, 40) == 33


def test_derive_class_score_rounds_half_up():
    # 1 / 8 * 20 = 2.5
    assert derive_class_score([{"score": 1, "maxScore": 8}], 20) == 3


def test_derive_class_score_without_max():
    assert derive_class_score([{"score": 5, "maxScore": 0}], 40) == 0
    assert derive_class_score([], 40) == 0


def test_apply_components_leaves_direct_entry_alone():
    subject = {"name": "Math", "classScore": 25}
    assert apply_components(subject, 40) == subject


def test_apply_components_overrides_class_score():
    subject = {
        "name": "Math",
        "classScore": 0,
        "classScoreComponents": [{"score": 10, "maxScore": 10}],
    }
    assert apply_components(subject, 30)["classScore"] == 30
    assert subject["classScore"] == 0


def test_components_for_subject_are_zeroed():
    comps = components_for_subject([TEST, HOMEWORK])
    assert [c["name"] for c in comps] == ["Class Test", "Homework"]
    assert all(c["score"] == 0 for c in comps)
    assert comps[0]["id"] != comps[1]["id"]


def test_add_rejects_duplicate_name_any_case():
    library, error = add_to_library([TEST], {"name": "class test", "maxScore": 5})
    assert error
    assert library == [TEST]


def test_remove_drops_empty_subjects():
    component_map = {"Math": [TEST], "English": [TEST, HOMEWORK]}
    library, updated = remove_from_library([TEST, HOMEWORK], component_map, "Class Test")
    assert library == [HOMEWORK]
    assert updated == {"English": [HOMEWORK]}


def test_update_propagates_to_subjects():
    renamed = {"name": "Quiz", "maxScore": 15, "category": "test"}
    library, component_map, error = update_in_library(
        [TEST, HOMEWORK], {"Math": [TEST]}, "Class Test", renamed
    )
    assert error is None
    assert library == [renamed, HOMEWORK]
    assert component_map == {"Math": [renamed]}


def test_update_rename_collision():
    _, _, error = update_in_library([TEST, HOMEWORK], {}, "Class Test", dict(HOMEWORK))
    assert error


def test_assign_and_toggle():
    component_map = assign_to_subject({}, "Math", [TEST])
    assert component_map == {"Math": [TEST]}
    component_map = toggle_component_for_subject(component_map, "Math", HOMEWORK)
    assert component_map["Math"] == [TEST, HOMEWORK]
    component_map = toggle_component_for_subject(component_map, "Math", TEST)
    component_map = toggle_component_for_subject(component_map, "Math", HOMEWORK)
    assert "Math" not in component_map


def test_registry_summary_reports_orphans():
    summary = get_registry_summary([HOMEWORK], {"Math": [TEST, HOMEWORK]})
    assert summary["libraryCount"] == 1
    assert summary["totalAssignments"] == 2
    assert summary["orphanedAssignments"] == [{"subjectName": "Math", "componentName": "Class Test"}]
