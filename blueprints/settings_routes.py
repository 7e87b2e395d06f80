from flask import Blueprint, jsonify, request

from blueprints.students_routes import _json_body, get_gradebook
from utils.errors import ValidationError
from utils.grade_calculation import SCHOOL_LEVELS, grade_scale
from utils.ranking import RANKING_MODES
from utils.validation import ACADEMIC_PERIODS, CLASS_OPTIONS, SCHOOL_TYPES

settings_bp = Blueprint("settings", __name__)


@settings_bp.route("/api/settings", methods=["GET"])
def get_settings():
    settings = get_gradebook().get_settings()
    level = settings["level"]
    options = {
        "levels": list(SCHOOL_LEVELS),
        "gradeScale": grade_scale(level),
        "classOptions": CLASS_OPTIONS.get(level, []),
        "terms": ACADEMIC_PERIODS,
        "schoolTypes": SCHOOL_TYPES,
        "rankingModes": list(RANKING_MODES),
    }
    return jsonify({"settings": settings, "options": options})


@settings_bp.route("/api/settings", methods=["PUT"])
def update_settings():
    settings = get_gradebook().update_settings(_json_body())
    return jsonify({"success": True, "settings": settings})


@settings_bp.route("/api/settings/reset", methods=["POST"])
def reset_settings():
    settings = get_gradebook().restore_default_settings()
    return jsonify({"success": True, "settings": settings})


# -----------------------------
# SBA component library
# -----------------------------
@settings_bp.route("/api/settings/components", methods=["GET"])
def component_summary():
    gradebook = get_gradebook()
    settings = gradebook.get_settings()
    return jsonify(
        {
            "library": settings["componentLibrary"],
            "subjectComponentMap": settings["subjectComponentMap"],
            "summary": gradebook.component_summary(),
        }
    )


def _component_config(data: dict) -> dict:
    name = str(data.get("name") or "").strip()
    errors = []
    if not name:
        errors.append("Component name required")
    max_score = data.get("maxScore")
    if isinstance(max_score, bool) or not isinstance(max_score, (int, float)) or max_score <= 0:
        errors.append("maxScore must be a positive number")
    if errors:
        raise ValidationError("Invalid component", errors)
    return {"name": name, "maxScore": max_score, "category": data.get("category") or "classwork"}


@settings_bp.route("/api/settings/components", methods=["POST"])
def add_component():
    settings = get_gradebook().add_component(_component_config(_json_body()))
    return jsonify({"success": True, "settings": settings}), 201


@settings_bp.route("/api/settings/components/<name>", methods=["PUT"])
def update_component(name):
    settings = get_gradebook().update_component(name, _component_config(_json_body()))
    return jsonify({"success": True, "settings": settings})


@settings_bp.route("/api/settings/components/<name>", methods=["DELETE"])
def remove_component(name):
    settings = get_gradebook().remove_component(name)
    return jsonify({"success": True, "settings": settings})


@settings_bp.route("/api/settings/components/assign/<subject_name>", methods=["PUT"])
def assign_components(subject_name):
    names = request.get_json(silent=True)
    if isinstance(names, dict):
        names = names.get("components")
    if not isinstance(names, list):
        raise ValidationError("Invalid request", ["Expected a list of component names"])
    settings = get_gradebook().assign_components(subject_name, names)
    return jsonify({"success": True, "settings": settings})
