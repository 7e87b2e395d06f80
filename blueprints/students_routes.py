import logging

from flask import Blueprint, Response, current_app, jsonify, request

from utils.csv_export import csv_filename
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

students_bp = Blueprint("students", __name__)


def get_gradebook():
    return current_app.extensions["gradebook"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid request", ["Request body must be a JSON object"])
    return data


# Route: GET "/api/students"
# Purpose: Graded and ranked class list. ?raw=1 returns the stored records only.
@students_bp.route("/api/students", methods=["GET"])
def list_students():
    gradebook = get_gradebook()
    if request.args.get("raw") == "1":
        return jsonify({"students": gradebook.students})
    return jsonify({"students": gradebook.processed_students()})


@students_bp.route("/api/students", methods=["POST"])
def create_student():
    data = _json_body()
    gradebook = get_gradebook()
    if not data.get("subjects") and not data.get("id"):
        template = gradebook.new_student(data.get("name", ""), data.get("className", ""))
        template.update({k: v for k, v in data.items() if k != "subjects"})
        data = template
    student = gradebook.add_student(data)
    return jsonify({"success": True, "student": student}), 201


@students_bp.route("/api/students/<student_id>", methods=["GET"])
def get_student(student_id):
    return jsonify({"student": get_gradebook().get_student(student_id)})


@students_bp.route("/api/students/<student_id>", methods=["PUT"])
def update_student(student_id):
    data = _json_body()
    data["id"] = student_id
    student = get_gradebook().update_student(data)
    return jsonify({"success": True, "student": student})


# Soft delete; the token restores the record until the undo window closes.
@students_bp.route("/api/students/<student_id>", methods=["DELETE"])
def delete_student(student_id):
    gradebook = get_gradebook()
    token = gradebook.delete_student(student_id)
    return jsonify(
        {
            "success": True,
            "undoToken": token,
            "undoWindowSeconds": gradebook.config.undo_window_seconds,
        }
    )


@students_bp.route("/api/students/restore/<token>", methods=["POST"])
def restore_student(token):
    student = get_gradebook().undo_delete(token)
    return jsonify({"success": True, "student": student})


@students_bp.route("/api/students/clear-scores", methods=["POST"])
def clear_scores():
    count = get_gradebook().clear_all_scores()
    logger.info(f"Scores cleared for {count} students")
    return jsonify({"success": True, "count": count})


@students_bp.route("/api/students/delete-pending", methods=["POST"])
def delete_pending():
    count = get_gradebook().delete_pending_students()
    return jsonify({"success": True, "removed": count})


@students_bp.route("/api/students/generate-remarks", methods=["POST"])
def generate_remarks():
    count = get_gradebook().generate_remarks()
    return jsonify({"success": True, "count": count})


# Route: POST "/api/students/bulk"
# Body: {"text": "1. Ama Mensah\n2. Kofi Boateng", "className": "JHS 2"}
@students_bp.route("/api/students/bulk", methods=["POST"])
def bulk_add_students():
    data = _json_body()
    result = get_gradebook().bulk_add_students(data.get("text"), data.get("className") or "")
    return jsonify({"success": True, **result}), 201 if result["added"] else 200


# Route: GET "/api/students/export/csv"
# Purpose: Broadsheet download (name, subject totals, total, position, aggregate).
@students_bp.route("/api/students/export/csv", methods=["GET"])
def export_csv():
    gradebook = get_gradebook()
    content = gradebook.export_csv()
    filename = csv_filename(gradebook.get_settings())
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
