import logging

from flask import Blueprint, jsonify, request

from blueprints.students_routes import get_gradebook
from utils.backup_codec import backup_filename
from utils.errors import BackupError

logger = logging.getLogger(__name__)

backup_bp = Blueprint("backup", __name__)

# Parse-result error kinds mapped to HTTP statuses
IMPORT_STATUS = {
    "password_required": 401,
    "wrong_password": 401,
    "invalid_file": 422,
    "quota_exceeded": 507,
}


# Route: POST "/api/backup/export"
# Body (optional): {"password": "...", "hint": "..."}
@backup_bp.route("/api/backup/export", methods=["POST"])
def export_backup():
    data = request.get_json(silent=True) or {}
    password = data.get("password") or None
    gradebook = get_gradebook()
    document = gradebook.export_backup(password, data.get("hint") or None)
    filename = backup_filename(gradebook.get_settings())
    if password:
        filename = filename.replace(".json", "_encrypted.json")
    response = jsonify(document)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# Route: POST "/api/backup/import"
# Accepts a multipart upload ("file" + optional "password") or a raw JSON body.
@backup_bp.route("/api/backup/import", methods=["POST"])
def import_backup():
    password = request.form.get("password") or request.args.get("password") or None
    upload = request.files.get("file")
    if upload is not None:
        content = upload.read()
    else:
        content = request.get_data()
    if not content:
        raise BackupError("No backup file provided")

    result = get_gradebook().import_backup(content, password)
    if not result.success:
        logger.warning(f"Import rejected: {result.error}")
        return jsonify(result.to_dict()), IMPORT_STATUS.get(result.error, 500)
    return jsonify(
        {
            "success": True,
            "message": result.message,
            "studentCount": len(result.backup["students"]),
        }
    )
