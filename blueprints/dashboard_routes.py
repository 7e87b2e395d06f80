import logging

from flask import Blueprint, jsonify, request

from blueprints.students_routes import get_gradebook
from utils.storage import find_largest_photos, format_bytes

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__)


# Route: GET "/api/storage/status"
# Purpose: Save indicator, storage usage and backup reminders for the header bar.
@dashboard_bp.route("/api/storage/status", methods=["GET"])
def storage_status():
    gradebook = get_gradebook()
    status = gradebook.status()
    status["usedDisplay"] = format_bytes(status["stats"]["usedBytes"])
    if status["warningLevel"] != "safe":
        status["largestPhotos"] = find_largest_photos(gradebook.backend)
    return jsonify(status)


# Route: POST "/api/storage/flush"
# Purpose: Force pending autosaves to disk (used before closing the window).
@dashboard_bp.route("/api/storage/flush", methods=["POST"])
def flush_storage():
    results = get_gradebook().flush()
    failures = [r.to_dict() for r in results if not r.ok]
    if failures:
        logger.error(f"❌ Flush failed: {failures}")
        status = 507 if any(not r.ok and r.quota_exceeded for r in results) else 500
        return jsonify({"success": False, "errors": failures}), status
    return jsonify({"success": True, "written": len(results)})


@dashboard_bp.route("/api/storage/photos", methods=["GET"])
def largest_photos():
    limit = request.args.get("limit", default=5, type=int)
    return jsonify({"photos": find_largest_photos(get_gradebook().backend, limit)})
