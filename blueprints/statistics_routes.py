import logging

from flask import Blueprint, jsonify, request

from blueprints.students_routes import get_gradebook
from utils.statistics_utils import (
    calculate_class_comparison,
    calculate_class_metrics,
    calculate_gender_analysis,
    calculate_performance_trends,
    calculate_score_distribution,
    calculate_subject_performance,
    get_top_performers,
)

logger = logging.getLogger(__name__)

statistics_bp = Blueprint("statistics", __name__)


def _class_data():
    gradebook = get_gradebook()
    return gradebook.students, gradebook.get_settings()


@statistics_bp.route("/api/statistics/class", methods=["GET"])
def class_metrics():
    try:
        students, settings = _class_data()
        return jsonify(calculate_class_metrics(students, settings))
    except Exception as e:
        logger.error(f"Class metrics error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/subjects", methods=["GET"])
def subject_performance():
    try:
        students, settings = _class_data()
        return jsonify({"subjects": calculate_subject_performance(students, settings)})
    except Exception as e:
        logger.error(f"Subject performance error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/distribution", methods=["GET"])
def score_distribution():
    try:
        students, settings = _class_data()
        return jsonify({"distribution": calculate_score_distribution(students, settings)})
    except Exception as e:
        logger.error(f"Score distribution error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/gender", methods=["GET"])
def gender_analysis():
    try:
        students, settings = _class_data()
        return jsonify(calculate_gender_analysis(students, settings))
    except Exception as e:
        logger.error(f"Gender analysis error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/top-performers", methods=["GET"])
def top_performers():
    try:
        limit = request.args.get("limit", default=10, type=int)
        students, settings = _class_data()
        return jsonify({"students": get_top_performers(students, settings, limit)})
    except Exception as e:
        logger.error(f"Top performers error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/trends", methods=["GET"])
def performance_trends():
    try:
        students, settings = _class_data()
        stats = calculate_performance_trends(students, settings)
        if stats is None:
            return jsonify({"error": "Insufficient data for trend analysis"}), 400
        return jsonify(stats)
    except Exception as e:
        logger.error(f"Performance trends error: {e}")
        return jsonify({"error": str(e)}), 500


@statistics_bp.route("/api/statistics/classes", methods=["GET"])
def class_comparison():
    try:
        students, settings = _class_data()
        return jsonify({"classes": calculate_class_comparison(students, settings)})
    except Exception as e:
        logger.error(f"Class comparison error: {e}")
        return jsonify({"error": str(e)}), 500
