import atexit
import logging
import os

from flask import Flask, jsonify

from utils.db_conn import StorageConfig
from utils.errors import (
    BackupError,
    DuplicateComponentError,
    QuotaExceededError,
    RepotaError,
    StudentNotFoundError,
    ValidationError,
    WrongPasswordError,
)
from utils.gradebook import Gradebook
from utils.storage import StorageBackend

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    WrongPasswordError: 401,
    StudentNotFoundError: 404,
    DuplicateComponentError: 409,
    BackupError: 422,
    QuotaExceededError: 507,
}


def _status_for(error: RepotaError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def create_app(config: StorageConfig = None) -> Flask:
    """Build the local gradebook app around one Gradebook instance."""
    config = config or StorageConfig.from_env()

    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.config["STORAGE_CONFIG"] = config

    gradebook = Gradebook(StorageBackend(config)).init()
    app.extensions["gradebook"] = gradebook
    atexit.register(gradebook.close)

    from blueprints.backup_routes import backup_bp
    from blueprints.dashboard_routes import dashboard_bp
    from blueprints.settings_routes import settings_bp
    from blueprints.statistics_routes import statistics_bp
    from blueprints.students_routes import students_bp

    app.register_blueprint(students_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(backup_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(statistics_bp)

    @app.errorhandler(RepotaError)
    def handle_repota_error(error):
        status = _status_for(error)
        if status >= 500:
            logger.error(f"❌ {error.kind}: {error.message}")
        else:
            logger.warning(f"{error.kind}: {error.message}")
        return jsonify(error.to_dict()), status

    # Route: GET "/welcome"
    # Purpose: Liveness check used by the launcher before opening the browser.
    @app.route("/welcome")
    def welcome():
        logger.info("Request received: GET /welcome")
        return jsonify({"message": "Welcome to Repota", "storageType": gradebook.backend.storage_type})

    return app


if __name__ == "__main__":
    logger.info("Application startup initiated")
    app = create_app()
    host = os.getenv("REPOTA_HOST", "127.0.0.1")
    port = int(os.getenv("REPOTA_PORT", "5000"))
    app.run(host=host, port=port, debug=os.getenv("FLASK_DEBUG") == "1", use_reloader=False)
