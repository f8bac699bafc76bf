"""Smart Backoffice lead intake: Flask application factory."""
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from backoffice.backends import SqlSheetBackend, build_backend
from backoffice.config import Settings
from backoffice.ingestion import Services
from backoffice.models import db
from backoffice.routes.main import main_bp

# Load .env from project root (parent of backoffice/) so it works regardless of cwd
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

LEADS_WORKBOOK_TITLE = "Leads Database"


def create_app(config_object="backoffice.config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__, template_folder="templates")
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO))

    settings = Settings.from_mapping(app.config)
    if not settings.spreadsheet_id:
        app.logger.warning("SPREADSHEET_ID not set; submissions will fail until it is configured")
    if not settings.notification_email:
        app.logger.warning("NOTIFICATION_EMAIL not set; operator emails are skipped")

    backend = build_backend(app.config)
    if isinstance(backend, SqlSheetBackend):
        db.init_app(app)
        with app.app_context():
            db.create_all()
            if settings.spreadsheet_id:
                backend.ensure_workbook(settings.spreadsheet_id, LEADS_WORKBOOK_TITLE)

    app.extensions["backoffice"] = Services.build(settings, backend)
    app.register_blueprint(main_bp)

    @app.errorhandler(Exception)
    def json_error(e):
        """Every failure leaves as {success: false, error}."""
        if isinstance(e, HTTPException):
            return jsonify({"success": False, "error": e.description}), e.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": str(e) or e.__class__.__name__}), 500

    @app.after_request
    def cors_headers(response):
        """The form posts from another origin (static site), so every response allows it."""
        response.headers.set("Access-Control-Allow-Origin", "*")
        response.headers.set("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        response.headers.set("Access-Control-Allow-Headers", "Content-Type")
        return response

    return app
