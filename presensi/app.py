import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

from .constants import DEFAULT_ATTENDANCE_SHEET, DEFAULT_PARTICIPANTS_SHEET

db = SQLAlchemy()

from .models import Attendance, Participant  # noqa: E402,F401


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    DB_USER = os.getenv("DB_USER", "presensi")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "presensi")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.json.sort_keys = False

    app.config["EVENT_TIMEZONE"] = os.getenv("EVENT_TIMEZONE", "Asia/Jakarta")
    app.config["EVENT_WEEKDAY"] = int(os.getenv("EVENT_WEEKDAY", "6"))
    app.config["STRICT_EVENT_DATES"] = _env_flag("STRICT_EVENT_DATES", True)

    app.config["GOOGLE_SHEETS_SPREADSHEET_ID"] = os.getenv(
        "GOOGLE_SHEETS_SPREADSHEET_ID"
    )
    app.config["GOOGLE_SERVICE_ACCOUNT_EMAIL"] = os.getenv(
        "GOOGLE_SERVICE_ACCOUNT_EMAIL"
    )
    app.config["GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY"] = os.getenv(
        "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY"
    )
    app.config["GOOGLE_SERVICE_ACCOUNT_JSON"] = os.getenv(
        "GOOGLE_SERVICE_ACCOUNT_JSON"
    )
    app.config["GOOGLE_SHEETS_ATTENDANCE_SHEET_NAME"] = os.getenv(
        "GOOGLE_SHEETS_ATTENDANCE_SHEET_NAME", DEFAULT_ATTENDANCE_SHEET
    )
    app.config["GOOGLE_SHEETS_PARTICIPANTS_SHEET_NAME"] = os.getenv(
        "GOOGLE_SHEETS_PARTICIPANTS_SHEET_NAME", DEFAULT_PARTICIPANTS_SHEET
    )
    app.config["SHEET_SYNC_ATTEMPTS"] = int(os.getenv("SHEET_SYNC_ATTEMPTS", "3"))
    app.config["SHEET_SYNC_BACKOFF_SECONDS"] = float(
        os.getenv("SHEET_SYNC_BACKOFF_SECONDS", "0.3")
    )

    if overrides:
        app.config.update(overrides)

    db.init_app(app)

    from .services.sheet_sync import init_sheet_sync

    init_sheet_sync(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    from .routes.participants import bp as participants_bp
    from .routes.attendance import bp as attendance_bp
    from .routes.leaderboard import bp as leaderboard_bp
    from .routes.admin import bp as admin_bp

    app.register_blueprint(participants_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(leaderboard_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(HTTPException)
    def http_error(exc):
        code = "NOT_FOUND" if exc.code == 404 else exc.name.upper().replace(" ", "_")
        return jsonify({"ok": False, "error": code}), exc.code

    @app.errorhandler(Exception)
    def server_error(exc):
        logging.getLogger("presensi.api").exception("Unhandled error: %s", exc)
        db.session.rollback()
        return jsonify({"ok": False, "error": "SERVER_ERROR"}), 500

    return app
