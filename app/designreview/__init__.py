import logging
import os

from flask import Flask
from dotenv import load_dotenv

from app.designreview.config import load_config
# Core models first: they pull in every module model in a safe order.
from app.designreview import models  # noqa: F401
from app.designreview.db import init_db, teardown_db_session
from app.designreview.errors import register_error_handlers
from app.designreview.routes import bp as routes_bp
from app.designreview.auth import bp as auth_bp, load_current_user
from app.designreview.users import bp as users_bp
from app.designreview.modules.projects.routes import bp as projects_bp
from app.designreview.modules.files.routes import bp as files_bp
from app.designreview.modules.feedback.routes import bp as feedback_bp
from app.designreview.modules.messages.routes import bp as messages_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage config check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(users_bp, url_prefix="/users")
    app.register_blueprint(projects_bp, url_prefix="/projects")
    app.register_blueprint(files_bp, url_prefix="/files")
    app.register_blueprint(feedback_bp, url_prefix="/feedback")
    app.register_blueprint(messages_bp, url_prefix="/messages")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
