"""Flask application factory for the municipal complaint API."""
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from extensions import db, jwt, migrate
from utils.email_service import Mailer
from utils.errors import ApiError, InvalidToken, Unauthenticated
from utils.logger import init_logging
from utils.ml_client import ClassifierClient
from utils.security import apply_security_headers, hash_password


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def api_error(error: ApiError):
        if error.status_code >= 500:
            app.logger.error("API error", extra={"path": request.path, "detail": error.message})
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        if error.code == 404:
            app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"message": error.description or error.name}), error.code

    @app.errorhandler(SQLAlchemyError)
    def database_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Database error", extra={"path": request.path})
        return jsonify({"message": "Internal server error"}), 500

    @app.errorhandler(Exception)
    def internal_error(error: Exception):
        app.logger.exception("500 Internal Server Error", extra={"path": request.path})
        return jsonify({"message": "Internal server error"}), 500


def register_jwt_handlers(app: Flask) -> None:
    from models import User  # Local import to avoid circular dependency

    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        identity = jwt_data.get("sub")
        if not identity:
            return None
        return db.session.get(User, str(identity))

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify(Unauthenticated("Access token required").to_dict()), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        current_app.logger.info("Rejected malformed token", extra={"reason": reason, "path": request.path})
        return jsonify(InvalidToken().to_dict()), 401

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return jsonify(InvalidToken("Token expired").to_dict()), 401

    @jwt.user_lookup_error_loader
    def unknown_user(_jwt_header, jwt_data):
        current_app.logger.info("Token for unknown account", extra={"subject": jwt_data.get("sub")})
        return jsonify(InvalidToken().to_dict()), 401


def ensure_default_admin(app: Flask) -> None:
    """Create or promote the bootstrap admin when credentials are configured."""
    from models import User  # Local import to avoid circular dependency

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if admin_user:
        if admin_user.role != "admin" or not admin_user.is_verified:
            admin_user.role = "admin"
            admin_user.is_verified = True
            db.session.commit()
        return

    admin_user = User(
        name="System Administrator",
        email=admin_email,
        password_hash=hash_password(admin_password, method=app.config["PASSWORD_HASH_METHOD"]),
        role="admin",
        is_verified=True,
    )
    db.session.add(admin_user)
    db.session.commit()
    app.logger.info("Default admin created", extra={"email": admin_email})


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # Startup fails loudly later if the server is unreachable.
            pass
        finally:
            engine.dispose()


def create_app(config_name: Optional[str] = None, config_overrides: Optional[Mapping] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    app.config.from_pyfile("config.py", silent=True)
    if config_overrides:
        app.config.update(config_overrides)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    init_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    register_jwt_handlers(app)

    app.extensions["mailer"] = Mailer.from_config(app.config)
    app.extensions["classifier"] = ClassifierClient.from_config(app.config)

    from routes import admin_bp, auth_bp, complaints_bp, main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(complaints_bp, url_prefix="/api/complaints")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response)

    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app
