"""Blueprint registration and public routes."""
from datetime import datetime

from flask import Blueprint, current_app, jsonify, send_from_directory
from werkzeug.utils import secure_filename

from utils.errors import NotFound
from .admin import admin_bp
from .auth import auth_bp
from .complaints import complaints_bp

main_bp = Blueprint("main", __name__)

__all__ = ["main_bp", "auth_bp", "complaints_bp", "admin_bp"]


@main_bp.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "OK", "timestamp": datetime.utcnow().isoformat()})


@main_bp.route("/uploads/<path:filename>", methods=["GET"])
def uploaded_photo(filename):
    safe_name = secure_filename(filename)
    if not safe_name or safe_name != filename:
        raise NotFound("Photo not found")
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], safe_name)
