"""
Authentication Routes

Provides:
- POST /auth/login   {"username": ..., "password": ...}
- POST /auth/logout
- GET  /auth/me

Rules:
- Only active users may log in.
- Credentials are validated via password hash.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from ...models import User


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and start a session."""
    payload = request.get_json(silent=True) or {}
    username = str(payload.get("username", "")).strip()
    password = str(payload.get("password", ""))

    user = User.query.filter_by(username=username).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "Unauthorized", "message": "Invalid username or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Forbidden", "message": "Account is inactive."}), 403

    login_user(user)
    return jsonify({"id": user.id, "username": user.username})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"status": "logged_out"})


@auth_bp.route("/me")
@login_required
def me():
    if not current_user.is_authenticated:
        return jsonify({"id": None, "username": None})
    return jsonify({"id": current_user.id, "username": current_user.username})
