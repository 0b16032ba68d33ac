"""Bearer-token helpers shared by every blueprint."""
from __future__ import annotations

from flask import current_app, jsonify, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from .models import User

TOKEN_SALT = "auth-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def get_jwt_identity() -> int | None:
    """Extract and validate user_id from the Authorization header token.

    Returns the user_id if the token is valid, None if missing, tampered with
    or older than ``AUTH_TOKEN_MAX_AGE`` seconds.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        payload = _serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except BadSignature:
        # Invalid or expired token
        return None

    if not isinstance(payload, dict):
        return None
    return payload.get("user_id")


def is_admin(user: User | None) -> bool:
    if user is None:
        return False
    if user.role == "admin":
        return True
    return user.email.lower() in current_app.config.get("ADMIN_EMAILS", [])


def get_current_user() -> User | None:
    user_id = get_jwt_identity()
    if not user_id:
        return None
    return User.query.get(user_id)


def require_user():
    """Return ``(user, None)`` or ``(None, error_response)`` for handlers."""
    user = get_current_user()
    if user is None:
        return None, (jsonify({"error": "unauthorized", "message": "Invalid or missing token"}), 401)
    return user, None


def require_admin():
    user, error = require_user()
    if error:
        return None, error
    if not is_admin(user):
        return None, (jsonify({"error": "forbidden", "message": "Admin access required"}), 403)
    return user, None
