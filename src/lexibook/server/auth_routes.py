"""Account endpoints: register, login and the current user."""
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, jwt_required

from lexibook.errors import AuthenticationError, NotFoundError, ValidationError
from lexibook.models.models import User
from lexibook.server.database import current_user_id, db_ready_required, get_session
from lexibook.services.user_service import UserService

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _issue_token(user: User) -> str:
    return create_access_token(
        identity=str(user.id),
        additional_claims={"username": user.username, "email": user.email},
    )


def _required_fields(*names: str) -> list:
    """Fetch non-empty string fields from the JSON body."""
    body = request.get_json(silent=True) or {}
    values = [body.get(name) for name in names]
    if not all(isinstance(value, str) and value for value in values):
        raise ValidationError(f"{', '.join(names)} are required")
    return values


@auth_bp.post("/register")
@db_ready_required
def register():
    """Create an account and return a token for it."""
    username, email, password = _required_fields("username", "email", "password")

    min_length = current_app.config["MIN_PASSWORD_LENGTH"]
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")

    user = UserService(get_session()).create_user(username, email, password)
    return jsonify({
        "message": "Registration successful",
        "token": _issue_token(user),
        "user": user.to_dict(),
    }), 201


@auth_bp.post("/login")
@db_ready_required
def login():
    """Exchange email and password for a token."""
    email, password = _required_fields("email", "password")

    user = UserService(get_session()).authenticate(email, password)
    if user is None:
        raise AuthenticationError("Invalid email or password")

    logger.info("User %s logged in", user.username)
    return jsonify({
        "message": "Login successful",
        "token": _issue_token(user),
        "user": user.to_dict(),
    })


@auth_bp.get("/me")
@jwt_required()
@db_ready_required
def me():
    """Profile of the token's user."""
    user = UserService(get_session()).get_by_id(current_user_id())
    if user is None:
        raise NotFoundError("User not found")

    profile = user.to_dict()
    profile["created_at"] = user.created_at.isoformat() if user.created_at else None
    return jsonify({"user": profile})
