"""Per-request database access for the sync server."""
from functools import wraps

from flask import current_app, g
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.orm import Session

from lexibook.errors import NotReadyError

EXTENSION_KEY = "lexibook"


def get_session() -> Session:
    """Session bound to the current request, opened on first use."""
    if "db" not in g:
        g.db = current_app.extensions[EXTENSION_KEY]["session_factory"]()
    return g.db


def close_session(exception=None) -> None:
    """Close the request session, if one was opened."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def db_ready_required(f):
    """Answer 503 while the database is still being initialized."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_app.extensions[EXTENSION_KEY]["db_ready"]:
            raise NotReadyError("Database is initializing, please retry shortly")
        return f(*args, **kwargs)
    return decorated


def current_user_id() -> int:
    """User id carried by the verified token."""
    return int(get_jwt_identity())
