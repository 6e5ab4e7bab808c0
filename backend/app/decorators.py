# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Resolve the acting user for a stock-mutating request.

    Authentication happens upstream; this only maps the X-User-Id header to
    an active User and sets:
    - g.current_user: the User
    - g.actor_id: its id (stamped into created_by / approved_by columns)

    Returns 401 when the header is missing or malformed, 403 when the user
    is unknown or inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"message": f"{ACTOR_HEADER} header required"}), 401
        if not raw.isdigit():
            return jsonify({"message": f"Invalid {ACTOR_HEADER} header"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"message": "Unknown or inactive user"}), 403

        g.current_user = user
        g.actor_id = user.id
        return f(*args, **kwargs)

    return decorated_function
