# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User

ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Resolve the acting user for write operations.

    Sets g.current_user to the active User named by the X-Actor-Id header.
    This is an identity hand-off from the front end, not authentication.

    Returns 401 if the header is missing, malformed, or names no active user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER)
        if not raw:
            return jsonify({"error": "Acting user required"}), 401

        try:
            user_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid acting user"}), 401

        user = db.session.query(User).filter_by(id=user_id, is_active=True).first()
        if user is None:
            return jsonify({"error": "Invalid acting user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
