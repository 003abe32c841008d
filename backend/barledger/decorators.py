# Overview: Request and role decorators for API routes.

from datetime import timedelta
from functools import wraps

from flask import current_app, g, jsonify, request

from .context import current_context
from .services import auth_service


def session_ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 12))


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip()


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User. Returns 401 when the
    header is missing or the token is invalid, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = auth_service.validate_session(current_context(), token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Allow only users whose role is one of ``roles``; use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def current_user_id() -> int | None:
    user = getattr(g, "current_user", None)
    return user.id if user is not None else None
