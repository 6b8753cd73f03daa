from functools import wraps

from flask import g, jsonify


def _deny(status: int, message: str, code: str):
    return jsonify(status="error", message=message, code=code), status


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return _deny(401, "Authentication required", "unauthenticated")
        return fn(*args, **kwargs)
    return wrapper


def require_roles(*role_names: str):
    """
    @require_roles("COACH") on a view; ADMIN passes every role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return _deny(401, "Authentication required", "unauthenticated")
            if not user.has_role("ADMIN") and not user.role_names.intersection(role_names):
                return _deny(403, "Forbidden", "forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
