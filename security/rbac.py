from functools import wraps
from flask import g, jsonify

from utils.auth_context import current_context
from utils.roles import ADMIN


def allowed(ctx, role_names) -> bool:
    """ADMIN passes every role check; everyone else needs one of ``role_names``."""
    return ctx.has_role(ADMIN) or any(ctx.has_role(r) for r in role_names)


def require_roles(*role_names: str):
    """
    Usage: @require_roles(SUPERVISOR, OPERATOR)
    The wrapped view can read the acting user from ``g.ctx``.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(g, "user", None) is None:
                return jsonify(error="Authentication required"), 401

            ctx = current_context()
            if not allowed(ctx, role_names):
                return jsonify(error="Forbidden"), 403

            g.ctx = ctx
            return fn(*args, **kwargs)
        return wrapper
    return decorator
