from dataclasses import dataclass, field
from functools import wraps
from typing import FrozenSet, Optional

from flask import g, jsonify
from security.session import get_session_from_request
from models.user import User


@dataclass(frozen=True)
class SessionContext:
    """Who is acting. Routes build one per request and hand it to services."""

    user_id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)
    session_id: Optional[int] = None

    def has_role(self, name: str) -> bool:
        return name in self.roles


def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    user = User.query.get(sess.user_id)
    if user is None or not user.is_active:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = user


def current_context() -> SessionContext:
    user = g.user
    sess = getattr(g, "session", None)
    return SessionContext(
        user_id=user.id,
        roles=frozenset(user.role_names),
        session_id=sess.id if sess is not None else None,
    )


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
