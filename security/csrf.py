import hmac
import secrets
from flask import request, jsonify, current_app, g

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

# Login bootstrap, health checks and signed provider callbacks carry no CSRF token
CSRF_EXEMPT_PATHS = frozenset({
    "/auth/login",
    "/auth/register",
    "/health",
    "/webhooks/stripe",
})
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def issue_csrf_token(resp):
    token = secrets.token_urlsafe(32)
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,  # read by the booking client and echoed in CSRF_HEADER
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp


def csrf_failure():
    """Error response when the header token does not match the cookie, else None."""
    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not hmac.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None


def enforce_csrf():
    """``before_request`` hook: state changes by a signed-in user need the token."""
    if request.method not in UNSAFE_METHODS or request.path in CSRF_EXEMPT_PATHS:
        return None
    # anonymous requests are rejected by login_required instead
    if getattr(g, "user", None) is None:
        return None
    return csrf_failure()
