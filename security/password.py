from typing import Optional

import bcrypt
from flask import current_app, has_app_context


def _config(key, fallback):
    return current_app.config.get(key, fallback) if has_app_context() else fallback


def password_problem(plain_password) -> Optional[str]:
    """Why a registration password is refused, or None when it is acceptable."""
    if not isinstance(plain_password, str) or not plain_password:
        return "Password required"
    min_length = _config("MIN_PASSWORD_LENGTH", 8)
    if len(plain_password) < min_length:
        return f"Password must be at least {min_length} characters"
    # bcrypt only looks at the first 72 bytes
    if len(plain_password.encode("utf-8")) > 72:
        return "Password must be at most 72 bytes"
    return None


def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    salt = bcrypt.gensalt(rounds=_config("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash in the row
        return False
