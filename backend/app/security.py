from __future__ import annotations

import datetime as dt

import bcrypt
import jwt

from app.config import bcrypt_rounds, jwt_expires_minutes, jwt_secret


def hash_password(password: str) -> str:
    # bcrypt stores algorithm + cost + salt in the resulting hash string.
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=bcrypt_rounds())
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Invalid hash format.
        return False


def create_access_token(*, user_id: str, email: str, role: str) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + dt.timedelta(minutes=jwt_expires_minutes())).timestamp()),
    }
    return jwt.encode(payload, jwt_secret(), algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Raises `jwt.ExpiredSignatureError` for expired tokens and
    `jwt.InvalidTokenError` for anything else that fails verification.
    """
    return jwt.decode(token, jwt_secret(), algorithms=["HS256"])
