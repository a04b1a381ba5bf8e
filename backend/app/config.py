from __future__ import annotations

import os

from dotenv import load_dotenv

# Local `.env` is a dev convenience; real environment variables always win.
load_dotenv(override=False)


def _int_env(name: str, default: int, *, lo: int | None = None, hi: int | None = None) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        v = int(raw or default)
    except ValueError:
        v = default
    if lo is not None and v < lo:
        v = lo
    if hi is not None and v > hi:
        v = hi
    return v


def database_url() -> str:
    url = os.environ.get("DATABASE_URL") or "sqlite:///./realty.db"
    # Some managed providers still supply `postgres://...` which SQLAlchemy treats as invalid.
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def is_local_dev() -> bool:
    """
    We treat the app as "local dev" when DATABASE_URL is not set, because
    `database_url()` falls back to sqlite in that case.
    """
    return not (os.environ.get("DATABASE_URL") or "").strip()


def is_sqlite() -> bool:
    return database_url().startswith("sqlite")


def app_env() -> str:
    """
    Application environment marker:
    - local (default when running with sqlite fallback)
    - staging
    - prod
    """
    raw = (os.environ.get("APP_ENV") or "").strip().lower()
    if raw:
        return raw
    return "local" if is_local_dev() else "prod"


def jwt_secret() -> str:
    return os.environ.get("JWT_SECRET") or "dev-secret-change-me"


def jwt_expires_minutes() -> int:
    # 7 days by default.
    return _int_env("JWT_EXPIRES_MINUTES", 60 * 24 * 7, lo=1)


def bcrypt_rounds() -> int:
    return _int_env("BCRYPT_ROUNDS", 12, lo=4, hi=16)


def allowed_hosts() -> list[str]:
    """
    Comma-separated list for TrustedHost middleware.
    Example: ALLOWED_HOSTS=api.example.com,example.com
    """
    raw = (os.environ.get("ALLOWED_HOSTS") or "").strip()
    if not raw:
        return ["*"]
    hosts = [h.strip() for h in raw.split(",") if h.strip()]
    return hosts or ["*"]


def cors_origins() -> list[str]:
    """
    Browsers hitting the API from the web frontend need CORS.
    Configure with env `CORS_ORIGINS` as a comma-separated list.
    """
    raw = (os.environ.get("CORS_ORIGINS") or "").strip()
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def enforce_secure_secrets() -> None:
    """
    Fail-fast in production if dangerous defaults are still in use.
    """
    if app_env() in {"prod", "production"}:
        if jwt_secret() == "dev-secret-change-me":
            raise RuntimeError("JWT_SECRET must be set in production (default dev secret detected)")


def auth_rate_limit() -> int:
    """Login/register attempts allowed per client per 15 minutes."""
    return _int_env("AUTH_RATE_LIMIT", 20, lo=1)


def lead_rate_limit() -> int:
    """Lead submissions allowed per client per hour."""
    return _int_env("LEAD_RATE_LIMIT", 10, lo=1)


def admin_seed_email() -> str:
    return (os.environ.get("ADMIN_EMAIL") or "").strip().lower()


def admin_seed_password() -> str:
    return os.environ.get("ADMIN_PASSWORD") or ""


def admin_seed_name() -> str:
    return (os.environ.get("ADMIN_NAME") or "Admin User").strip()


def whatsapp_number() -> str:
    return (os.environ.get("WHATSAPP_NUMBER") or "").strip()


def log_level() -> str:
    return (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
