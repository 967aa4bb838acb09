"""Environment helpers shared by the DocLens services.

Values are read from the process environment (``backend/.env`` is loaded by
server.py / database.py via python-dotenv) at the point of use so that tests
can patch ``os.environ``.
"""
import os
from typing import Optional


def require_env(name: str) -> str:
    """Return a required environment variable or fail loudly."""
    value = (os.getenv(name) or "").strip()
    if not value:
        raise RuntimeError(f"{name} environment variable not set")
    return value


def get_stripe_api_key() -> str:
    # prefer STRIPE_SECRET_KEY; fallback STRIPE_API_KEY
    return (os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_API_KEY") or "").strip()


def get_stripe_mode(api_key: Optional[str] = None) -> str:
    key = api_key if api_key is not None else get_stripe_api_key()
    if key.startswith("sk_live_"):
        return "live"
    if key.startswith("sk_test_"):
        return "test"
    return "unknown"


def get_client_url() -> str:
    return (os.getenv("CLIENT_URL") or "http://localhost:3000").strip().rstrip("/")


def get_analysis_service_url() -> str:
    return (os.getenv("ANALYSIS_SERVICE_URL") or "http://127.0.0.1:5001").strip().rstrip("/")


def env_flag(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def get_admin_emails() -> set:
    raw = os.getenv("ADMIN_EMAILS") or ""
    return {e.strip().lower() for e in raw.split(",") if e.strip()}
