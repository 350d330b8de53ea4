# config/settings/dev.py
"""
Development settings.
These settings are for local development only.
"""

from .base import *  # noqa

DEBUG = True

ALLOWED_HOSTS = [
    "localhost",
    "127.0.0.1",
]

CSRF_TRUSTED_ORIGINS = [
    # keep empty for localhost; add ngrok/cloudflare tunnel here if used
]

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
SECURE_HSTS_SECONDS = 0

# Local runs usually sit behind no proxy at all.
THROTTLE_TRUST_PROXY_HEADERS = (os.getenv("THROTTLE_TRUST_PROXY_HEADERS", "False") or "").strip().lower() in ("1", "true", "yes", "on")  # noqa: F405

if not DATABASE_URL:  # noqa: F405
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        }
    }

LOGGING["root"]["level"] = os.getenv("LOG_LEVEL", "DEBUG")  # noqa: F405
