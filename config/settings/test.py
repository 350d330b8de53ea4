# config/settings/test.py
"""
Settings for the pytest suite (pytest-django).
"""

from .base import *  # noqa

DEBUG = False

ALLOWED_HOSTS = ["testserver", "localhost", "127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "modelvault-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
SECURE_HSTS_SECONDS = 0

THROTTLE_TRUST_PROXY_HEADERS = True

DOWNLOAD_RATE_LIMIT_STORE = "core.throttle.MemoryBucketStore"
DOWNLOAD_RATE_LIMIT_ANONYMOUS = 5
DOWNLOAD_RATE_LIMIT_AUTHENTICATED = 20
DOWNLOAD_RATE_LIMIT_WINDOW_SECONDS = 60 * 60

SENTRY_DSN = ""
