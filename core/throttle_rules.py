from __future__ import annotations

"""
Central throttle policy for file downloads.

Anonymous callers get a strictly smaller budget than signed-in accounts.
Each class has its own bucket namespace: an account id and a forwarded
address are both plain strings, and an anonymous caller must never be
able to spend an account's budget by sending its id as an address.
Values come from settings on every call so they can be tuned per
environment (and overridden in tests) without a restart of the module.
"""

from django.conf import settings

from core.throttle import ThrottleRule

DOWNLOAD_KEY_PREFIX = "downloads"
ANONYMOUS_KEY_PREFIX = f"{DOWNLOAD_KEY_PREFIX}:anon"
AUTHENTICATED_KEY_PREFIX = f"{DOWNLOAD_KEY_PREFIX}:user"

DEFAULT_ANONYMOUS_LIMIT = 5
DEFAULT_AUTHENTICATED_LIMIT = 20
DEFAULT_WINDOW_SECONDS = 60 * 60


def _positive_int(name: str, default: int) -> int:
    try:
        value = int(getattr(settings, name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def download_rule(*, authenticated: bool) -> ThrottleRule:
    window = _positive_int("DOWNLOAD_RATE_LIMIT_WINDOW_SECONDS", DEFAULT_WINDOW_SECONDS)
    if authenticated:
        limit = _positive_int("DOWNLOAD_RATE_LIMIT_AUTHENTICATED", DEFAULT_AUTHENTICATED_LIMIT)
        return ThrottleRule(key_prefix=AUTHENTICATED_KEY_PREFIX, limit=limit, window_seconds=window)
    limit = _positive_int("DOWNLOAD_RATE_LIMIT_ANONYMOUS", DEFAULT_ANONYMOUS_LIMIT)
    return ThrottleRule(key_prefix=ANONYMOUS_KEY_PREFIX, limit=limit, window_seconds=window)
