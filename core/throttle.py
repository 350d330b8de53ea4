# core/throttle.py
from __future__ import annotations

import hashlib
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Optional

from django.conf import settings
from django.core.cache import caches
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleRule:
    key_prefix: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # unix seconds

    @property
    def reset_at_ms(self) -> int:
        return int(self.reset_at * 1000)

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=dt_timezone.utc).isoformat().replace("+00:00", "Z")

    def retry_after(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(1, int(round(self.reset_at - now)))

    def as_headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at_ms),
        }


# ------------------------------------------------------------
# Client identity
# ------------------------------------------------------------
@dataclass(frozen=True)
class ClientIdentity:
    key: str
    is_authenticated: bool


def _first_forwarded(value: str) -> str:
    return (value or "").split(",")[0].strip()


def resolve_identity(
    *,
    user_id: Optional[str] = None,
    forwarded_for: str = "",
    real_ip: str = "",
    remote_addr: str = "",
) -> ClientIdentity:
    """
    Pick the rate-limit key for one request.

    An authenticated account id always wins and is used verbatim. Anonymous
    callers are keyed by network origin: X-Forwarded-For (first hop), then
    X-Real-IP, then "unknown". With THROTTLE_TRUST_PROXY_HEADERS=False the
    proxy headers are ignored and REMOTE_ADDR is used instead.
    """
    if user_id:
        return ClientIdentity(key=str(user_id), is_authenticated=True)

    if bool(getattr(settings, "THROTTLE_TRUST_PROXY_HEADERS", True)):
        ip = _first_forwarded(forwarded_for) or (real_ip or "").strip()
    else:
        ip = (remote_addr or "").strip()

    return ClientIdentity(key=ip or "unknown", is_authenticated=False)


# ------------------------------------------------------------
# Bucket stores
# ------------------------------------------------------------
class BucketStore:
    """
    Holds per-identity request budgets.

    consume() is the only mutating operation and must be atomic per identity:
    two concurrent calls for the same key never both see the last free slot.
    """

    def consume(self, identity: str, limit: int, window_seconds: int) -> RateLimitDecision:
        raise NotImplementedError

    def reset(self, identity: Optional[str] = None) -> None:
        raise NotImplementedError


@dataclass
class _Bucket:
    count: int
    deadline: float  # monotonic
    reset_at: float  # wall clock, reported to clients
    last_seen: float


class MemoryBucketStore(BucketStore):
    """
    Process-local store (the default).

    Window comparisons use the monotonic clock; reset times handed back to
    callers come from the wall clock. Buckets are guarded by a fixed set of
    striped locks so memory for locks stays constant no matter how many
    identities pass through.
    """

    STRIPES = 64

    def __init__(
        self,
        *,
        max_identities: int = 50_000,
        sweep_grace_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_identities = max(1, int(max_identities))
        self.sweep_grace_seconds = max(0, int(sweep_grace_seconds))
        self._clock = clock
        self._wall_clock = wall_clock
        self._buckets: dict[str, _Bucket] = {}
        self._stripes = [threading.Lock() for _ in range(self.STRIPES)]
        self._sweep_lock = threading.Lock()
        self._next_sweep = clock() + self.sweep_grace_seconds

    def __len__(self) -> int:
        return len(self._buckets)

    def _lock_for(self, identity: str) -> threading.Lock:
        return self._stripes[hash(identity) % self.STRIPES]

    def consume(self, identity: str, limit: int, window_seconds: int) -> RateLimitDecision:
        limit = max(1, int(limit))
        window = max(1, int(window_seconds))

        self._maybe_sweep()

        with self._lock_for(identity):
            now = self._clock()
            bucket = self._buckets.get(identity)

            if bucket is None or now > bucket.deadline:
                reset_at = self._wall_clock() + window
                self._buckets[identity] = _Bucket(count=1, deadline=now + window, reset_at=reset_at, last_seen=now)
                return RateLimitDecision(allowed=True, limit=limit, remaining=limit - 1, reset_at=reset_at)

            bucket.last_seen = now
            if bucket.count < limit:
                bucket.count += 1
                return RateLimitDecision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - bucket.count,
                    reset_at=bucket.reset_at,
                )

            return RateLimitDecision(allowed=False, limit=limit, remaining=0, reset_at=bucket.reset_at)

    def reset(self, identity: Optional[str] = None) -> None:
        if identity is None:
            for lock in self._stripes:
                lock.acquire()
            try:
                self._buckets.clear()
            finally:
                for lock in self._stripes:
                    lock.release()
            return

        with self._lock_for(identity):
            self._buckets.pop(identity, None)

    def _maybe_sweep(self) -> None:
        if self._clock() < self._next_sweep:
            return
        if not self._sweep_lock.acquire(blocking=False):
            return
        try:
            self.sweep()
        finally:
            self._sweep_lock.release()

    def sweep(self) -> int:
        """
        Drop buckets whose window ended more than the grace period ago, then
        evict least-recently-seen buckets while over max_identities.
        Returns the number of buckets removed.
        """
        now = self._clock()
        self._next_sweep = now + max(1, self.sweep_grace_seconds)
        removed = 0

        for identity in list(self._buckets):
            with self._lock_for(identity):
                bucket = self._buckets.get(identity)
                if bucket is not None and now > bucket.deadline + self.sweep_grace_seconds:
                    del self._buckets[identity]
                    removed += 1

        overflow = len(self._buckets) - self.max_identities
        if overflow > 0:
            snapshot = [(identity, bucket.last_seen) for identity, bucket in list(self._buckets.items())]
            oldest = sorted(snapshot, key=lambda item: item[1])[:overflow]
            for identity, last_seen in oldest:
                with self._lock_for(identity):
                    bucket = self._buckets.get(identity)
                    # skip buckets touched since the snapshot
                    if bucket is not None and bucket.last_seen == last_seen:
                        del self._buckets[identity]
                        removed += 1

        if removed:
            logger.info("throttle sweep removed=%s tracked=%s", removed, len(self._buckets))
        return removed


class CacheBucketStore(BucketStore):
    """
    Django-cache-backed store for deployments that share a cache (Redis,
    Memcached) between processes.

    The window start is claimed with cache.add() and the counter for that
    window is bumped with cache.incr(), both atomic on shared backends.
    Bucket keys carry a generation token kept under key_prefix; reset()
    without an identity rotates it, leaving every other cache key alone.
    """

    def __init__(
        self,
        *,
        alias: str = "default",
        key_prefix: str = "throttle:buckets",
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.alias = alias
        self.key_prefix = key_prefix
        self._wall_clock = wall_clock

    @property
    def cache(self):
        return caches[self.alias]

    @property
    def _generation_key(self) -> str:
        return f"{self.key_prefix}:generation"

    def _generation(self) -> str:
        cache = self.cache
        generation = cache.get(self._generation_key)
        if generation is None:
            cache.add(self._generation_key, "0", timeout=None)
            generation = cache.get(self._generation_key) or "0"
        return str(generation)

    def _base_key(self, identity: str) -> str:
        digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:32]
        return f"{self.key_prefix}:{self._generation()}:{digest}"

    def consume(self, identity: str, limit: int, window_seconds: int) -> RateLimitDecision:
        limit = max(1, int(limit))
        window = max(1, int(window_seconds))
        cache = self.cache
        base = self._base_key(identity)
        reset_key = f"{base}:reset"

        now = self._wall_clock()
        reset_at = cache.get(reset_key)
        if reset_at is None or now > float(reset_at):
            candidate = now + window
            if cache.add(reset_key, candidate, timeout=window):
                reset_at = candidate
            else:
                reset_at = cache.get(reset_key)
                if reset_at is None or now > float(reset_at):
                    # stale window the backend has not expired yet
                    cache.set(reset_key, candidate, timeout=window)
                    reset_at = candidate
        reset_at = float(reset_at)

        count_key = f"{base}:{int(reset_at * 1000)}"
        cache.add(count_key, 0, timeout=window + 5)
        try:
            count = int(cache.incr(count_key))
        except ValueError:
            # evicted between add() and incr()
            cache.set(count_key, 1, timeout=window + 5)
            count = 1

        if count <= limit:
            return RateLimitDecision(allowed=True, limit=limit, remaining=limit - count, reset_at=reset_at)
        return RateLimitDecision(allowed=False, limit=limit, remaining=0, reset_at=reset_at)

    def reset(self, identity: Optional[str] = None) -> None:
        if identity is None:
            self.cache.set(self._generation_key, uuid.uuid4().hex, timeout=None)
            return
        base = self._base_key(identity)
        reset_at = self.cache.get(f"{base}:reset")
        keys = [f"{base}:reset"]
        if reset_at is not None:
            keys.append(f"{base}:{int(float(reset_at) * 1000)}")
        self.cache.delete_many(keys)


# ------------------------------------------------------------
# Limiter
# ------------------------------------------------------------
class RateLimiter:
    def __init__(self, store: BucketStore) -> None:
        self.store = store

    def check(self, identity: str, rule: ThrottleRule) -> RateLimitDecision:
        return self.store.consume(f"{rule.key_prefix}:{identity}", rule.limit, rule.window_seconds)


def _setting_int(name: str, default: int) -> int:
    try:
        return int(getattr(settings, name, default) or default)
    except (TypeError, ValueError):
        return default


def build_bucket_store() -> BucketStore:
    path = getattr(settings, "DOWNLOAD_RATE_LIMIT_STORE", "") or "core.throttle.MemoryBucketStore"
    options = dict(getattr(settings, "DOWNLOAD_RATE_LIMIT_STORE_OPTIONS", None) or {})
    store_cls = import_string(path)
    if isinstance(store_cls, type) and issubclass(store_cls, MemoryBucketStore):
        options.setdefault("max_identities", _setting_int("DOWNLOAD_RATE_LIMIT_MAX_IDENTITIES", 50_000))
        options.setdefault("sweep_grace_seconds", _setting_int("DOWNLOAD_RATE_LIMIT_SWEEP_GRACE_SECONDS", 300))
    return store_cls(**options)


_limiter: Optional[RateLimiter] = None
_limiter_lock = threading.Lock()


def get_download_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                _limiter = RateLimiter(build_bucket_store())
    return _limiter


def reset_download_limiter() -> None:
    """Forget the shared limiter; the next call rebuilds it from settings."""
    global _limiter
    with _limiter_lock:
        _limiter = None
