# downloads/gate.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import HttpRequest

from core.logging_context import bind_identity
from core.throttle import ClientIdentity, RateLimitDecision, RateLimiter, get_download_limiter, resolve_identity
from core.throttle_rules import download_rule
from products.models import Product
from products.services import increment_download_count

from .entitlements import has_access
from .exceptions import DownloadError, InternalError, InvalidPath, NotFound, RateLimited, Unentitled
from .models import DownloadEvent
from .paths import content_type_for, resolve_download_path, storage_root

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("downloads.security")


@dataclass(frozen=True)
class DownloadRequest:
    """Transport-independent view of one inbound download request."""

    user_id: Optional[str] = None
    forwarded_for: str = ""
    real_ip: str = ""
    remote_addr: str = ""
    request_id: str = ""

    @classmethod
    def from_http_request(cls, request: HttpRequest) -> "DownloadRequest":
        user = getattr(request, "user", None)
        user_id = str(user.pk) if user is not None and user.is_authenticated else None
        return cls(
            user_id=user_id,
            forwarded_for=request.META.get("HTTP_X_FORWARDED_FOR") or "",
            real_ip=request.META.get("HTTP_X_REAL_IP") or "",
            remote_addr=request.META.get("REMOTE_ADDR") or "",
            request_id=getattr(request, "request_id", "") or "",
        )


@dataclass
class DownloadOutcome:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    payload: Optional[dict] = None
    stream: Optional[BinaryIO] = None
    filename: str = ""
    content_type: str = ""
    content_length: Optional[int] = None


class DownloadGate:
    """
    Decides, per request, whether a product file may be served right now.

    Order is fixed and fail-fast: product lookup, identity, rate limit,
    entitlement, path/type validation, file existence, open and serve.
    Only a served file is counted and audited; nothing is recorded for a
    refused request apart from the rate-limit slot already consumed.
    """

    def __init__(
        self,
        *,
        limiter: Optional[RateLimiter] = None,
        root: Optional[os.PathLike | str] = None,
        allowed_exts=None,
    ) -> None:
        self._limiter = limiter
        self._root = root
        self._allowed_exts = allowed_exts

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter or get_download_limiter()

    def handle(self, ctx: DownloadRequest, product_id) -> DownloadOutcome:
        decision: Optional[RateLimitDecision] = None
        identity: Optional[ClientIdentity] = None
        try:
            product = self._load_product(product_id)
            identity = resolve_identity(
                user_id=ctx.user_id,
                forwarded_for=ctx.forwarded_for,
                real_ip=ctx.real_ip,
                remote_addr=ctx.remote_addr,
            )
            bind_identity(identity.key)
            decision = self._check_rate_limit(identity, product)
            self._check_entitlement(identity, product)
            path = self._validate_path(product)
            outcome = self._open(product, path, decision)
        except DownloadError as exc:
            return self._refuse(exc, decision)
        except Exception:
            logger.exception("download failed unexpectedly product=%s", product_id)
            return self._refuse(InternalError(), decision)

        self._record(product, identity, ctx)
        return outcome

    # -- steps --------------------------------------------------------

    def _load_product(self, product_id) -> Product:
        try:
            return Product.objects.only("id", "slug", "title", "is_free", "file_path", "is_active").get(
                pk=product_id, is_active=True
            )
        except (Product.DoesNotExist, ValidationError, ValueError):
            raise NotFound()
        except DatabaseError:
            logger.exception("product lookup failed product=%s", product_id)
            raise InternalError()

    def _check_rate_limit(self, identity: ClientIdentity, product: Product) -> RateLimitDecision:
        rule = download_rule(authenticated=identity.is_authenticated)
        decision = self.limiter.check(identity.key, rule)
        if not decision.allowed:
            logger.warning(
                "download rate limited product=%s identity=%s limit=%s reset=%s",
                product.pk,
                identity.key,
                decision.limit,
                decision.reset_at_iso,
            )
            raise RateLimited(decision)
        return decision

    def _check_entitlement(self, identity: ClientIdentity, product: Product) -> None:
        user_id = identity.key if identity.is_authenticated else None
        try:
            allowed = has_access(user_id, product.pk, is_free=product.is_free)
        except DatabaseError:
            logger.exception("entitlement lookup failed product=%s identity=%s", product.pk, identity.key)
            raise InternalError()

        if not allowed:
            logger.warning("download denied product=%s identity=%s free=%s", product.pk, identity.key, product.is_free)
            if product.is_free:
                raise Unentitled("Please sign in to download")
            raise Unentitled("Please purchase this product to download")

    def _validate_path(self, product: Product) -> Path:
        try:
            return resolve_download_path(
                product.file_path,
                root=self._root if self._root is not None else storage_root(),
                allowed_exts=self._allowed_exts,
            )
        except InvalidPath as exc:
            security_logger.warning("SECURITY rejected download path product=%s: %s", product.pk, exc.detail)
            raise

    def _open(self, product: Product, path: Path, decision: RateLimitDecision) -> DownloadOutcome:
        if not path.is_file():
            logger.error("download file missing product=%s path=%s", product.pk, path)
            raise NotFound("File not found")

        stream = None
        try:
            stream = open(path, "rb")
            size = os.fstat(stream.fileno()).st_size
        except OSError:
            if stream is not None:
                stream.close()
            logger.exception("download file unreadable product=%s path=%s", product.pk, path)
            raise InternalError()

        headers = decision.as_headers()
        headers["Cache-Control"] = "no-store, must-revalidate"
        headers["X-Content-Type-Options"] = "nosniff"

        return DownloadOutcome(
            status=200,
            headers=headers,
            stream=stream,
            filename=f"{product.slug}{path.suffix.lower()}",
            content_type=content_type_for(path),
            content_length=size,
        )

    def _record(self, product: Product, identity: ClientIdentity, ctx: DownloadRequest) -> None:
        # Best-effort: the response is already decided.
        try:
            increment_download_count(product.pk)
        except Exception:
            logger.exception("download counter update failed product=%s", product.pk)

        try:
            DownloadEvent.objects.create(
                product_id=product.pk,
                user_id=ctx.user_id if identity.is_authenticated else None,
                identity=identity.key[:255],
                request_id=(ctx.request_id or "")[:64],
            )
        except Exception:
            logger.exception("download audit row failed product=%s", product.pk)

        logger.info("download served product=%s slug=%s identity=%s outcome=served", product.pk, product.slug, identity.key)

    def _refuse(self, exc: DownloadError, decision: Optional[RateLimitDecision]) -> DownloadOutcome:
        headers: dict[str, str] = decision.as_headers() if decision is not None else {}
        if isinstance(exc, RateLimited):
            headers.update(exc.decision.as_headers())
            headers["Retry-After"] = str(exc.decision.retry_after())
        return DownloadOutcome(status=exc.status_code, headers=headers, payload=exc.payload())


_gate = DownloadGate()


def get_download_gate() -> DownloadGate:
    return _gate
