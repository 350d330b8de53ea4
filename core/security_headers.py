from __future__ import annotations

from django.conf import settings

DEFAULT_CSP = (
    "default-src 'self'; "
    "img-src 'self' data: blob: https:; "
    "style-src 'self' 'unsafe-inline' https:; "
    "script-src 'self' 'unsafe-inline' https:; "
    "font-src 'self' https: data:; "
    "object-src 'none'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self';"
)

DEFAULT_PERMISSIONS_POLICY = "camera=(), microphone=(), geolocation=(), interest-cohort=()"


class SecurityHeadersMiddleware:
    """
    Baseline response headers for every page and download.

    Headers a view already set win (setdefault), so a download response can
    keep its own Cache-Control / content type decisions.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.headers = {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": getattr(settings, "SECURE_REFERRER_POLICY", None) or "strict-origin-when-cross-origin",
            # Modern browsers rely on CSP; "0" disables the legacy auditor.
            "X-XSS-Protection": "0",
            "Content-Security-Policy": getattr(settings, "SECURITY_CSP", DEFAULT_CSP),
            "Cross-Origin-Opener-Policy": "same-origin",
            "Cross-Origin-Resource-Policy": "same-origin",
            "Permissions-Policy": getattr(settings, "SECURITY_PERMISSIONS_POLICY", DEFAULT_PERMISSIONS_POLICY),
        }
        hsts = self._hsts_value()
        if hsts:
            self.headers["Strict-Transport-Security"] = hsts

    @staticmethod
    def _hsts_value() -> str:
        # Only advertise HSTS when HTTPS is actually enforced.
        seconds = int(getattr(settings, "SECURE_HSTS_SECONDS", 0) or 0)
        if seconds <= 0:
            return ""
        value = f"max-age={seconds}"
        if bool(getattr(settings, "SECURE_HSTS_INCLUDE_SUBDOMAINS", True)):
            value += "; includeSubDomains"
        if bool(getattr(settings, "SECURE_HSTS_PRELOAD", False)):
            value += "; preload"
        return value

    def __call__(self, request):
        resp = self.get_response(request)
        for name, value in self.headers.items():
            resp.setdefault(name, value)
        return resp
