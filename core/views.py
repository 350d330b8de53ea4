# core/views.py
from __future__ import annotations

from django.http import JsonResponse


def _error(status: int, code: str, message: str) -> JsonResponse:
    return JsonResponse({"error": code, "message": message}, status=status)


def error_400(request, exception=None):
    return _error(400, "bad_request", "Bad request")


def error_403(request, exception=None):
    return _error(403, "forbidden", "Forbidden")


def error_404(request, exception=None):
    return _error(404, "not_found", "Not found")


def error_500(request):
    return _error(500, "internal_error", "Internal server error")
