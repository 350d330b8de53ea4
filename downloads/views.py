# downloads/views.py

from __future__ import annotations

import logging

from django.http import FileResponse, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET

from .gate import DownloadOutcome, DownloadRequest, get_download_gate

logger = logging.getLogger(__name__)


def outcome_to_response(outcome: DownloadOutcome) -> HttpResponse:
    if outcome.stream is not None:
        resp = FileResponse(
            outcome.stream,
            as_attachment=True,
            filename=outcome.filename,
            content_type=outcome.content_type,
        )
        if outcome.content_length is not None:
            resp["Content-Length"] = str(outcome.content_length)
    else:
        resp = JsonResponse(outcome.payload or {}, status=outcome.status)

    for name, value in outcome.headers.items():
        resp[name] = value
    return resp


@require_GET
def download_product(request, product_id):
    logger.info("download start product=%s", product_id)
    ctx = DownloadRequest.from_http_request(request)
    outcome = get_download_gate().handle(ctx, product_id)
    return outcome_to_response(outcome)
