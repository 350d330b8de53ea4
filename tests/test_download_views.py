import time
from datetime import datetime

import pytest
from django.db import DatabaseError
from django.urls import reverse

from downloads.models import DownloadEvent
from orders.services import complete_order, create_order
from products.models import Product

from .conftest import FREE_STL, PREMIUM_ZIP

pytestmark = pytest.mark.django_db

HOUR = 60 * 60
ANON_IP = "203.0.113.7"


def _url(product_id) -> str:
    return reverse("downloads:product", kwargs={"product_id": product_id})


def _body(resp) -> bytes:
    try:
        return b"".join(resp.streaming_content)
    finally:
        resp.close()


def _get_anon(client, product, ip=ANON_IP, **extra):
    return client.get(_url(product.pk), HTTP_X_FORWARDED_FOR=ip, **extra)


class TestAnonymousFreeDownloads:
    def test_five_downloads_then_rate_limited(self, client, free_product):
        remaining = []
        for _ in range(5):
            resp = _get_anon(client, free_product)
            assert resp.status_code == 200
            assert _body(resp) == FREE_STL
            assert resp["X-RateLimit-Limit"] == "5"
            remaining.append(resp["X-RateLimit-Remaining"])
        assert remaining == ["4", "3", "2", "1", "0"]

        resp = _get_anon(client, free_product)
        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "rate_limited"

        reset_at = datetime.fromisoformat(data["reset_at"].replace("Z", "+00:00")).timestamp()
        assert reset_at == pytest.approx(time.time() + HOUR, abs=60)
        assert int(resp["Retry-After"]) == pytest.approx(HOUR, abs=60)
        assert resp["X-RateLimit-Remaining"] == "0"
        assert int(resp["X-RateLimit-Reset"]) == pytest.approx(reset_at * 1000, abs=1000)

    def test_success_headers(self, client, free_product):
        resp = _get_anon(client, free_product)
        _body(resp)

        assert resp["Content-Type"] == "application/sla"
        assert resp["Content-Disposition"] == 'attachment; filename="flexi-rex.stl"'
        assert resp["Content-Length"] == str(len(FREE_STL))
        assert resp["Cache-Control"] == "no-store, must-revalidate"
        assert resp["X-Content-Type-Options"] == "nosniff"
        assert int(resp["X-RateLimit-Reset"]) == pytest.approx((time.time() + HOUR) * 1000, abs=60_000)

    def test_serve_records_counter_and_audit_row(self, client, free_product):
        _body(_get_anon(client, free_product))

        free_product.refresh_from_db()
        assert free_product.download_count == 1
        event = DownloadEvent.objects.get()
        assert event.product_id == free_product.pk
        assert event.identity == ANON_IP
        assert event.user_id is None

    def test_different_addresses_have_separate_budgets(self, client, free_product):
        for _ in range(5):
            _body(_get_anon(client, free_product, ip="198.51.100.1"))
        assert _get_anon(client, free_product, ip="198.51.100.1").status_code == 429

        resp = _get_anon(client, free_product, ip="198.51.100.2, 10.0.0.1")
        assert resp.status_code == 200
        _body(resp)


class TestPaidDownloads:
    def test_purchase_required_then_granted(self, client, buyer, paid_product):
        client.force_login(buyer)

        resp = client.get(_url(paid_product.pk))
        assert resp.status_code == 403
        assert resp.json() == {"error": "access_denied", "message": "Please purchase this product to download"}
        assert resp["X-RateLimit-Limit"] == "20"
        assert resp["X-RateLimit-Remaining"] == "19"

        complete_order(create_order(buyer=buyer, products=[paid_product]))

        resp = client.get(_url(paid_product.pk))
        assert resp.status_code == 200
        assert _body(resp) == PREMIUM_ZIP
        assert resp["Content-Type"] == "application/zip"
        assert resp["Content-Disposition"] == 'attachment; filename="cyberpunk-helmet.zip"'
        assert resp["X-RateLimit-Remaining"] == "18"

        event = DownloadEvent.objects.get()
        assert event.user_id == buyer.pk
        assert event.identity == str(buyer.pk)

    def test_anonymous_cannot_get_paid_file(self, client, paid_product):
        resp = _get_anon(client, paid_product)
        assert resp.status_code == 403
        assert resp.json()["message"] == "Please purchase this product to download"
        assert paid_product.download_events.count() == 0

    def test_rate_limit_is_checked_before_entitlement(self, client, paid_product):
        for _ in range(5):
            assert _get_anon(client, paid_product).status_code == 403

        resp = _get_anon(client, paid_product)
        assert resp.status_code == 429
        assert resp.json()["error"] == "rate_limited"

    def test_authenticated_budget_uses_its_own_ceiling(self, client, settings, buyer, free_product):
        settings.DOWNLOAD_RATE_LIMIT_AUTHENTICATED = 3
        client.force_login(buyer)

        for expected in ("2", "1", "0"):
            resp = client.get(_url(free_product.pk), HTTP_X_FORWARDED_FOR=ANON_IP)
            assert resp.status_code == 200
            assert resp["X-RateLimit-Limit"] == "3"
            assert resp["X-RateLimit-Remaining"] == expected
            _body(resp)

        assert client.get(_url(free_product.pk)).status_code == 429
        # the network address still has its own anonymous budget
        client.logout()
        resp = _get_anon(client, free_product)
        assert resp.status_code == 200
        assert resp["X-RateLimit-Remaining"] == "4"
        _body(resp)

    def test_anonymous_caller_cannot_spend_account_budget(self, client, buyer, free_product):
        for _ in range(5):
            resp = _get_anon(client, free_product, ip=str(buyer.pk))
            assert resp.status_code == 200
            _body(resp)
        assert _get_anon(client, free_product, ip=str(buyer.pk)).status_code == 429

        client.force_login(buyer)
        resp = client.get(_url(free_product.pk))
        assert resp.status_code == 200
        assert resp["X-RateLimit-Limit"] == "20"
        assert resp["X-RateLimit-Remaining"] == "19"
        _body(resp)

    def test_entitlement_query_error_is_a_500(self, client, monkeypatch, buyer, paid_product):
        def boom(**kwargs):
            raise DatabaseError("server closed the connection unexpectedly")

        monkeypatch.setattr("downloads.entitlements.has_completed_purchase", boom)
        client.force_login(buyer)

        resp = client.get(_url(paid_product.pk))
        assert resp.status_code == 500
        assert resp.json() == {"error": "internal_error", "message": "Internal server error"}
        assert "connection" not in resp.content.decode()


class TestPathValidation:
    def test_traversal_path_is_rejected_without_details(self, client, storage_root, caplog):
        product = Product.objects.create(title="Sneaky", is_free=True, file_path="../../etc/passwd")

        resp = _get_anon(client, product)

        assert resp.status_code == 400
        body = resp.content.decode()
        assert "passwd" not in body
        assert ".." not in body
        assert resp.json()["error"] == "invalid_request"
        assert resp["X-RateLimit-Remaining"] == "4"
        assert "SECURITY" in caplog.text
        assert "passwd" in caplog.text

        product.refresh_from_db()
        assert product.download_count == 0
        assert not DownloadEvent.objects.exists()

    def test_disallowed_extension_is_rejected_even_if_file_exists(self, client, storage_root):
        product = Product.objects.create(title="Notes", is_free=True, file_path="/models/free/notes.txt")
        resp = _get_anon(client, product)
        assert resp.status_code == 400
        assert "notes" not in resp.content.decode()


class TestNotFound:
    def test_unknown_product(self, client, free_product):
        resp = client.get(_url("00000000-0000-0000-0000-000000000000"))
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"
        assert "X-RateLimit-Remaining" not in resp

    def test_malformed_product_id(self, client, free_product):
        assert client.get(_url("not-a-uuid")).status_code == 404

    def test_inactive_product(self, client, free_product):
        Product.objects.filter(pk=free_product.pk).update(is_active=False)
        assert _get_anon(client, free_product).status_code == 404

    def test_missing_file_is_logged(self, client, storage_root, caplog):
        product = Product.objects.create(title="Ghost", is_free=True, file_path="/models/free/ghost.stl")

        resp = _get_anon(client, product)

        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "message": "File not found"}
        assert resp["X-RateLimit-Remaining"] == "4"
        assert any(r.levelname == "ERROR" and "missing" in r.getMessage() for r in caplog.records)


class _UnstatableHandle:
    def __init__(self):
        self.closed = False

    def fileno(self):
        raise OSError("stale file handle")

    def close(self):
        self.closed = True


class TestFileErrors:
    def test_handle_is_closed_when_stat_fails(self, client, monkeypatch, free_product):
        handles = []

        def fake_open(path, mode="r"):
            handle = _UnstatableHandle()
            handles.append(handle)
            return handle

        monkeypatch.setattr("downloads.gate.open", fake_open, raising=False)

        resp = _get_anon(client, free_product)

        assert resp.status_code == 500
        assert resp.json()["error"] == "internal_error"
        assert len(handles) == 1
        assert handles[0].closed
        assert not DownloadEvent.objects.exists()


class TestBookkeeping:
    def test_counter_failure_does_not_fail_download(self, client, monkeypatch, free_product, caplog):
        def boom(product_id):
            raise DatabaseError("deadlock detected")

        monkeypatch.setattr("downloads.gate.increment_download_count", boom)

        resp = _get_anon(client, free_product)

        assert resp.status_code == 200
        assert _body(resp) == FREE_STL
        assert DownloadEvent.objects.count() == 1
        assert "download counter update failed" in caplog.text

    def test_audit_line_logged(self, client, free_product, caplog):
        caplog.set_level("INFO", logger="downloads")
        _body(_get_anon(client, free_product))
        assert f"identity={ANON_IP} outcome=served" in caplog.text


class TestHttpSurface:
    def test_only_get_is_allowed(self, client, free_product):
        assert client.post(_url(free_product.pk)).status_code == 405

    def test_request_id_and_security_headers(self, client, free_product):
        resp = _get_anon(client, free_product, HTTP_X_REQUEST_ID="req-123")
        _body(resp)
        assert resp["X-Request-ID"] == "req-123"
        assert resp["X-Frame-Options"] == "DENY"
        assert resp["X-Content-Type-Options"] == "nosniff"

        event = DownloadEvent.objects.get()
        assert event.request_id == "req-123"

    def test_generated_request_id(self, client, free_product):
        resp = client.get(_url("00000000-0000-0000-0000-000000000000"))
        assert len(resp["X-Request-ID"]) == 32
