# downloads/models.py
from __future__ import annotations

from django.conf import settings
from django.db import models


class DownloadEvent(models.Model):
    """
    Audit row for every file actually served.

    identity is the rate-limit key at the time (account id or client ip).
    """

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="download_events",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="download_events",
    )
    identity = models.CharField(max_length=255, blank=True, default="")
    request_id = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=["product", "created_at"], name="downloads_d_product_7c1e52_idx"),
            models.Index(fields=["identity", "created_at"], name="downloads_d_identit_a93f04_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"download product={self.product_id} by {self.identity or '-'} at {self.created_at}"
