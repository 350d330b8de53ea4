# orders/models.py

from __future__ import annotations

import uuid
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        CANCELED = "canceled", "Canceled"
        REFUNDED = "refunded", "Refunded"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(max_length=24, choices=Status.choices, default=Status.PENDING)

    currency = models.CharField(max_length=8, default="usd")
    total_cents = models.PositiveIntegerField(default=0)

    completed_at = models.DateTimeField(null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "-created_at"], name="orders_orde_status_8f2a1c_idx"),
            models.Index(fields=["buyer", "status"], name="orders_orde_buyer_i_4d7e90_idx"),
        ]

    def __str__(self) -> str:
        return f"Order {self.pk} ({self.status})"

    @property
    def is_completed(self) -> bool:
        return self.status == self.Status.COMPLETED

    def recompute_totals(self) -> None:
        self.total_cents = sum(int(oi.line_total_cents) for oi in self.items.all())

    def mark_completed(self, *, completed_at: Optional[timezone.datetime] = None) -> bool:
        """
        Idempotent: returns True only when this call changed the status.

        Completion is what grants download entitlement for every line item.
        """
        if self.status == self.Status.COMPLETED:
            return False

        self.status = self.Status.COMPLETED
        update_fields = ["status", "updated_at"]
        if not self.completed_at:
            self.completed_at = completed_at or timezone.now()
            update_fields.append("completed_at")
        self.save(update_fields=update_fields)
        return True

    def mark_canceled(self) -> bool:
        if self.status in (self.Status.CANCELED, self.Status.COMPLETED, self.Status.REFUNDED):
            return False
        self.status = self.Status.CANCELED
        self.save(update_fields=["status", "updated_at"])
        return True

    def mark_refunded(self) -> bool:
        # Refunding revokes entitlement: only completed orders grant access.
        if self.status != self.Status.COMPLETED:
            return False
        self.status = self.Status.REFUNDED
        self.save(update_fields=["status", "updated_at"])
        return True


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )

    quantity = models.PositiveIntegerField(default=1)
    unit_price_cents = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["product", "order"], name="orders_orde_product_3b5c27_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} × {self.product_id}"

    @property
    def line_total_cents(self) -> int:
        return int(self.quantity) * int(self.unit_price_cents)
