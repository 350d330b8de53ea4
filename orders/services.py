# orders/services.py

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from django.db import transaction

from products.models import Product

from .models import Order, OrderItem


def _price_to_cents(price: Decimal) -> int:
    return int((Decimal(price or 0) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@transaction.atomic
def create_order(*, buyer, products: Iterable[Product], currency: str = "usd") -> Order:
    """
    Create a pending Order with one line per product (price snapshot at
    purchase time). Duplicate products collapse into one line.
    """
    order = Order.objects.create(buyer=buyer, currency=currency)

    seen: set = set()
    for product in products:
        if product.pk in seen:
            continue
        seen.add(product.pk)
        OrderItem.objects.create(
            order=order,
            product=product,
            quantity=1,
            unit_price_cents=0 if product.is_free else _price_to_cents(product.price),
        )

    order.recompute_totals()
    order.save(update_fields=["total_cents", "updated_at"])
    return order


def complete_order(order: Order) -> bool:
    """Simulated payment capture: flips the order to completed."""
    return order.mark_completed()


def has_completed_purchase(*, user_id, product_id) -> bool:
    """
    True iff a completed order owned by user_id contains product_id.

    Point-in-time read: never cached, database errors propagate to the caller.
    """
    if not user_id:
        return False
    return OrderItem.objects.filter(
        product_id=product_id,
        order__buyer_id=user_id,
        order__status=Order.Status.COMPLETED,
    ).exists()
