from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from orders.models import Order
from orders.services import complete_order, create_order
from products.models import Product

pytestmark = pytest.mark.django_db


def test_create_order_snapshots_prices_and_totals(buyer, paid_product, free_product):
    order = create_order(buyer=buyer, products=[paid_product, free_product, paid_product])

    assert order.status == Order.Status.PENDING
    assert order.items.count() == 2
    assert order.total_cents == 1999
    prices = sorted(order.items.values_list("unit_price_cents", flat=True))
    assert prices == [0, 1999]


def test_mark_completed_is_idempotent(buyer, paid_product):
    order = create_order(buyer=buyer, products=[paid_product])

    assert complete_order(order) is True
    first_completed_at = order.completed_at
    assert complete_order(order) is False

    order.refresh_from_db()
    assert order.is_completed
    assert order.completed_at == first_completed_at


def test_cancel_and_refund_transitions(buyer, paid_product):
    pending = create_order(buyer=buyer, products=[paid_product])
    assert pending.mark_refunded() is False
    assert pending.mark_canceled() is True
    assert pending.mark_canceled() is False

    done = create_order(buyer=buyer, products=[paid_product])
    done.mark_completed()
    assert done.mark_canceled() is False
    assert done.mark_refunded() is True
    assert Order.objects.get(pk=done.pk).status == Order.Status.REFUNDED


def test_product_slug_is_unique_and_stable(storage_root):
    a = Product.objects.create(title="Planetary Gear", is_free=True, file_path="models/free/gear.stl")
    b = Product.objects.create(title="Planetary Gear", is_free=True, file_path="models/free/gear2.stl")
    assert a.slug == "planetary-gear"
    assert b.slug == "planetary-gear-2"

    a.title = "Planetary Gear Set"
    a.save()
    a.refresh_from_db()
    assert a.slug == "planetary-gear"


def test_product_clean_rules():
    free = Product(title="Cube", is_free=True, price=Decimal("3.00"), file_path="models/free/cube.stl")
    free.clean()
    assert free.price == Decimal("0.00")

    paid = Product(title="Helmet", is_free=False, price=Decimal("0.00"), file_path="models/premium/h.zip")
    with pytest.raises(ValidationError) as excinfo:
        paid.clean()
    assert "price" in excinfo.value.message_dict
    assert paid.file_extension == ".zip"
