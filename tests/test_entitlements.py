import pytest
from django.db import DatabaseError

from downloads.entitlements import has_access
from orders.services import complete_order, create_order, has_completed_purchase

pytestmark = pytest.mark.django_db


def test_free_product_is_open_to_everyone(free_product, buyer):
    assert has_access(None, free_product.pk, is_free=True)
    assert has_access(str(buyer.pk), free_product.pk, is_free=True)


def test_paid_product_needs_an_account(paid_product):
    assert not has_access(None, paid_product.pk, is_free=False)
    assert not has_access("", paid_product.pk, is_free=False)


def test_paid_product_needs_completed_purchase(paid_product, buyer, other_user):
    order = create_order(buyer=buyer, products=[paid_product])
    assert not has_access(str(buyer.pk), paid_product.pk, is_free=False)  # still pending

    complete_order(order)

    assert has_access(str(buyer.pk), paid_product.pk, is_free=False)
    assert not has_access(str(other_user.pk), paid_product.pk, is_free=False)


def test_purchase_of_another_product_does_not_grant_access(paid_product, free_product, buyer):
    complete_order(create_order(buyer=buyer, products=[free_product]))
    assert not has_access(str(buyer.pk), paid_product.pk, is_free=False)


def test_refund_revokes_access(paid_product, buyer):
    order = create_order(buyer=buyer, products=[paid_product])
    complete_order(order)
    order.mark_refunded()
    assert not has_completed_purchase(user_id=buyer.pk, product_id=paid_product.pk)


def test_query_errors_propagate(monkeypatch, paid_product, buyer):
    def boom(**kwargs):
        raise DatabaseError("connection reset")

    monkeypatch.setattr("downloads.entitlements.has_completed_purchase", boom)
    with pytest.raises(DatabaseError):
        has_access(str(buyer.pk), paid_product.pk, is_free=False)
