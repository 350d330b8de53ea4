# downloads/entitlements.py
from __future__ import annotations

from typing import Optional

from orders.services import has_completed_purchase


def has_access(user_id: Optional[str], product_id, *, is_free: bool) -> bool:
    """
    Free products: always (the rate limiter still applies).
    Paid products: only a signed-in account with a completed purchase.

    Order-store errors are not caught here; the gate turns them into a 500,
    never into an implicit allow.
    """
    if is_free:
        return True
    if not user_id:
        return False
    return has_completed_purchase(user_id=user_id, product_id=product_id)
