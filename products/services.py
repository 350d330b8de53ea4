# products/services.py
from __future__ import annotations

from django.db.models import F

from .models import Product


def increment_download_count(product_id) -> bool:
    """
    Atomic +1 on the persistent counter (single UPDATE, no read).

    Returns False when the product no longer exists.
    """
    updated = Product.objects.filter(pk=product_id).update(download_count=F("download_count") + 1)
    return bool(updated)
