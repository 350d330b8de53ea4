# products/admin.py
from __future__ import annotations

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "slug",
        "is_free",
        "price",
        "is_active",
        "download_count",
        "created_at",
    )
    list_filter = ("is_free", "is_active")
    search_fields = ("title", "slug", "short_description", "description")
    readonly_fields = ("download_count", "created_at", "updated_at")
