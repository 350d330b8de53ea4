# downloads/admin.py
from __future__ import annotations

from django.contrib import admin

from .models import DownloadEvent


@admin.register(DownloadEvent)
class DownloadEventAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "user", "identity", "request_id", "created_at")
    search_fields = ("product__title", "product__slug", "identity", "user__username")
    date_hierarchy = "created_at"
    list_select_related = ("product", "user")

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False
