# orders/admin.py
from __future__ import annotations

from django.contrib import admin, messages

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product", "quantity", "unit_price_cents", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "buyer", "status", "total_cents", "currency", "created_at", "completed_at")
    list_filter = ("status", "currency")
    search_fields = ("id", "buyer__username", "buyer__email")
    readonly_fields = ("created_at", "updated_at", "completed_at")
    inlines = [OrderItemInline]
    actions = ["action_mark_completed", "action_mark_refunded"]

    @admin.action(description="Mark selected orders completed")
    def action_mark_completed(self, request, queryset):
        changed = sum(1 for order in queryset if order.mark_completed())
        messages.success(request, f"Completed {changed} order(s).")

    @admin.action(description="Mark selected orders refunded (revokes downloads)")
    def action_mark_refunded(self, request, queryset):
        changed = sum(1 for order in queryset if order.mark_refunded())
        messages.success(request, f"Refunded {changed} order(s).")
