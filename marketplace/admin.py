from django.contrib import admin

from .models import Dispute, DisputeMessage, Listing, Order, OrderTransition


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "seller", "price", "quantity", "is_available", "created_at")
    list_filter = ("is_available", "created_at")
    search_fields = ("title", "description", "seller__email", "seller_name")
    readonly_fields = ("id", "is_available", "initial_quantity", "created_at", "updated_at")

    fieldsets = (
        (None, {"fields": ("id", "title", "description", "price", "images")}),
        ("Inventory", {"fields": ("quantity", "initial_quantity", "is_available")}),
        ("Seller", {"fields": ("seller", "seller_name", "seller_city")}),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )


class OrderTransitionInline(admin.TabularInline):
    model = OrderTransition
    extra = 0
    can_delete = False
    fields = ("event", "from_status", "to_status", "actor", "actor_role", "note", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "buyer", "seller", "status", "total_amount", "delivery_method", "created_at")
    list_filter = ("status", "delivery_method", "payment_method", "created_at")
    search_fields = ("order_number", "buyer__email", "seller__email", "article_title")
    inlines = [OrderTransitionInline]

    # Status changes go through the order service so the audit trail stays complete
    readonly_fields = [f.name for f in Order._meta.fields]

    fieldsets = (
        ("Order", {"fields": ("id", "order_number", "status", "version")}),
        ("Parties", {"fields": ("buyer", "buyer_name", "buyer_phone", "seller", "seller_name")}),
        ("Article", {"fields": ("listing", "article_title", "article_image")}),
        (
            "Amounts",
            {"fields": ("article_price", "delivery_fee", "commission", "commission_rate", "total_amount")},
        ),
        ("Delivery", {"fields": ("delivery_method", "delivery_address", "payment_method", "tracking_number")}),
        ("Reasons", {"fields": ("cancellation_reason", "cancelled_by", "dispute_reason")}),
        (
            "Timestamps",
            {
                "fields": (
                    "created_at",
                    "payment_sent_at",
                    "paid_at",
                    "shipped_at",
                    "delivered_at",
                    "completed_at",
                    "cancelled_at",
                    "disputed_at",
                    "updated_at",
                ),
                "classes": ("collapse",),
            },
        ),
    )


class DisputeMessageInline(admin.TabularInline):
    model = DisputeMessage
    extra = 0
    can_delete = False
    fields = ("sender", "sender_name", "sender_role", "text", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("order_number", "reason", "status", "amount", "buyer", "seller", "created_at")
    list_filter = ("status", "reason", "resolution_type", "created_at")
    search_fields = ("order_number", "article_title", "buyer__email", "seller__email", "description")
    inlines = [DisputeMessageInline]
    readonly_fields = [f.name for f in Dispute._meta.fields]
