from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ("email", "username", "full_name", "role", "account_type", "is_active")
    list_filter = ("role", "account_type", "is_active", "is_staff")
    search_fields = ("email", "username", "full_name", "phone")
    ordering = ("email",)
    fieldsets = UserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("full_name", "phone", "city", "account_type", "role")}),
    )
