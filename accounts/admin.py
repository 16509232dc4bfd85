"""Admin registrations for festival accounts."""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from . import models


@admin.register(models.User)
class FestivalUserAdmin(UserAdmin):
    list_display = ("username", "full_name", "email", "roles", "is_active")
    list_filter = ("is_active", "is_staff")
    search_fields = ("username", "full_name", "email")
    fieldsets = UserAdmin.fieldsets + (
        ("Festival", {"fields": ("full_name", "roles", "is_first_login", "profile_completed")}),
    )
