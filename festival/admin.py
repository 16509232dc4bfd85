"""Admin registrations for the festival application."""
from django.conf import settings
from django.contrib import admin, messages

from accounts.roles import ActiveRole

from . import models
from .exceptions import RegistrationError
from .services import workflow


@admin.register(models.Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("name", "roll_number", "department", "year", "gender", "user")
    list_filter = ("year", "department", "gender")
    search_fields = ("name", "roll_number", "email")


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "category",
        "mode",
        "max_entries_per_year",
        "max_participants",
        "event_date",
        "registration_deadline",
        "is_active",
    )
    list_filter = ("category", "mode", "is_active")
    search_fields = ("name", "description", "venue")


def _apply_transition(modeladmin, request, queryset, transition):
    role = ActiveRole.for_user(request.user, request.session.get(settings.FESTIVAL_ACTIVE_ROLE_SESSION_KEY))
    done = 0
    for registration in queryset:
        try:
            transition(request.user, role, registration.pk, request=request)
        except RegistrationError as exc:
            modeladmin.message_user(request, f"{registration}: {exc.message}", level=messages.WARNING)
        else:
            done += 1
    if done:
        modeladmin.message_user(request, f"{done} registration(s) updated.", level=messages.SUCCESS)


@admin.action(description="Approve selected pending registrations")
def approve_selected(modeladmin, request, queryset):
    _apply_transition(modeladmin, request, queryset, workflow.approve_registration)


@admin.action(description="Reject selected pending registrations")
def reject_selected(modeladmin, request, queryset):
    _apply_transition(modeladmin, request, queryset, workflow.reject_registration)


@admin.action(description="Delete selected registrations")
def delete_selected_registrations(modeladmin, request, queryset):
    _apply_transition(modeladmin, request, queryset, workflow.delete_registration)


@admin.register(models.Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ("student", "event", "status", "group_id", "registered_by", "created_at")
    list_filter = ("status", "event__category", "student__year")
    search_fields = ("student__name", "student__roll_number", "event__name")
    readonly_fields = ("status", "registered_by", "created_at", "updated_at")
    actions = [approve_selected, reject_selected, delete_selected_registrations]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(models.EventResult)
class EventResultAdmin(admin.ModelAdmin):
    list_display = ("registration", "participation", "position", "points", "entered_by")
    list_filter = ("participation", "position")
    readonly_fields = ("registration", "participation", "position", "points", "entered_by", "created_at", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(models.Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "updated_by", "updated_at")
    search_fields = ("key",)
    readonly_fields = ("key", "value", "updated_by", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(models.ActivityLogEntry)
class ActivityLogEntryAdmin(admin.ModelAdmin):
    list_display = ("action", "user", "ip_address", "created_at")
    list_filter = ("action",)
    search_fields = ("action", "user__username")
    readonly_fields = ("user", "action", "details", "ip_address", "user_agent", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
