"""Serializers for the festival REST endpoints."""

from __future__ import annotations

from rest_framework import serializers

from . import models
from .services import settings_store


class StudentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Student
        fields = ["id", "name", "roll_number", "department", "year"]
        read_only_fields = fields


class EventSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Event
        fields = [
            "id",
            "name",
            "category",
            "mode",
            "max_entries_per_year",
            "registration_deadline",
            "is_active",
        ]
        read_only_fields = fields


class RegistrationSerializer(serializers.ModelSerializer):
    student = StudentSummarySerializer(read_only=True)
    event = EventSummarySerializer(read_only=True)
    registration_method = serializers.CharField(read_only=True)

    class Meta:
        model = models.Registration
        fields = [
            "id",
            "student",
            "event",
            "status",
            "group_id",
            "registration_method",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RegistrationCreateSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    event_id = serializers.IntegerField(min_value=1)
    group_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)


class EligibilityQuerySerializer(serializers.Serializer):
    student = serializers.IntegerField(min_value=1)
    category = serializers.ChoiceField(choices=models.Event.Category.choices)


class EventResultSerializer(serializers.ModelSerializer):
    registration_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = models.EventResult
        fields = ["id", "registration_id", "participation", "position", "points", "updated_at"]
        read_only_fields = fields


class EventResultInputSerializer(serializers.Serializer):
    registration_id = serializers.IntegerField(min_value=1)
    participated = serializers.BooleanField()
    position = serializers.ChoiceField(
        choices=models.EventResult.Position.choices,
        default=models.EventResult.Position.NONE,
    )


class SettingUpdateSerializer(serializers.Serializer):
    key = serializers.ChoiceField(choices=[(key, key) for key in settings_store.ENGINE_KEYS])
    value = serializers.JSONField()


class ActivityLogEntrySerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = models.ActivityLogEntry
        fields = ["id", "username", "action", "details", "ip_address", "created_at"]
        read_only_fields = fields


class ActiveRoleSerializer(serializers.Serializer):
    role = serializers.CharField(max_length=64)


class EventSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Event
        fields = [
            "id",
            "name",
            "description",
            "category",
            "mode",
            "max_entries_per_year",
            "max_participants",
            "min_team_size",
            "max_team_size",
            "event_date",
            "venue",
            "registration_deadline",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs):
        instance = self.instance
        low = attrs.get("min_team_size", getattr(instance, "min_team_size", None))
        high = attrs.get("max_team_size", getattr(instance, "max_team_size", None))
        if low is not None and high is not None and low > high:
            raise serializers.ValidationError({"max_team_size": "Must be at least the minimum team size."})
        return attrs


class StudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Student
        fields = [
            "id",
            "name",
            "roll_number",
            "department",
            "year",
            "email",
            "phone_number",
            "gender",
            "user",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]
        extra_kwargs = {"user": {"required": False, "allow_null": True}}
