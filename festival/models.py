"""Database models for the festival registration engine."""
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from accounts.roles import AcademicYear


class Student(models.Model):
    """A student who can be registered into festival events."""

    name = models.CharField(max_length=150)
    roll_number = models.CharField(max_length=32, unique=True)
    department = models.CharField(max_length=120)
    year = models.CharField(max_length=8, choices=AcademicYear.choices)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    gender = models.CharField(max_length=16, blank=True)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="student_record",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return f"{self.name} ({self.roll_number})"


class Event(models.Model):
    """A competitive or cultural event students register into."""

    class Category(models.TextChoices):
        ON_STAGE = "on_stage", "On-Stage"
        OFF_STAGE = "off_stage", "Off-Stage"

    class Mode(models.TextChoices):
        INDIVIDUAL = "individual", "Individual"
        GROUP = "group", "Group"

    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=10, choices=Category.choices)
    mode = models.CharField(max_length=10, choices=Mode.choices, default=Mode.INDIVIDUAL)
    max_entries_per_year = models.PositiveIntegerField(blank=True, null=True)
    max_participants = models.PositiveIntegerField(blank=True, null=True)
    min_team_size = models.PositiveIntegerField(blank=True, null=True)
    max_team_size = models.PositiveIntegerField(blank=True, null=True)
    event_date = models.DateTimeField(blank=True, null=True)
    venue = models.CharField(max_length=150, blank=True)
    registration_deadline = models.DateTimeField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_events",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name

    def deadline_passed(self, now=None) -> bool:
        """Return True when a registration deadline exists and has elapsed."""

        if self.registration_deadline is None:
            return False
        return (now or timezone.now()) > self.registration_deadline


class Registration(models.Model):
    """Links one student to one event."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    ACTIVE_STATUSES = (Status.PENDING, Status.APPROVED)

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="registrations")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    group_id = models.CharField(max_length=64, blank=True, null=True)
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registrations_made",
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-pk")
        indexes = [models.Index(fields=["student", "status"], name="festival_reg_student_status")]

    def __str__(self) -> str:
        return f"{self.student} - {self.event} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    @property
    def registration_method(self) -> str:
        """``student`` for self-registration, ``staff`` for assisted entries."""

        if self.registered_by_id and self.registered_by_id == self.student.user_id:
            return "student"
        return "staff"


class EventResult(models.Model):
    """Point-bearing outcome recorded against a single registration."""

    class Position(models.TextChoices):
        FIRST = "first", "First"
        SECOND = "second", "Second"
        THIRD = "third", "Third"
        NONE = "none", "None"

    class Participation(models.TextChoices):
        PARTICIPATED = "participated", "Participated"
        DID_NOT_PARTICIPATE = "did_not_participate", "Did not participate"

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="result")
    position = models.CharField(max_length=8, choices=Position.choices, default=Position.NONE)
    participation = models.CharField(
        max_length=20,
        choices=Participation.choices,
        default=Participation.PARTICIPATED,
    )
    points = models.IntegerField(default=0)
    entered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="results_entered",
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-pk")

    def __str__(self) -> str:
        return f"Result for {self.registration} ({self.points:+d})"


class Setting(models.Model):
    """Key/value configuration row; values are JSON objects."""

    key = models.CharField(max_length=64, unique=True)
    value = models.JSONField(default=dict, blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("key",)

    def __str__(self) -> str:
        return self.key


class ActivityLogEntry(models.Model):
    """Append-only audit trail entry."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity_log",
    )
    action = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-pk")
        verbose_name_plural = "activity log entries"

    def __str__(self) -> str:
        return f"{self.action} at {self.created_at:%Y-%m-%d %H:%M:%S}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError("Activity log entries are write-once.")
        return super().save(*args, **kwargs)
