"""User accounts carrying a multi-valued role set."""
from __future__ import annotations

from typing import Iterable

from django.contrib.auth.models import AbstractUser
from django.db import models

from .roles import normalise_roles


class User(AbstractUser):
    """A festival user. ``roles`` holds every role tag granted to the account."""

    full_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(unique=True)
    roles = models.JSONField(default=list, blank=True)
    is_first_login = models.BooleanField(default=True)
    profile_completed = models.BooleanField(default=False)

    class Meta:
        ordering = ("username",)

    def __str__(self) -> str:
        return self.full_name or self.username

    @property
    def role_set(self) -> frozenset[str]:
        return frozenset(normalise_roles(self.roles))

    def has_role(self, role: str) -> bool:
        return role in self.role_set

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(role in self.role_set for role in roles)

    @property
    def linked_student_id(self) -> int | None:
        """Return the primary key of the student record linked to this user."""

        student = getattr(self, "student_record", None)
        return student.pk if student is not None else None
