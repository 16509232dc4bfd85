"""Shared record builders for festival tests."""
from __future__ import annotations

from itertools import count

from django.contrib.auth import get_user_model

from accounts.roles import ActiveRole
from festival import models

_sequence = count(1)


def make_user(*roles: str, username: str | None = None):
    number = next(_sequence)
    username = username or f"user{number}"
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.edu",
        password="pass1234",
        roles=list(roles),
    )


def make_student(year: str = "first", *, user=None, name: str | None = None) -> models.Student:
    number = next(_sequence)
    return models.Student.objects.create(
        name=name or f"Student {number}",
        roll_number=f"R{number:05d}",
        department="Computer Science",
        year=year,
        user=user,
    )


def make_event(
    name: str | None = None,
    *,
    category: str = models.Event.Category.ON_STAGE,
    mode: str = models.Event.Mode.INDIVIDUAL,
    **extra,
) -> models.Event:
    number = next(_sequence)
    return models.Event.objects.create(
        name=name or f"Event {number}",
        category=category,
        mode=mode,
        **extra,
    )


def register(student, event, status=models.Registration.Status.PENDING, **extra) -> models.Registration:
    return models.Registration.objects.create(student=student, event=event, status=status, **extra)


def role(name: str) -> ActiveRole:
    return ActiveRole(name)
