"""Role resolution for multi-role festival accounts.

A user may hold several roles at once (for example ``admin`` and
``event_manager``). Each session works under a single *active role* chosen
from that set. The helpers here are pure: they never touch the database and
never persist the chosen role, callers do that themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from django.db import models

logger = logging.getLogger(__name__)


class Role(models.TextChoices):
    ADMIN = "admin", "Administrator"
    EVENT_MANAGER = "event_manager", "Event Manager"
    FIRST_YEAR_COORDINATOR = "first_year_coordinator", "First Year Coordinator"
    SECOND_YEAR_COORDINATOR = "second_year_coordinator", "Second Year Coordinator"
    THIRD_YEAR_COORDINATOR = "third_year_coordinator", "Third Year Coordinator"
    FOURTH_YEAR_COORDINATOR = "fourth_year_coordinator", "Fourth Year Coordinator"
    STUDENT = "student", "Student"


class AcademicYear(models.TextChoices):
    FIRST = "first", "First Year"
    SECOND = "second", "Second Year"
    THIRD = "third", "Third Year"
    FOURTH = "fourth", "Fourth Year"


YEAR_ORDER: list[str] = [year.value for year in AcademicYear]

COORDINATOR_YEARS: dict[str, str] = {
    Role.FIRST_YEAR_COORDINATOR: AcademicYear.FIRST,
    Role.SECOND_YEAR_COORDINATOR: AcademicYear.SECOND,
    Role.THIRD_YEAR_COORDINATOR: AcademicYear.THIRD,
    Role.FOURTH_YEAR_COORDINATOR: AcademicYear.FOURTH,
}

STAFF_ROLES = frozenset({Role.ADMIN, Role.EVENT_MANAGER})

COORDINATOR_SUFFIX = "_coordinator"


def normalise_roles(raw: str | Iterable[str] | None) -> list[str]:
    """Return a de-duplicated list of role tags from a string or iterable."""

    if not raw:
        return []
    if isinstance(raw, str):
        raw = [raw]
    seen: list[str] = []
    for value in raw:
        tag = str(value or "").strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def is_coordinator(role: str | None) -> bool:
    """Return True for any role that is nominally a year coordinator."""

    return bool(role) and str(role).endswith(COORDINATOR_SUFFIX)


def coordinator_year(role: str | None) -> str | None:
    """Map a coordinator role to its academic year, ``None`` otherwise.

    Unknown coordinator tags (e.g. ``fifth_year_coordinator``) also map to
    ``None``; visibility code treats that as an unresolved scope.
    """

    if not role:
        return None
    year = COORDINATOR_YEARS.get(role)
    return str(year) if year is not None else None


def role_label(role: str) -> str:
    try:
        return Role(role).label
    except ValueError:
        return role


def _fallback_rank(role: str) -> tuple[int, int, str]:
    if role == Role.ADMIN:
        return (0, 0, role)
    if role == Role.EVENT_MANAGER:
        return (1, 0, role)
    if is_coordinator(role):
        year = coordinator_year(role)
        if year is None:
            return (3, 1, role)
        return (2, YEAR_ORDER.index(year), role)
    if role == Role.STUDENT:
        return (3, 0, role)
    return (4, 0, role)


def resolve_active_role(roles: str | Iterable[str] | None, previous: str | None = None) -> str | None:
    """Return a validated active role for a profile's role set.

    ``previous`` is kept when the profile still holds it. Otherwise the
    fallback order is admin, event manager, coordinators (by year), student,
    then coordinator tags with no known year.
    Returns ``None`` when the profile holds no recognisable role.
    """

    available = normalise_roles(roles)
    if previous and previous in available:
        return previous
    candidates = [role for role in available if _fallback_rank(role)[0] < 4]
    if not candidates:
        return None
    chosen = min(candidates, key=_fallback_rank)
    if previous:
        logger.info("active role %r no longer granted; falling back to %r", previous, chosen)
    return chosen


@dataclass(frozen=True)
class ActiveRole:
    """The single role governing a session, validated against a role set."""

    role: str

    @classmethod
    def for_user(cls, user, requested: str | None = None) -> "ActiveRole | None":
        """Resolve the active role for ``user``; ``None`` when no role is held."""

        resolved = resolve_active_role(getattr(user, "roles", None), requested)
        return cls(resolved) if resolved else None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_event_manager(self) -> bool:
        return self.role == Role.EVENT_MANAGER

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_coordinator(self) -> bool:
        return is_coordinator(self.role)

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def year(self) -> str | None:
        return coordinator_year(self.role)

    def held_by(self, user) -> bool:
        """Return True when ``user`` still holds this role."""

        return self.role in normalise_roles(getattr(user, "roles", None))

    def __str__(self) -> str:
        return self.role
