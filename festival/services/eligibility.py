"""Per-category registration quotas."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from django.db import DatabaseError

from .. import models
from ..exceptions import NotFound, QuotaExceeded, StoreFailure
from .settings_store import FestivalSettings, load_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Eligibility:
    """Outcome of a quota check for one student and category."""

    student_id: int
    category: str
    current_count: int
    limit: int
    config_available: bool = True

    @property
    def allowed(self) -> bool:
        return self.current_count < self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.current_count, 0)

    def as_dict(self) -> dict[str, object]:
        return {
            "student_id": self.student_id,
            "category": self.category,
            "allowed": self.allowed,
            "current_count": self.current_count,
            "limit": self.limit,
            "config_available": self.config_available,
        }

    def raise_if_denied(self) -> None:
        if self.allowed:
            return
        try:
            label = models.Event.Category(self.category).label
        except ValueError:
            label = self.category
        raise QuotaExceeded(
            f"The student has reached the maximum of {self.limit} {label} registrations.",
            category=self.category,
            current_count=self.current_count,
            limit=self.limit,
        )


def count_in_category(registrations: Iterable, student_id: int, category: str) -> int:
    """Count pending/approved registrations for a student in one category.

    ``registrations`` is any iterable of records exposing ``student_id``,
    ``status`` and ``event.category``.
    """

    return sum(
        1
        for registration in registrations
        if registration.student_id == student_id
        and registration.status in models.Registration.ACTIVE_STATUSES
        and registration.event.category == category
    )


def active_count(student_id: int, category: str) -> int:
    return models.Registration.objects.filter(
        student_id=student_id,
        status__in=models.Registration.ACTIVE_STATUSES,
        event__category=category,
    ).count()


def can_register(
    student_id: int,
    category: str,
    *,
    config: FestivalSettings | None = None,
) -> Eligibility:
    """Check a student's current count in ``category`` against the configured limit.

    Pending registrations count towards the limit. When configuration is
    unavailable the limit reads as 0 and the check denies.
    """

    config = config or load_settings()
    try:
        if not models.Student.objects.filter(pk=student_id).exists():
            raise NotFound("Student not found.", student_id=student_id)
        current = active_count(student_id, category)
    except DatabaseError as exc:
        logger.exception("quota count failed for student %s", student_id)
        raise StoreFailure(student_id=student_id, category=category) from exc

    result = Eligibility(
        student_id=student_id,
        category=category,
        current_count=current,
        limit=config.limit_for(category),
        config_available=config.available,
    )
    if not result.allowed:
        logger.info(
            "student %s at %s limit (%d/%d)", student_id, category, result.current_count, result.limit
        )
    return result
