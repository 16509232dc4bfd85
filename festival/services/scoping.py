"""Role-scoped visibility over registrations, students and events.

Each scope carries a queryset predicate (a ``Q`` object) and an equivalent
in-memory predicate. A coordinator role whose year cannot be resolved yields
a scope that matches nothing; no unresolved scope ever widens to "all".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from django.db.models import Q

from accounts.roles import ActiveRole

from ..exceptions import ScopeUnresolved, Unauthorized

logger = logging.getLogger(__name__)

MATCH_NOTHING = Q(pk__in=[])


@dataclass(frozen=True)
class Scope:
    predicate: Q
    matches: Callable[[object], bool]
    unresolved: bool = False
    reason: str = ""

    def filter(self, records: Iterable) -> list:
        return [record for record in records if self.matches(record)]

    def apply(self, queryset):
        return queryset.filter(self.predicate)

    def raise_if_unresolved(self) -> None:
        if self.unresolved:
            raise ScopeUnresolved(reason=self.reason)


def _nothing(reason: str, *, unresolved: bool = False) -> Scope:
    return Scope(predicate=MATCH_NOTHING, matches=lambda record: False, unresolved=unresolved, reason=reason)


def _everything() -> Scope:
    return Scope(predicate=Q(), matches=lambda record: True)


def _student_year(record) -> str | None:
    student = getattr(record, "student", None)
    if student is None:
        return None
    return getattr(student, "year", None)


def ensure_role_held(active_role: ActiveRole | None, actor) -> ActiveRole:
    """Re-validate a session-selected role against the actor's current role set."""

    if active_role is None:
        raise Unauthorized("No active role is available for this account.")
    if not active_role.held_by(actor):
        logger.warning("user %s presented role %s they no longer hold", getattr(actor, "pk", None), active_role)
        raise Unauthorized("The active role is not granted to this account.", role=active_role.role)
    return active_role


def scope_registrations(active_role: ActiveRole | None, actor) -> Scope:
    """Return the registration scope for ``actor`` acting as ``active_role``."""

    if active_role is None or not active_role.held_by(actor):
        return _nothing("role_not_held")
    if active_role.is_staff:
        return _everything()
    if active_role.is_coordinator:
        year = active_role.year
        if year is None:
            logger.warning("coordinator role %s has no year mapping; scope is empty", active_role)
            return _nothing("coordinator_year_missing", unresolved=True)
        return Scope(
            predicate=Q(student__year=year),
            matches=lambda record: _student_year(record) == year,
        )
    if active_role.is_student:
        student_id = getattr(actor, "linked_student_id", None)
        if student_id is None:
            return _nothing("student_not_linked")
        return Scope(
            predicate=Q(student_id=student_id),
            matches=lambda record: getattr(record, "student_id", None) == student_id,
        )
    return _nothing("unknown_role")


def scope_students(active_role: ActiveRole | None, actor) -> Scope:
    """Same policy as :func:`scope_registrations`, applied to student rows."""

    if active_role is None or not active_role.held_by(actor):
        return _nothing("role_not_held")
    if active_role.is_staff:
        return _everything()
    if active_role.is_coordinator:
        year = active_role.year
        if year is None:
            logger.warning("coordinator role %s has no year mapping; scope is empty", active_role)
            return _nothing("coordinator_year_missing", unresolved=True)
        return Scope(
            predicate=Q(year=year),
            matches=lambda record: getattr(record, "year", None) == year,
        )
    if active_role.is_student:
        student_id = getattr(actor, "linked_student_id", None)
        if student_id is None:
            return _nothing("student_not_linked")
        return Scope(
            predicate=Q(pk=student_id),
            matches=lambda record: getattr(record, "pk", None) == student_id,
        )
    return _nothing("unknown_role")


def scope_events(active_role: ActiveRole | None, actor) -> Scope:
    """Staff see every event; everyone else only active ones."""

    if active_role is None or not active_role.held_by(actor):
        return _nothing("role_not_held")
    if active_role.is_staff:
        return _everything()
    return Scope(
        predicate=Q(is_active=True),
        matches=lambda record: bool(getattr(record, "is_active", False)),
    )
