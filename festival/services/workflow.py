"""Registration lifecycle: create, approve, reject and delete.

``pending`` may move to ``approved`` or ``rejected``; nothing moves back to
``pending``. Deletion is a hard delete available from any state. Every
successful transition writes one activity log entry.

The quota and capacity checks and the insert run in one transaction with
the student and event rows locked, so concurrent attempts for the same
student or the same event are serialised on databases that honour
``SELECT ... FOR UPDATE``.
"""
from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, transaction
from django.utils import timezone

from accounts.roles import ActiveRole

from .. import models
from ..exceptions import (
    CapacityReached,
    DuplicateRegistration,
    InvalidTransition,
    NotFound,
    RegistrationError,
    ResultsLocked,
    RegistrationsGloballyClosed,
    RegistrationWindowClosed,
    ScopeUnresolved,
    StoreFailure,
    Unauthorized,
)
from . import activity, eligibility
from .scoping import ensure_role_held
from .settings_store import FestivalSettings, load_settings

logger = logging.getLogger(__name__)

__all__ = [
    "create_registration",
    "set_registration_status",
    "approve_registration",
    "reject_registration",
    "delete_registration",
]

Status = models.Registration.Status


def _get_student(student_id: int) -> models.Student:
    try:
        return models.Student.objects.get(pk=student_id)
    except models.Student.DoesNotExist as exc:
        raise NotFound("Student not found.", student_id=student_id) from exc


def _get_event(event_id: int) -> models.Event:
    try:
        return models.Event.objects.get(pk=event_id)
    except models.Event.DoesNotExist as exc:
        raise NotFound("Event not found.", event_id=event_id) from exc


def _get_registration(registration_id: int) -> models.Registration:
    try:
        return models.Registration.objects.select_related("student", "event").get(pk=registration_id)
    except models.Registration.DoesNotExist as exc:
        raise NotFound("Registration not found.", registration_id=registration_id) from exc


def _check_coordinator_year(active_role: ActiveRole, student: models.Student) -> None:
    year = active_role.year
    if year is None:
        raise ScopeUnresolved(role=active_role.role)
    if student.year != year:
        raise Unauthorized(
            "Coordinators can only act on students from their own year.",
            role=active_role.role,
            student_year=student.year,
        )


def _check_staff_authority(active_role: ActiveRole, student: models.Student, action: str) -> None:
    """Authority for approve, reject and delete."""

    if active_role.is_staff:
        return
    if active_role.is_coordinator:
        _check_coordinator_year(active_role, student)
        return
    raise Unauthorized(f"Your active role cannot {action} registrations.", role=active_role.role)


def _check_create_authority(actor, active_role: ActiveRole, student: models.Student) -> None:
    if active_role.is_staff:
        return
    if active_role.is_coordinator:
        _check_coordinator_year(active_role, student)
        return
    if active_role.is_student:
        if student.pk != getattr(actor, "linked_student_id", None):
            raise Unauthorized("Students can only register themselves.", student_id=student.pk)
        return
    raise Unauthorized("Your active role cannot create registrations.", role=active_role.role)


def _check_capacity(event: models.Event, student: models.Student, group_id: str | None) -> None:
    taken = models.Registration.objects.filter(event=event).exclude(status=Status.REJECTED)

    if event.max_participants is not None:
        total = taken.values("student_id").distinct().count()
        if total >= event.max_participants:
            raise CapacityReached(
                "This event has reached its participant cap.",
                event_id=event.pk,
                current_count=total,
                limit=event.max_participants,
            )

    same_year = taken.filter(student__year=student.year)
    if event.mode == models.Event.Mode.GROUP:
        others = same_year.exclude(group_id=group_id) if group_id else same_year
        if others.exists():
            raise CapacityReached(
                "Only one group per year is allowed for this event.",
                event_id=event.pk,
                year=student.year,
            )
        return

    if event.max_entries_per_year is not None:
        current = same_year.values("student_id").distinct().count()
        if current >= event.max_entries_per_year:
            raise CapacityReached(
                f"Maximum participation limit ({event.max_entries_per_year}) reached for "
                f"{student.year} year in this event.",
                event_id=event.pk,
                year=student.year,
                current_count=current,
                limit=event.max_entries_per_year,
            )


def create_registration(
    actor,
    active_role: ActiveRole | None,
    *,
    student_id: int,
    event_id: int,
    group_id: str | None = None,
    config: FestivalSettings | None = None,
    request=None,
) -> models.Registration:
    """Register a student into an event.

    Denials raise a specific :class:`~festival.exceptions.RegistrationError`
    subclass. With auto-approve on, the new registration starts ``approved``.
    """

    active_role = ensure_role_held(active_role, actor)
    try:
        student = _get_student(student_id)
        event = _get_event(event_id)
        _check_create_authority(actor, active_role, student)

        config = config or load_settings()
        if not config.global_registration_open:
            raise RegistrationsGloballyClosed(
                registration_open=False,
                config_available=config.available,
            )
        if not event.is_active:
            raise NotFound("Event is not open for registration.", event_id=event.pk)
        if event.deadline_passed():
            raise RegistrationWindowClosed(
                f"Registration for {event.name} closed on {event.registration_deadline:%Y-%m-%d %H:%M}.",
                event_id=event.pk,
                deadline=event.registration_deadline.isoformat(),
            )

        with transaction.atomic():
            models.Student.objects.select_for_update().filter(pk=student.pk).first()
            models.Event.objects.select_for_update().filter(pk=event.pk).first()
            if models.Registration.objects.filter(
                student=student, event=event, status__in=models.Registration.ACTIVE_STATUSES
            ).exists():
                raise DuplicateRegistration(student_id=student.pk, event_id=event.pk)
            _check_capacity(event, student, group_id)
            eligibility.can_register(student.pk, event.category, config=config).raise_if_denied()

            status = Status.APPROVED if config.auto_approve_registrations else Status.PENDING
            registration = models.Registration.objects.create(
                student=student,
                event=event,
                status=status,
                group_id=group_id or None,
                registered_by=actor,
            )
            activity.log_activity(
                actor,
                "registration_created",
                {
                    "registration_id": registration.pk,
                    "student_id": student.pk,
                    "event_id": event.pk,
                    "event_name": event.name,
                    "category": event.category,
                    "status": status,
                    "method": registration.registration_method,
                    "active_role": active_role.role,
                },
                request=request,
            )
    except RegistrationError as exc:
        logger.warning(
            "registration of student %s into event %s denied: %s", student_id, event_id, exc.code
        )
        raise
    except DatabaseError as exc:
        logger.exception("registration insert failed for student %s", student_id)
        raise StoreFailure(student_id=student_id, event_id=event_id) from exc

    logger.info(
        "student %s registered into event %s (%s) by user %s",
        student.pk,
        event.pk,
        registration.status,
        getattr(actor, "pk", None),
    )
    return registration


def set_registration_status(
    actor,
    active_role: ActiveRole | None,
    registration_id: int,
    new_status: str,
    *,
    request=None,
) -> models.Registration:
    """Move a pending registration to ``approved`` or ``rejected``."""

    if new_status not in (Status.APPROVED, Status.REJECTED):
        raise InvalidTransition(
            f"Cannot move a registration to {new_status!r}.",
            registration_id=registration_id,
            new_status=new_status,
        )
    active_role = ensure_role_held(active_role, actor)
    try:
        with transaction.atomic():
            registration = _get_registration(registration_id)
            verb = "approve" if new_status == Status.APPROVED else "reject"
            _check_staff_authority(active_role, registration.student, verb)
            locked = models.Registration.objects.select_for_update().get(pk=registration.pk)
            old_status = locked.status
            if old_status != Status.PENDING:
                raise InvalidTransition(
                    registration_id=registration.pk,
                    old_status=old_status,
                    new_status=new_status,
                )
            locked.status = new_status
            locked.updated_at = timezone.now()
            locked.save(update_fields=["status", "updated_at"])
            activity.log_activity(
                actor,
                "registration_status_updated",
                {
                    "registration_id": registration.pk,
                    "student_id": registration.student_id,
                    "event_id": registration.event_id,
                    "old_status": old_status,
                    "new_status": new_status,
                },
                request=request,
            )
    except RegistrationError as exc:
        logger.warning("status change on registration %s denied: %s", registration_id, exc.code)
        raise
    except DatabaseError as exc:
        logger.exception("status update failed for registration %s", registration_id)
        raise StoreFailure(registration_id=registration_id) from exc

    logger.info("registration %s %s -> %s", locked.pk, old_status, new_status)
    return locked


def approve_registration(actor, active_role, registration_id: int, *, request=None) -> models.Registration:
    return set_registration_status(actor, active_role, registration_id, Status.APPROVED, request=request)


def reject_registration(actor, active_role, registration_id: int, *, request=None) -> models.Registration:
    return set_registration_status(actor, active_role, registration_id, Status.REJECTED, request=request)


def delete_registration(
    actor,
    active_role: ActiveRole | None,
    registration_id: int,
    *,
    config: FestivalSettings | None = None,
    request=None,
) -> dict[str, Any]:
    """Hard-delete a registration in any state. Returns the logged details.

    A registration carrying a result cannot be deleted while the scoreboard is
    public, since the result would go with it.
    """

    active_role = ensure_role_held(active_role, actor)
    try:
        with transaction.atomic():
            registration = _get_registration(registration_id)
            _check_staff_authority(active_role, registration.student, "delete")
            if models.EventResult.objects.filter(registration=registration).exists():
                config = config or load_settings()
                if not config.available:
                    raise StoreFailure("Festival settings are unavailable.", registration_id=registration.pk)
                if config.scoreboard_visible:
                    raise ResultsLocked(registration_id=registration.pk, scoreboard_visible=True)
            details = {
                "registration_id": registration.pk,
                "student_id": registration.student_id,
                "event_id": registration.event_id,
                "status": registration.status,
                "student_name": registration.student.name,
                "event_name": registration.event.name,
            }
            registration.delete()
            activity.log_activity(actor, "registration_deleted", details, request=request)
    except RegistrationError as exc:
        logger.warning("deletion of registration %s denied: %s", registration_id, exc.code)
        raise
    except DatabaseError as exc:
        logger.exception("deletion failed for registration %s", registration_id)
        raise StoreFailure(registration_id=registration_id) from exc

    logger.info("registration %s deleted by user %s", registration_id, getattr(actor, "pk", None))
    return details
