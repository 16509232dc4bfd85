"""Event and student record maintenance.

Only administrators and event managers may create, edit or delete these
records. Deleting an event or a student cascades to its registrations and
results, so the scoreboard lock applies here as well.
"""
from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, transaction

from accounts.roles import ActiveRole

from .. import models
from ..exceptions import RegistrationError, ResultsLocked, StoreFailure, Unauthorized
from . import activity
from .scoping import ensure_role_held
from .settings_store import FestivalSettings, load_settings

logger = logging.getLogger(__name__)

__all__ = [
    "create_event",
    "update_event",
    "delete_event",
    "create_student",
    "update_student",
    "delete_student",
]


def _require_staff(actor, active_role: ActiveRole | None, what: str) -> ActiveRole:
    active_role = ensure_role_held(active_role, actor)
    if not active_role.is_staff:
        raise Unauthorized(f"Only administrators and event managers can manage {what}.", role=active_role.role)
    return active_role


def _guard_results(results, config: FestivalSettings | None, **context) -> None:
    if not results.exists():
        return
    config = config or load_settings()
    if not config.available:
        raise StoreFailure("Festival settings are unavailable.", **context)
    if config.scoreboard_visible:
        raise ResultsLocked(scoreboard_visible=True, **context)


def _create(actor, active_role, model, data: dict[str, Any], action: str, *, request=None, **extra):
    what = model._meta.verbose_name_plural
    active_role = _require_staff(actor, active_role, what)
    try:
        with transaction.atomic():
            instance = model.objects.create(**data, **extra)
            activity.log_activity(
                actor,
                action,
                {f"{model._meta.model_name}_id": instance.pk, "name": instance.name, "active_role": active_role.role},
                request=request,
            )
    except DatabaseError as exc:
        logger.exception("could not create %s", model._meta.model_name)
        raise StoreFailure(name=data.get("name")) from exc
    logger.info("%s %s created by user %s", model._meta.model_name, instance.pk, getattr(actor, "pk", None))
    return instance


def _update(actor, active_role, instance, data: dict[str, Any], action: str, *, request=None):
    what = instance._meta.verbose_name_plural
    active_role = _require_staff(actor, active_role, what)
    try:
        with transaction.atomic():
            for field, value in data.items():
                setattr(instance, field, value)
            instance.save()
            activity.log_activity(
                actor,
                action,
                {
                    f"{instance._meta.model_name}_id": instance.pk,
                    "name": instance.name,
                    "fields": sorted(data),
                    "active_role": active_role.role,
                },
                request=request,
            )
    except DatabaseError as exc:
        logger.exception("could not update %s %s", instance._meta.model_name, instance.pk)
        raise StoreFailure(**{f"{instance._meta.model_name}_id": instance.pk}) from exc
    logger.info("%s %s updated by user %s", instance._meta.model_name, instance.pk, getattr(actor, "pk", None))
    return instance


def _delete(actor, active_role, instance, results, action: str, *, config=None, request=None) -> dict[str, Any]:
    what = instance._meta.verbose_name_plural
    key = f"{instance._meta.model_name}_id"
    active_role = _require_staff(actor, active_role, what)
    try:
        with transaction.atomic():
            _guard_results(results, config, **{key: instance.pk})
            details = {
                key: instance.pk,
                "name": instance.name,
                "registrations": instance.registrations.count(),
                "active_role": active_role.role,
            }
            instance.delete()
            activity.log_activity(actor, action, details, request=request)
    except RegistrationError as exc:
        logger.warning("deletion of %s %s denied: %s", instance._meta.model_name, instance.pk, exc.code)
        raise
    except DatabaseError as exc:
        logger.exception("could not delete %s", instance._meta.model_name)
        raise StoreFailure(**{key: instance.pk}) from exc
    logger.info("%s %s deleted by user %s", instance._meta.model_name, details[key], getattr(actor, "pk", None))
    return details


def create_event(actor, active_role, data: dict[str, Any], *, request=None) -> models.Event:
    return _create(actor, active_role, models.Event, data, "event_created", request=request, created_by=actor)


def update_event(actor, active_role, event: models.Event, data: dict[str, Any], *, request=None) -> models.Event:
    return _update(actor, active_role, event, data, "event_updated", request=request)


def delete_event(actor, active_role, event: models.Event, *, config=None, request=None) -> dict[str, Any]:
    results = models.EventResult.objects.filter(registration__event=event)
    return _delete(actor, active_role, event, results, "event_deleted", config=config, request=request)


def create_student(actor, active_role, data: dict[str, Any], *, request=None) -> models.Student:
    return _create(actor, active_role, models.Student, data, "student_created", request=request)


def update_student(actor, active_role, student: models.Student, data: dict[str, Any], *, request=None) -> models.Student:
    return _update(actor, active_role, student, data, "student_updated", request=request)


def delete_student(actor, active_role, student: models.Student, *, config=None, request=None) -> dict[str, Any]:
    results = models.EventResult.objects.filter(registration__student=student)
    return _delete(actor, active_role, student, results, "student_deleted", config=config, request=request)
