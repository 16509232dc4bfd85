"""Recording event outcomes and the points they carry."""
from __future__ import annotations

import logging

from django.db import DatabaseError, transaction

from accounts.roles import ActiveRole

from .. import models
from ..exceptions import InvalidTransition, NotFound, RegistrationError, ResultsLocked, StoreFailure, Unauthorized
from . import activity
from .scoping import ensure_role_held
from .settings_store import FestivalSettings, load_settings

logger = logging.getLogger(__name__)

Mode = models.Event.Mode
Position = models.EventResult.Position
Participation = models.EventResult.Participation

INDIVIDUAL_POINTS = {Position.FIRST: 5, Position.SECOND: 3, Position.THIRD: 1, Position.NONE: 0}
GROUP_POINTS = {Position.FIRST: 10, Position.SECOND: 5, Position.THIRD: 0, Position.NONE: 0}
NO_SHOW_PENALTY = {Mode.INDIVIDUAL: -3, Mode.GROUP: -10}


def points_for(mode: str, participated: bool, position: str) -> tuple[str, int]:
    """Return ``(position, points)`` for an outcome.

    A no-show forces the position to ``none`` and scores the mode's penalty.
    """

    if not participated:
        return Position.NONE, NO_SHOW_PENALTY.get(mode, NO_SHOW_PENALTY[Mode.INDIVIDUAL])
    try:
        position = Position(position)
    except ValueError as exc:
        raise ValueError(f"Unknown position {position!r}.") from exc
    table = GROUP_POINTS if mode == Mode.GROUP else INDIVIDUAL_POINTS
    return position, table[position]


def record_result(
    actor,
    active_role: ActiveRole | None,
    registration_id: int,
    *,
    participated: bool,
    position: str = Position.NONE,
    config: FestivalSettings | None = None,
    request=None,
) -> models.EventResult:
    """Create or replace the single result attached to an approved registration."""

    active_role = ensure_role_held(active_role, actor)
    if not active_role.is_staff:
        raise Unauthorized("Only administrators and event managers can record results.", role=active_role.role)

    config = config or load_settings()
    if not config.available:
        raise StoreFailure("Festival settings are unavailable.", registration_id=registration_id)
    if config.scoreboard_visible:
        raise ResultsLocked(registration_id=registration_id, scoreboard_visible=True)

    try:
        with transaction.atomic():
            try:
                registration = (
                    models.Registration.objects.select_for_update()
                    .select_related("event", "student")
                    .get(pk=registration_id)
                )
            except models.Registration.DoesNotExist as exc:
                raise NotFound("Registration not found.", registration_id=registration_id) from exc
            if registration.status != models.Registration.Status.APPROVED:
                raise InvalidTransition(
                    "Results can only be recorded for approved registrations.",
                    registration_id=registration.pk,
                    status=registration.status,
                )
            final_position, points = points_for(registration.event.mode, participated, position)
            participation = Participation.PARTICIPATED if participated else Participation.DID_NOT_PARTICIPATE
            result, created = models.EventResult.objects.update_or_create(
                registration=registration,
                defaults={
                    "position": final_position,
                    "participation": participation,
                    "points": points,
                    "entered_by": actor,
                },
            )
            activity.log_activity(
                actor,
                "event_result_recorded",
                {
                    "registration_id": registration.pk,
                    "student_id": registration.student_id,
                    "event_id": registration.event_id,
                    "event_name": registration.event.name,
                    "participation": participation,
                    "position": final_position,
                    "points": points,
                    "created": created,
                },
                request=request,
            )
    except RegistrationError as exc:
        logger.warning("result for registration %s refused: %s", registration_id, exc.code)
        raise
    except DatabaseError as exc:
        logger.exception("result write failed for registration %s", registration_id)
        raise StoreFailure(registration_id=registration_id) from exc

    logger.info("result recorded for registration %s: %s (%d points)", registration_id, final_position, points)
    return result
