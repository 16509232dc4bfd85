"""Process-wide festival configuration read from the ``Setting`` table.

Settings are loaded into an immutable :class:`FestivalSettings` snapshot on
demand. Nothing is cached at module level: callers either pass a snapshot
explicitly or let the engine call :func:`load_settings` per operation, and a
poller can simply call it again to refresh.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.db import DatabaseError, transaction

from accounts.roles import ActiveRole

from .. import models
from ..exceptions import StoreFailure, Unauthorized
from . import activity

logger = logging.getLogger(__name__)

MAX_ON_STAGE = "max_on_stage_registrations"
MAX_OFF_STAGE = "max_off_stage_registrations"
GLOBAL_REGISTRATION_OPEN = "global_registration_open"
AUTO_APPROVE = "auto_approve_registrations"
SCOREBOARD_VISIBLE = "scoreboard_visible"

LIMIT_KEYS = (MAX_ON_STAGE, MAX_OFF_STAGE)
FLAG_KEYS = (GLOBAL_REGISTRATION_OPEN, AUTO_APPROVE, SCOREBOARD_VISIBLE)
ENGINE_KEYS = LIMIT_KEYS + FLAG_KEYS


@dataclass(frozen=True)
class FestivalSettings:
    """A point-in-time view of the engine configuration."""

    max_on_stage_registrations: int = 0
    max_off_stage_registrations: int = 0
    global_registration_open: bool = True
    auto_approve_registrations: bool = False
    scoreboard_visible: bool = False
    available: bool = True

    @classmethod
    def fail_closed(cls) -> "FestivalSettings":
        return cls(
            max_on_stage_registrations=0,
            max_off_stage_registrations=0,
            global_registration_open=False,
            auto_approve_registrations=False,
            scoreboard_visible=False,
            available=False,
        )

    def limit_for(self, category: str) -> int:
        if category == models.Event.Category.ON_STAGE:
            return self.max_on_stage_registrations
        if category == models.Event.Category.OFF_STAGE:
            return self.max_off_stage_registrations
        return 0


def _parse_limit(value: Any) -> int:
    if isinstance(value, dict):
        value = value.get("limit")
    if isinstance(value, bool):
        return 0
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return 0
    return max(limit, 0)


def _parse_flag(value: Any, default: bool) -> bool:
    if isinstance(value, dict):
        value = value.get("enabled", default)
    if isinstance(value, bool):
        return value
    return default


def load_settings() -> FestivalSettings:
    """Read every engine key in one query.

    Missing limit keys read as ``0`` so an unconfigured store never permits
    unbounded registration. A failed read returns the fail-closed snapshot.
    """

    try:
        rows = dict(
            models.Setting.objects.filter(key__in=ENGINE_KEYS).values_list("key", "value")
        )
    except DatabaseError as exc:
        logger.exception("settings store unavailable, failing closed: %s", exc)
        return FestivalSettings.fail_closed()

    for key in LIMIT_KEYS:
        if key not in rows:
            logger.warning("setting %s missing; treating limit as 0", key)

    return FestivalSettings(
        max_on_stage_registrations=_parse_limit(rows.get(MAX_ON_STAGE)),
        max_off_stage_registrations=_parse_limit(rows.get(MAX_OFF_STAGE)),
        global_registration_open=_parse_flag(rows.get(GLOBAL_REGISTRATION_OPEN), True),
        auto_approve_registrations=_parse_flag(rows.get(AUTO_APPROVE), False),
        scoreboard_visible=_parse_flag(rows.get(SCOREBOARD_VISIBLE), False),
    )


def _normalise_value(key: str, value: Any) -> dict[str, Any]:
    if key in LIMIT_KEYS:
        raw = value.get("limit") if isinstance(value, dict) else value
        if isinstance(raw, bool):
            raise ValueError(f"{key} must be a whole number.")
        try:
            limit = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be a whole number.") from exc
        if limit < 0:
            raise ValueError(f"{key} cannot be negative.")
        return {"limit": limit}
    raw = value.get("enabled") if isinstance(value, dict) else value
    if not isinstance(raw, bool):
        raise ValueError(f"{key} must be true or false.")
    return {"enabled": raw}


def update_setting(actor, active_role: ActiveRole, key: str, value: Any) -> models.Setting:
    """Write one engine setting; admin only. Emits an activity log entry."""

    if not active_role.is_admin or not active_role.held_by(actor):
        raise Unauthorized("Only administrators can change festival settings.", key=key)
    if key not in ENGINE_KEYS:
        raise ValueError(f"Unknown setting {key!r}.")
    normalised = _normalise_value(key, value)

    try:
        with transaction.atomic():
            setting, _ = models.Setting.objects.select_for_update().get_or_create(key=key)
            previous = setting.value
            setting.value = normalised
            setting.updated_by = actor
            setting.save(update_fields=["value", "updated_by", "updated_at"])
            action = (
                "global_registration_status_changed"
                if key == GLOBAL_REGISTRATION_OPEN
                else "settings_updated"
            )
            activity.log_activity(
                actor,
                action,
                {"key": key, "old_value": previous, "new_value": normalised},
            )
    except DatabaseError as exc:
        logger.exception("failed to update setting %s", key)
        raise StoreFailure(key=key) from exc

    logger.info("setting %s updated to %r by user %s", key, normalised, actor.pk)
    return setting
