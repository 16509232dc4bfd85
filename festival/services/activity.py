"""Audit trail helpers."""
from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db.models import Q

from accounts.roles import ActiveRole

from .. import models

logger = logging.getLogger(__name__)


def _valid_ip(value: str | None) -> str | None:
    value = (value or "").strip()
    if not value:
        return None
    try:
        validate_ipv46_address(value)
    except ValidationError:
        return None
    return value


def _client_ip(request) -> str | None:
    """First well-formed address from ``X-Forwarded-For``, else ``REMOTE_ADDR``."""

    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        address = _valid_ip(forwarded.split(",")[0])
        if address is not None:
            return address
        logger.warning("ignoring malformed X-Forwarded-For header %r", forwarded[:100])
    return _valid_ip(request.META.get("REMOTE_ADDR"))


def log_activity(
    actor,
    action: str,
    details: dict[str, Any] | None = None,
    *,
    request=None,
) -> models.ActivityLogEntry:
    """Append one activity log entry. ``actor`` may be ``None`` for system actions."""

    user_agent = ""
    if request is not None:
        user_agent = (request.META.get("HTTP_USER_AGENT") or "")[:255]
    entry = models.ActivityLogEntry.objects.create(
        user=actor if getattr(actor, "pk", None) else None,
        action=action,
        details=details or {},
        ip_address=_client_ip(request),
        user_agent=user_agent,
    )
    logger.debug("activity %s recorded for user %s", action, getattr(actor, "pk", None))
    return entry


def scope_activity_logs(active_role: ActiveRole | None, actor) -> Q:
    """Admins read every entry; everyone else reads only their own."""

    if active_role is not None and active_role.is_admin and active_role.held_by(actor):
        return Q()
    if getattr(actor, "pk", None) is None:
        return Q(pk__in=[])
    return Q(user_id=actor.pk)
