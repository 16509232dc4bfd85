"""Specific failure reasons surfaced by the registration engine.

Every denial carries a stable ``code`` and a ``context`` dict so callers can
explain *why* an action failed (current count vs. limit, the deadline, the
open/closed state) rather than only *that* it failed.
"""
from __future__ import annotations

from typing import Any

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied


class RegistrationError(Exception):
    code = "registration_error"
    default_message = "The registration action could not be completed."

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        payload = {"detail": self.message, "code": self.code}
        payload.update(self.context)
        return payload


class QuotaExceeded(RegistrationError):
    code = "quota_exceeded"
    default_message = "The student has reached the registration limit for this category."


class RegistrationWindowClosed(RegistrationError):
    code = "registration_window_closed"
    default_message = "The registration deadline for this event has passed."


class RegistrationsGloballyClosed(RegistrationError):
    code = "registrations_globally_closed"
    default_message = "Registrations are currently closed."


class Unauthorized(RegistrationError, PermissionDenied):
    code = "unauthorized"
    default_message = "Your active role cannot perform this action."


class ScopeUnresolved(RegistrationError):
    code = "scope_unresolved"
    default_message = "The coordinator year for this role could not be determined."


class NotFound(RegistrationError, ObjectDoesNotExist):
    code = "not_found"
    default_message = "The referenced record does not exist."


class StoreFailure(RegistrationError):
    code = "store_failure"
    default_message = "The data store could not complete the request."


class DuplicateRegistration(RegistrationError):
    code = "duplicate_registration"
    default_message = "The student is already registered for this event."


class CapacityReached(RegistrationError):
    code = "capacity_reached"
    default_message = "This event has no places left for the student's year."


class ResultsLocked(RegistrationError):
    code = "results_locked"
    default_message = "Results cannot be changed while the scoreboard is public."


class InvalidTransition(RegistrationError):
    code = "invalid_transition"
    default_message = "Only pending registrations can be approved or rejected."
