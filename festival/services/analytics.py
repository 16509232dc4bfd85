"""Read-only roll-ups over an already scoped set of registrations.

:func:`compute_event_analytics` is a pure fold over iterables of records, so
the same call site works whether the rows come from the ORM, from a cache or
from a server-side aggregation. Rejected registrations never count towards
occupancy or participation; they only feed the rejection rate.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from django.conf import settings

from accounts.roles import YEAR_ORDER, ActiveRole

from .. import models
from .scoping import scope_events, scope_registrations
from .settings_store import FestivalSettings, load_settings

Status = models.Registration.Status


def _knob(name: str, default: int) -> int:
    return int(getattr(settings, name, default))


@dataclass
class EventOccupancy:
    event_id: int
    name: str
    category: str
    max_entries_per_year: int | None
    per_year: dict[str, int] = field(default_factory=lambda: {year: 0 for year in YEAR_ORDER})
    rejected: int = 0

    @property
    def total(self) -> int:
        return sum(self.per_year.values())

    def occupancy_rate(self, year: str) -> float | None:
        """Registrations-to-capacity percentage, ``None`` without a cap."""

        if not self.max_entries_per_year:
            return None
        return self.per_year.get(year, 0) / self.max_entries_per_year * 100

    @property
    def occupancy(self) -> dict[str, float | None]:
        return {year: self.occupancy_rate(year) for year in YEAR_ORDER}

    @property
    def peak_occupancy(self) -> float:
        rates = [rate for rate in self.occupancy.values() if rate is not None]
        return max(rates) if rates else 0.0

    def years_at_or_above(self, threshold: float) -> list[str]:
        return [
            year
            for year, rate in self.occupancy.items()
            if rate is not None and rate >= threshold
        ]

    @property
    def gap_years(self) -> list[str]:
        """Years with no non-rejected registration for this event."""

        return [year for year in YEAR_ORDER if self.per_year.get(year, 0) == 0]

    def as_dict(self, *, near: float, full: float) -> dict[str, object]:
        return {
            "event_id": self.event_id,
            "name": self.name,
            "category": self.category,
            "max_entries_per_year": self.max_entries_per_year,
            "registrations": dict(self.per_year),
            "total": self.total,
            "rejected": self.rejected,
            "occupancy": self.occupancy,
            "near_capacity_years": self.years_at_or_above(near),
            "full_years": self.years_at_or_above(full),
            "gap_years": self.gap_years,
        }


@dataclass
class StudentParticipation:
    student_id: int
    name: str
    roll_number: str
    year: str | None
    on_stage: int = 0
    off_stage: int = 0
    events: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.on_stage + self.off_stage


@dataclass
class EventAnalytics:
    events: list[EventOccupancy]
    year_participation: dict[str, int]
    category_totals: dict[str, int]
    unique_students: int
    total_registrations: int
    rejected_count: int
    top_events: list[EventOccupancy]
    needs_attention: list[EventOccupancy]
    capacity_watch: list[EventOccupancy]
    students_at_limit: list[StudentParticipation]
    near_capacity_percent: float
    full_percent: float

    @property
    def rejection_rate(self) -> float:
        seen = self.total_registrations + self.rejected_count
        return self.rejected_count / seen * 100 if seen else 0.0

    @property
    def participation_gaps(self) -> dict[int, list[str]]:
        return {event.event_id: event.gap_years for event in self.events if event.gap_years}

    def as_dict(self) -> dict[str, object]:
        near, full = self.near_capacity_percent, self.full_percent
        return {
            "events": [event.as_dict(near=near, full=full) for event in self.events],
            "year_participation": dict(self.year_participation),
            "category_totals": dict(self.category_totals),
            "unique_students": self.unique_students,
            "total_registrations": self.total_registrations,
            "rejected_count": self.rejected_count,
            "rejection_rate": round(self.rejection_rate, 2),
            "top_events": [event.event_id for event in self.top_events],
            "needs_attention": [event.event_id for event in self.needs_attention],
            "capacity_watch": [event.event_id for event in self.capacity_watch],
            "participation_gaps": {str(key): value for key, value in self.participation_gaps.items()},
            "students_at_limit": [
                {
                    "student_id": student.student_id,
                    "name": student.name,
                    "roll_number": student.roll_number,
                    "year": student.year,
                    "on_stage": student.on_stage,
                    "off_stage": student.off_stage,
                    "events": list(student.events),
                }
                for student in self.students_at_limit
            ],
        }


def compute_event_analytics(
    registrations: Iterable,
    events: Iterable,
    *,
    limits: FestivalSettings | None = None,
    top_n: int | None = None,
    low_floor: int | None = None,
    near_percent: float | None = None,
    full_percent: float | None = None,
) -> EventAnalytics:
    """Fold registration rows into per-event occupancy and engagement lists.

    ``registrations`` need ``event_id``, ``student_id``, ``status`` and
    ``student.year`` (plus ``student.name``/``roll_number`` for the limit
    list). ``events`` need ``pk``, ``name``, ``category`` and
    ``max_entries_per_year``. Registrations for events not supplied are
    ignored. Without ``limits`` the at-limit student list is empty.
    """

    top_n = _knob("FESTIVAL_ANALYTICS_TOP_N", 5) if top_n is None else top_n
    low_floor = _knob("FESTIVAL_LOW_PARTICIPATION_FLOOR", 3) if low_floor is None else low_floor
    near = _knob("FESTIVAL_NEAR_CAPACITY_PERCENT", 80) if near_percent is None else near_percent
    full = _knob("FESTIVAL_FULL_PERCENT", 100) if full_percent is None else full_percent

    by_event: dict[int, EventOccupancy] = {}
    for event in events:
        by_event[event.pk] = EventOccupancy(
            event_id=event.pk,
            name=event.name,
            category=event.category,
            max_entries_per_year=event.max_entries_per_year,
        )

    year_participation = {year: 0 for year in YEAR_ORDER}
    category_totals: dict[str, int] = defaultdict(int)
    students: dict[int, StudentParticipation] = {}
    rejected = 0
    counted = 0

    for registration in registrations:
        occupancy = by_event.get(registration.event_id)
        if occupancy is None:
            continue
        if registration.status == Status.REJECTED:
            occupancy.rejected += 1
            rejected += 1
            continue
        student = registration.student
        year = getattr(student, "year", None)
        if year in occupancy.per_year:
            occupancy.per_year[year] += 1
            year_participation[year] += 1
        counted += 1
        category_totals[occupancy.category] += 1

        bucket = students.get(registration.student_id)
        if bucket is None:
            bucket = students[registration.student_id] = StudentParticipation(
                student_id=registration.student_id,
                name=getattr(student, "name", ""),
                roll_number=getattr(student, "roll_number", ""),
                year=year,
            )
        if occupancy.category == models.Event.Category.ON_STAGE:
            bucket.on_stage += 1
        else:
            bucket.off_stage += 1
        bucket.events.append(occupancy.name)

    ordered = list(by_event.values())
    top_events = sorted(ordered, key=lambda item: (-item.total, item.name))[:top_n]
    needs_attention = sorted(
        (item for item in ordered if item.total < low_floor),
        key=lambda item: (item.total, item.name),
    )[:top_n]
    capacity_watch = sorted(
        (item for item in ordered if item.years_at_or_above(near)),
        key=lambda item: (-item.peak_occupancy, item.name),
    )

    at_limit: list[StudentParticipation] = []
    if limits is not None:
        at_limit = sorted(
            (
                student
                for student in students.values()
                if student.on_stage >= limits.max_on_stage_registrations
                or student.off_stage >= limits.max_off_stage_registrations
            ),
            key=lambda item: (-item.total, item.name),
        )

    return EventAnalytics(
        events=ordered,
        year_participation=year_participation,
        category_totals=dict(category_totals),
        unique_students=len(students),
        total_registrations=counted,
        rejected_count=rejected,
        top_events=top_events,
        needs_attention=needs_attention,
        capacity_watch=capacity_watch,
        students_at_limit=at_limit,
        near_capacity_percent=near,
        full_percent=full,
    )


def analytics_for(active_role: ActiveRole | None, actor, *, config: FestivalSettings | None = None) -> EventAnalytics:
    """Fetch the actor's scoped rows and fold them; recomputed on every call."""

    registration_scope = scope_registrations(active_role, actor)
    registration_scope.raise_if_unresolved()
    event_scope = scope_events(active_role, actor)

    registrations = registration_scope.apply(
        models.Registration.objects.select_related("student", "event")
    )
    events = event_scope.apply(models.Event.objects.filter(is_active=True))
    return compute_event_analytics(
        registrations.iterator(),
        events,
        limits=config or load_settings(),
    )
